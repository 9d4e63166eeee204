"""
GST tax configuration and calculation routes.

Endpoints:
  GET  /api/tax/states        – active states, home state first
  POST /api/tax/states        – add a state / union territory
  GET  /api/tax/home-state    – current home state
  PUT  /api/tax/home-state    – change the home state
  POST /api/tax/split         – CGST/SGST vs IGST split for a rate
  POST /api/tax/line-item     – tax amounts for one line item
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.database import get_session
from app.schemas.responses import (
    HomeStateIn,
    HomeStateRead,
    LineItemTaxIn,
    TaxSplitIn,
    TaxStateIn,
    TaxStateRead,
)
from app.services.tax import (
    LineItemTax,
    TaxConfigStore,
    TaxSplit,
    calculator_for,
    compute_split,
)

tax_router = APIRouter(prefix="/api/tax", tags=["tax"])


@tax_router.get("/states", response_model=list[TaxStateRead])
def list_states(session: Session = Depends(get_session)):
    return [TaxStateRead.model_validate(s) for s in TaxConfigStore(session).list_states()]


@tax_router.post("/states", response_model=TaxStateRead, status_code=201)
def add_state(body: TaxStateIn, session: Session = Depends(get_session)):
    state = TaxConfigStore(session).add_state(body.state_name, body.state_code)
    return TaxStateRead.model_validate(state)


@tax_router.get("/home-state", response_model=HomeStateRead)
def get_home_state(session: Session = Depends(get_session)):
    return HomeStateRead(state_name=TaxConfigStore(session).get_home_state())


@tax_router.put("/home-state", response_model=HomeStateRead)
def set_home_state(body: HomeStateIn, session: Session = Depends(get_session)):
    state = TaxConfigStore(session).set_home_state(body.state_name)
    return HomeStateRead(state_name=state.state_name)


@tax_router.post("/split", response_model=TaxSplit)
def tax_split(body: TaxSplitIn, session: Session = Depends(get_session)):
    """Split body.gst_rate; an explicit home_state overrides the configured one."""
    if body.home_state:
        return compute_split(body.gst_rate, body.customer_state, body.home_state)
    return calculator_for(session).compute_split(body.gst_rate, body.customer_state)


@tax_router.post("/line-item", response_model=LineItemTax)
def line_item_tax(body: LineItemTaxIn, session: Session = Depends(get_session)):
    return calculator_for(session).compute_line_item_tax(
        body.amount, body.gst_rate, body.customer_state
    )
