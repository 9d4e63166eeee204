"""
Case workflow routes.

Endpoints:
  POST /api/cases                      – record a sales enquiry and open its case
  GET  /api/cases                      – list cases, optionally by state
  GET  /api/cases/statistics           – counts per state
  GET  /api/cases/search               – search by case number, project or client
  GET  /api/cases/by-number            – lookup by case number
  GET  /api/cases/{id}                 – one case
  PATCH /api/cases/{id}                – reassign, optionally with a note
  GET  /api/cases/{id}/history         – transition log, oldest first
  GET  /api/cases/{id}/next-state      – the only state the case may move to
  POST /api/cases/{id}/transition      – move the case one step forward
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.database import get_session
from app.schemas.responses import (
    CaseCreate,
    CaseRead,
    CaseUpdate,
    NextStateRead,
    TransitionIn,
    TransitionRead,
)
from app.services.cases import CaseService, CaseStatistics, next_state

case_router = APIRouter(prefix="/api/cases", tags=["cases"])


@case_router.post("", response_model=CaseRead, status_code=201)
def create_case(body: CaseCreate, session: Session = Depends(get_session)):
    case = CaseService(session).create_case(
        client_name=body.client_name,
        project_name=body.project_name,
        description=body.description,
        customer_state=body.customer_state,
        assigned_to=body.assigned_to,
        actor_id=body.actor_id,
    )
    return CaseRead.model_validate(case)


@case_router.get("", response_model=list[CaseRead])
def list_cases(
    state: Optional[str] = Query(default=None, description="Filter by current state"),
    session: Session = Depends(get_session),
):
    return [CaseRead.model_validate(c) for c in CaseService(session).list_cases(state)]


@case_router.get("/statistics", response_model=CaseStatistics)
def case_statistics(session: Session = Depends(get_session)):
    return CaseService(session).statistics()


@case_router.get("/search", response_model=list[CaseRead])
def search_cases(
    q: str = Query(default="", description="Part of a case number, project or client name"),
    session: Session = Depends(get_session),
):
    return [CaseRead.model_validate(c) for c in CaseService(session).search_cases(q)]


@case_router.get("/by-number", response_model=CaseRead)
def get_case_by_number(
    case_number: str = Query(..., description="e.g. VESPL/C/2526/001"),
    session: Session = Depends(get_session),
):
    return CaseRead.model_validate(CaseService(session).get_case_by_number(case_number))


@case_router.get("/{case_id}", response_model=CaseRead)
def get_case(case_id: int, session: Session = Depends(get_session)):
    return CaseRead.model_validate(CaseService(session).get_case(case_id))


@case_router.patch("/{case_id}", response_model=CaseRead)
def update_case(case_id: int, body: CaseUpdate, session: Session = Depends(get_session)):
    case = CaseService(session).update_case(
        case_id,
        assigned_to=body.assigned_to,
        notes=body.notes,
        actor_id=body.actor_id,
    )
    return CaseRead.model_validate(case)


@case_router.get("/{case_id}/history", response_model=list[TransitionRead])
def case_history(case_id: int, session: Session = Depends(get_session)):
    return [TransitionRead.model_validate(t) for t in CaseService(session).history(case_id)]


@case_router.get("/{case_id}/next-state", response_model=NextStateRead)
def case_next_state(case_id: int, session: Session = Depends(get_session)):
    case = CaseService(session).get_case(case_id)
    nxt = next_state(case.current_state)
    return NextStateRead(
        current_state=case.current_state,
        next_state=nxt.value if nxt else None,
    )


@case_router.post("/{case_id}/transition", response_model=TransitionRead)
def transition_case(case_id: int, body: TransitionIn, session: Session = Depends(get_session)):
    record = CaseService(session).transition(
        case_id,
        body.to_state,
        actor_id=body.actor_id,
        notes=body.notes,
        reference_id=body.reference_id,
    )
    return TransitionRead.model_validate(record)
