"""Pydantic request/response schemas for API endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator


class HealthResponse(BaseModel):
    status: str
    db: str
    version: str = "1.0.0"
    home_state: Optional[str]


class ErrorResponse(BaseModel):
    detail: str
    type: str


# ── Tax ───────────────────────────────────────────────────────────────────────


class TaxStateRead(BaseModel):
    id: int
    state_name: str
    state_code: str
    is_home_state: bool

    class Config:
        from_attributes = True


class TaxStateIn(BaseModel):
    state_name: str
    state_code: str


class HomeStateIn(BaseModel):
    state_name: str


class HomeStateRead(BaseModel):
    state_name: str


class TaxSplitIn(BaseModel):
    gst_rate: float
    customer_state: str
    home_state: Optional[str] = None  # defaults to the configured home state


class LineItemTaxIn(BaseModel):
    amount: float
    gst_rate: Optional[float] = None
    customer_state: str


# ── Cases ─────────────────────────────────────────────────────────────────────


class CaseCreate(BaseModel):
    client_name: str
    project_name: str
    description: Optional[str] = None
    customer_state: Optional[str] = None
    assigned_to: Optional[int] = None
    actor_id: Optional[int] = None

    @field_validator("client_name", "project_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class CaseRead(BaseModel):
    id: int
    case_number: str
    enquiry_id: Optional[int]
    current_state: str
    client_name: Optional[str]
    project_name: Optional[str]
    requirements: Optional[str]
    assigned_to: Optional[int]
    created_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CaseUpdate(BaseModel):
    assigned_to: Optional[int] = None
    notes: Optional[str] = None  # logged as a same-state transition row
    actor_id: Optional[int] = None


class TransitionIn(BaseModel):
    to_state: str
    actor_id: Optional[int] = None
    notes: Optional[str] = None
    reference_id: Optional[int] = None


class TransitionRead(BaseModel):
    id: int
    case_id: int
    from_state: Optional[str]
    to_state: str
    notes: Optional[str]
    reference_id: Optional[int]
    created_by: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class NextStateRead(BaseModel):
    current_state: str
    next_state: Optional[str]  # None once the case is closed


# ── Inventory ─────────────────────────────────────────────────────────────────


class ProductCreate(BaseModel):
    name: str
    product_code: Optional[str] = None
    unit: str = "Nos"
    hsn_code: Optional[str] = None
    gst_rate: Optional[float] = None

    @field_validator("gst_rate")
    @classmethod
    def gst_rate_range(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not (0 <= v <= 100):
            raise ValueError("gst_rate must be between 0 and 100")
        return v


class ProductRead(BaseModel):
    id: int
    name: str
    product_code: Optional[str]
    unit: str
    hsn_code: Optional[str]
    gst_rate: Optional[float]
    average_cost: float
    last_purchase_price: Optional[float]

    class Config:
        from_attributes = True


class StockReceiptIn(BaseModel):
    product_id: int
    quantity: float
    unit_cost: float
    location: str = "Main"
    received_at: Optional[datetime] = None
    actor_id: Optional[int] = None


class AverageCostPreviewIn(BaseModel):
    existing_quantity: float
    existing_average_cost: float
    incoming_quantity: float
    incoming_unit_cost: float
    product_id: Optional[int] = None


class AverageCostPreviewRead(BaseModel):
    new_average_cost: float


class StockBatchRead(BaseModel):
    id: int
    batch_number: str
    product_id: int
    location: str
    quantity: float
    unit_cost: float
    received_at: datetime

    class Config:
        from_attributes = True
