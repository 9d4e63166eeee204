"""SQLModel models for the case workflow (enquiries, cases, transition log, sequences)."""
from typing import Optional
from datetime import datetime
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class SalesEnquiry(SQLModel, table=True):
    """Customer enquiry that opens a case."""

    __tablename__ = "sales_enquiries"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_name: str = Field(index=True)
    customer_state: Optional[str] = None
    project_name: str
    description: Optional[str] = None
    # Set once the case row exists (same transaction)
    case_id: Optional[int] = Field(default=None, index=True)
    created_by: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Case(SQLModel, table=True):
    """A customer engagement tracked from enquiry to closure."""

    __tablename__ = "cases"

    id: Optional[int] = Field(default=None, primary_key=True)
    case_number: str = Field(index=True, unique=True)  # VESPL/C/2526/001, never reassigned
    enquiry_id: Optional[int] = Field(default=None, foreign_key="sales_enquiries.id", index=True)
    current_state: str = Field(default="enquiry", index=True)
    client_name: Optional[str] = None
    project_name: Optional[str] = None
    requirements: Optional[str] = None
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CaseStateTransition(SQLModel, table=True):
    """Append-only audit row; one per state change, including case creation."""

    __tablename__ = "case_state_transitions"

    id: Optional[int] = Field(default=None, primary_key=True)
    case_id: int = Field(foreign_key="cases.id", index=True)
    from_state: Optional[str] = None  # NULL for the initial transition
    to_state: str
    notes: Optional[str] = None
    reference_id: Optional[int] = None  # estimation / quotation / order id, if any
    created_by: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DocumentSequence(SQLModel, table=True):
    """Running counter per document type and financial year."""

    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint("document_type", "financial_year", name="uq_document_sequence_type_fy"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    document_type: str = Field(index=True)  # "C" for cases
    financial_year: str = Field(index=True)  # "2526" for 2025-26
    last_sequence: int = Field(default=0)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
