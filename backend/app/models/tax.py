"""SQLModel model for GST state configuration."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field


class TaxState(SQLModel, table=True):
    """One Indian state / union territory known to the tax engine."""

    __tablename__ = "tax_config"

    id: Optional[int] = Field(default=None, primary_key=True)
    state_name: str = Field(index=True, unique=True)
    state_code: str = Field(index=True, unique=True)  # GST code, e.g. KA, MH
    # Exactly one row is the company's registered (home) state
    is_home_state: bool = Field(default=False, index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
