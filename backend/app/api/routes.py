"""
General API routes.

Endpoints:
  GET  /api/health
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from loguru import logger
from sqlmodel import Session, select

from app.core.database import get_session
from app.core.errors import ConfigError
from app.models.case import Case
from app.schemas.responses import HealthResponse
from app.services.tax import TaxConfigStore

router = APIRouter(prefix="/api")


@router.get("/health", response_model=HealthResponse)
def health(session: Session = Depends(get_session)):
    try:
        session.exec(select(Case).limit(1))
        db_status = "ok"
    except Exception as e:
        logger.error(f"Health check DB error: {e}")
        db_status = f"error: {e}"

    home_state = None
    if db_status == "ok":
        try:
            home_state = TaxConfigStore(session).get_home_state()
        except ConfigError:
            home_state = None

    return HealthResponse(status="ok", db=db_status, home_state=home_state)
