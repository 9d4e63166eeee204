"""
VTRIA ERP core – FastAPI application entry point.

Run with:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlmodel import Session

from app.api.routes import router
from app.api.case_routes import case_router
from app.api.inventory_routes import inventory_router
from app.api.tax_routes import tax_router
from app.core.config import settings
from app.core.database import create_db_and_tables, engine
from app.core.errors import ERPError
from app.core.logging import setup_logging
from app.services.tax import TaxConfigStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    setup_logging()
    logger.info("Starting VTRIA ERP backend …")
    create_db_and_tables()
    logger.info("Database tables ready")
    if settings.SEED_TAX_STATES:
        with Session(engine) as session:
            TaxConfigStore(session).seed_states(settings.DEFAULT_HOME_STATE)
    yield
    logger.info("VTRIA ERP backend shut down")


app = FastAPI(
    title="VTRIA ERP API",
    description="Case workflow, GST tax split and stock costing",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ERPError)
async def erp_error_handler(request: Request, exc: ERPError):
    """Map domain errors to their HTTP status."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} → {type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "type": type(exc).__name__},
    )


app.include_router(router)
app.include_router(tax_router)
app.include_router(case_router)
app.include_router(inventory_router)


@app.get("/")
def root():
    return {"message": "VTRIA ERP API", "docs": "/docs"}
