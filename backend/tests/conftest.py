"""
Shared pytest fixtures.

Environment variables are set here, before any test module imports the app,
so that app.core.config picks up a throwaway SQLite file and log path.
"""
import os
import sys
import tempfile

import pytest

# Ensure app package is importable when running pytest from project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

_tmp_dir = tempfile.mkdtemp(prefix="vtria_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'api.db')}"
os.environ["LOG_FILE"] = os.path.join(_tmp_dir, "app.log")
os.environ["DEFAULT_HOME_STATE"] = "Karnataka"
os.environ["TAX_FALLBACK_ENABLED"] = "false"
os.environ["SEED_TAX_STATES"] = "true"

from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import app.models  # noqa: E402,F401 – registers all tables


@pytest.fixture
def session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed database for tests that need two independent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'case.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()
