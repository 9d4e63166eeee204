"""SQLModel database engine and session management."""
from sqlmodel import SQLModel, create_engine, Session
from app.core.config import settings

# Import models so SQLModel.metadata knows about all tables
import app.models.case  # noqa: F401
import app.models.inventory  # noqa: F401
import app.models.tax  # noqa: F401

# check_same_thread only applies to SQLite
_connect_args = (
    {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
)

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args,
    echo=False,
)


def create_db_and_tables() -> None:
    """Create all tables defined in SQLModel models."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """FastAPI dependency: yields a SQLModel session."""
    with Session(engine) as session:
        yield session
