"""
Database Configuration Module

SQLAlchemy 2.0 setup for the Event Reviews API.

Session Management Pattern
==========================
"Session per request":
1. Request arrives → create a new session
2. All reads and writes of that request go through the session
3. Service functions flush; the request commits exactly once, so a review
   write and the rating recomputation it triggers land in one transaction
4. Session is closed when the request ends

PostgreSQL is the production database. SQLite is supported for local
development and tests (no pool sizing, cross-thread connections allowed).
"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict[str, Any]:
    """Build create_engine() keyword arguments for the configured backend."""
    if database_url.startswith("sqlite"):
        # SQLite connections are used from FastAPI's threadpool
        return {"connect_args": {"check_same_thread": False}}

    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,  # Verify connections are alive before using
    }


# =============================================================================
# Database Engine
# =============================================================================
engine = create_engine(
    settings.database_url,
    echo=settings.debug,  # Log SQL in debug mode
    **_engine_options(settings.database_url),
)


# =============================================================================
# Session Factory
# =============================================================================
# autoflush=False keeps writes explicit: services call flush() when they
# need generated ids or want aggregate queries to see pending rows.
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


# =============================================================================
# Base Model Class
# =============================================================================
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Alembic reads Base.metadata to discover tables for autogenerate.
    """
    pass


# =============================================================================
# Dependency Injection
# =============================================================================
def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Code before yield creates the session, code after yield closes it even
    if the route raised. Uncommitted work is rolled back on close.

    Usage in Routes:
        @router.get("/events/")
        def list_events(db: Session = Depends(get_db)):
            ...

    Yields:
        SQLAlchemy Session instance
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
