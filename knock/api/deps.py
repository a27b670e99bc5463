"""
API Dependencies
Common dependencies for FastAPI routes (database sessions, pipeline services).
"""

from typing import Generator

from fastapi import HTTPException, Request, status

from knock.agents.orchestrator import PipelineOrchestrator
from knock.core.database import SessionLocal
from knock.services.data_pool import SQLDataPoolStore


def get_db() -> Generator:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    """Orchestrator built at start-up."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline orchestrator is not initialised",
        )
    return orchestrator


def get_pool_store(request: Request) -> SQLDataPoolStore:
    """Data pool / template store built at start-up."""
    pool_store = getattr(request.app.state, "pool_store", None)
    if pool_store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data pool store is not initialised",
        )
    return pool_store
