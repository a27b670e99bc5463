"""
Knock Persona Pipeline API
FastAPI Backend Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from knock.agents.orchestrator import build_orchestrator
from knock.api import agent, data_pools, monitoring, templates
from knock.api.deps import get_db
from knock.core.config import settings
from knock.core.database import SessionLocal, init_db
from knock.core.logging import configure_logging
from knock.services.data_pool import SQLDataPoolStore

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME}...")
    init_db()
    app.state.pool_store = SQLDataPoolStore(SessionLocal)
    app.state.orchestrator = build_orchestrator(SessionLocal, settings)
    logger.info("Database ready, orchestrator wired")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await app.state.orchestrator.wait_for_pending()


app = FastAPI(
    title="Knock Persona Pipeline API",
    description="Five-agent pipeline that turns onboarding answers into AI roommate personas",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(agent.router, prefix="/api/v1/admin/agent", tags=["Agent Pipeline"])
app.include_router(templates.router, prefix="/api/v1/admin/templates", tags=["Prompt Templates"])
app.include_router(data_pools.router, prefix="/api/v1/admin/data-pool", tags=["Data Pools"])
app.include_router(monitoring.router, prefix="/api/v1/admin/monitoring", tags=["Monitoring"])


@app.get("/health", tags=["Health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint. Reports database status."""
    status = {
        "status": "healthy",
        "version": VERSION,
        "environment": {
            "database": "sqlite" if settings.DATABASE_URL.startswith("sqlite") else "postgresql",
            "llm_provider": settings.LLM_PROVIDER,
            "ai_image_generation": settings.USE_AI_IMAGE_GENERATION,
        },
        "services": {},
    }

    try:
        db.execute(text("SELECT 1"))
        status["services"]["database"] = "ok"
    except SQLAlchemyError as e:
        status["services"]["database"] = f"error: {str(e)}"
        status["status"] = "degraded"

    return status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": "Knock Persona Pipeline API",
        "docs": "/docs",
        "health": "/health",
    }
