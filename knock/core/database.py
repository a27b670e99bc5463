"""
Database Configuration
SQLAlchemy engine and session management.
Supports both SQLite (local dev) and PostgreSQL (production).
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from knock.core.config import settings

logger = logging.getLogger(__name__)

# Detect if using SQLite
is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# Create database engine with appropriate settings
if is_sqlite:
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},  # Needed for SQLite
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def init_db(bind=None, session_factory=None):
    """Initialize database tables and seed the data pools."""
    from knock.models import (  # noqa
        AgentJob, AgentJobLog, Persona, Room, PromptTemplate,
        ExperiencePool, ArchetypePool, VisualPool,
    )
    from knock.core.seed import seed_data_pools

    bind = bind or engine
    session_factory = session_factory or SessionLocal

    try:
        Base.metadata.create_all(bind=bind)
    except SQLAlchemyError as e:
        # In production, tables may already exist or filesystem may be read-only
        logger.warning(f"[Database] Could not create database tables: {e}")
        logger.info("[Database] Continuing with existing database...")

    if settings.SEED_DATA_POOLS:
        db = session_factory()
        try:
            seed_data_pools(db)
        finally:
            db.close()
