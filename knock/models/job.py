"""
Agent Job Models
Database models for pipeline jobs and their per-stage execution logs.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, Float, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship

from knock.core.database import Base


class AgentJob(Base):
    """One end-to-end run of the persona pipeline."""

    __tablename__ = "agent_jobs"

    id = Column(String, primary_key=True)  # job_xxxx format
    user_id = Column(String, nullable=False, index=True)

    # Status: pending, processing, completed, failed
    status = Column(String, default="pending", index=True)
    error_message = Column(Text, nullable=True)

    # Request / result
    input = Column(JSON, nullable=False)
    output = Column(JSON, nullable=True)
    dry_run = Column(Boolean, default=False)

    # Metrics
    quality_score = Column(Float, nullable=True)
    execution_time_ms = Column(Integer, nullable=True)
    attempt = Column(Integer, default=1)

    # Timestamps
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    logs = relationship(
        "AgentJobLog",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="AgentJobLog.id",  # autoincrement id follows creation order
    )


class AgentJobLog(Base):
    """Execution record of one stage (or a System event) within a job."""

    __tablename__ = "agent_job_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String, ForeignKey("agent_jobs.id"), nullable=False, index=True)
    attempt = Column(Integer, default=1)

    # Agent1..Agent5 or System
    agent_name = Column(String, nullable=False)
    # Status: processing, completed, error, skipped
    status = Column(String, nullable=False)
    message = Column(Text, nullable=True)

    input_data = Column(JSON, nullable=True)
    output_data = Column(JSON, nullable=True)
    execution_time_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("AgentJob", back_populates="logs")
