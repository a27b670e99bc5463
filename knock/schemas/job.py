"""
Job Schemas
Pydantic models for job API requests and responses.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel


class JobStatus(str, Enum):
    """Job status enum."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class StageStatus(str, Enum):
    """Stage log status enum."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"


class StageLogResponse(BaseModel):
    """Schema for one stage log entry."""
    id: int
    job_id: str
    attempt: int = 1
    agent_name: str
    status: str
    message: Optional[str] = None
    input_data: Optional[Dict[str, Any]] = None
    output_data: Optional[Dict[str, Any]] = None
    execution_time_ms: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class JobResponse(BaseModel):
    """Schema for job response."""
    id: str
    user_id: str
    status: str
    input: Dict[str, Any] = {}
    output: Optional[Dict[str, Any]] = None
    dry_run: bool = False
    error_message: Optional[str] = None
    quality_score: Optional[float] = None
    execution_time_ms: Optional[int] = None
    attempt: int = 1
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobStatusResponse(JobResponse):
    """Job with its ordered stage logs."""
    logs: List[StageLogResponse] = []


class JobHandle(BaseModel):
    """Returned when a run is accepted or retried."""
    job_id: str
    status: str
    message: Optional[str] = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class JobListResponse(BaseModel):
    """Paginated job listing."""
    data: List[JobResponse] = []
    pagination: Pagination


class AgentStats(BaseModel):
    """Aggregate pipeline statistics for the admin dashboard."""
    total_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    processing_jobs: int = 0
    success_rate: float = 0.0
    average_execution_time_ms: float = 0.0
    average_quality_score: float = 0.0
    total_personas_created: int = 0
    total_rooms_created: int = 0


class FailureReason(BaseModel):
    message: str
    count: int


class FailedJob(BaseModel):
    """Failed job with the error entries from its stage logs."""
    id: str
    user_id: str
    error_message: Optional[str] = None
    attempt: int = 1
    completed_at: Optional[datetime] = None
    created_at: datetime
    error_logs: List[StageLogResponse] = []


class ErrorReport(BaseModel):
    """Failure overview for the monitoring dashboard."""
    total_failed_jobs: int = 0
    errors_by_agent: Dict[str, int] = {}
    top_failure_reasons: List[FailureReason] = []
    data: List[FailedJob] = []
    pagination: Pagination


class QualityReport(BaseModel):
    """Quality score overview across completed jobs."""
    total_scored: int = 0
    average_score: float = 0.0
    min_score: Optional[float] = None
    max_score: Optional[float] = None
    distribution: Dict[str, int] = {}
    threshold: float
    low_quality_jobs: List[JobResponse] = []
