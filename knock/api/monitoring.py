"""
Monitoring API Routes
Failure and quality overviews for the admin dashboard.
"""

from fastapi import APIRouter, Depends, Query

from knock.agents.orchestrator import PipelineOrchestrator
from knock.api.deps import get_orchestrator
from knock.schemas.job import ErrorReport, QualityReport
from knock.services.job_store import LOW_QUALITY_THRESHOLD

router = APIRouter()


@router.get("/errors", response_model=ErrorReport)
async def get_errors(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Failed jobs, newest first, with their error log entries.

    Also reports error-log counts per agent and the five most common
    failure messages.
    """
    return orchestrator.error_report(limit=limit, offset=offset)


@router.get("/quality", response_model=QualityReport)
async def get_quality(
    threshold: float = Query(LOW_QUALITY_THRESHOLD, ge=0, le=100),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Quality score spread and the ten lowest-scoring jobs under `threshold`."""
    return orchestrator.quality_report(threshold=threshold)
