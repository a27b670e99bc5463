"""
Agent Pipeline API Routes
Admin endpoints to run the persona pipeline and monitor its jobs.
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from knock.agents.orchestrator import PipelineOrchestrator
from knock.agents.presets import IMAGE_PRESETS, ImagePreset
from knock.api.deps import get_orchestrator, get_pool_store
from knock.core.exceptions import JobNotFoundError, JobStateError
from knock.schemas.job import (
    JobStatus, JobHandle, JobResponse, JobStatusResponse, JobListResponse, AgentStats,
)
from knock.schemas.pipeline import PipelineInput, UserData, Preferences
from knock.services.data_pool import SQLDataPoolStore

router = APIRouter()

SortField = Literal["started_at", "created_at", "execution_time_ms", "quality_score"]


def _check_template(template_id: Optional[str], pool_store: SQLDataPoolStore):
    if not template_id:
        return
    template = pool_store.get_template(template_id)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Template not found: {template_id}",
        )
    if not template.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Template is not active: {template_id}",
        )


@router.post("/execute", response_model=JobHandle, status_code=status.HTTP_202_ACCEPTED)
async def execute_pipeline(
    data: PipelineInput,
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """
    Start a pipeline run.

    The job is created in `processing` and the five agents run in the
    background. Poll `GET /jobs/{job_id}` for progress.
    """
    _check_template(data.template_id, pool_store)

    job = orchestrator.create_job(data)
    background_tasks.add_task(orchestrator.run_job, job.id)

    return JobHandle(
        job_id=job.id,
        status=JobStatus.PROCESSING.value,
        message="Pipeline execution started",
    )


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(
    user_id: Optional[str] = None,
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """List jobs with optional filters."""
    return orchestrator.list_jobs(
        user_id=user_id,
        status=job_status.value if job_status else None,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/users/{user_id}/jobs", response_model=List[JobResponse])
async def list_user_jobs(
    user_id: str,
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Jobs for one user."""
    return orchestrator.get_user_jobs(
        user_id,
        status=job_status.value if job_status else None,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Get job status, result and stage logs."""
    job = orchestrator.get_job_status(job_id)

    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found"
        )

    return job


@router.post("/jobs/{job_id}/retry", response_model=JobHandle, status_code=status.HTTP_202_ACCEPTED)
async def retry_job(
    job_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Re-run a failed job from its stored input."""
    try:
        job = orchestrator.start_retry(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    except JobStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    background_tasks.add_task(orchestrator.run_job, job.id)

    return JobHandle(
        job_id=job.id,
        status=JobStatus.PROCESSING.value,
        message=f"Pipeline retry started (attempt {job.attempt})",
    )


@router.delete("/jobs/{job_id}", response_model=JobResponse)
async def cancel_job(
    job_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Cancel a processing job."""
    try:
        return orchestrator.cancel_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    except JobStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/stats", response_model=AgentStats)
async def get_stats(
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Aggregate pipeline statistics."""
    return orchestrator.stats()


@router.post("/test-pipeline", response_model=JobHandle, status_code=status.HTTP_202_ACCEPTED)
async def test_pipeline(
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """Run a canned sample input in dry-run mode (nothing is saved)."""
    template = pool_store.get_template()
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active templates found")

    data = PipelineInput(
        user_id="test-user-admin",
        user_name="Test Admin",
        user_data=UserData(
            domains=["github.com", "stackoverflow.com", "reddit.com/r/programming"],
            keywords=["typescript", "react", "node.js", "docker"],
            interests=["programming", "games", "music"],
            avoid_topics=["politics"],
        ),
        preferences=Preferences(conversation_style="casual", response_length="medium"),
        template_id=template.id,
        dry_run=True,
    )

    job = orchestrator.create_job(data)
    background_tasks.add_task(orchestrator.run_job, job.id)

    return JobHandle(
        job_id=job.id,
        status=JobStatus.PROCESSING.value,
        message="Test pipeline started (dry run mode)",
    )


@router.get("/presets", response_model=List[ImagePreset])
async def list_presets():
    """Room presets used when image generation is unavailable."""
    return IMAGE_PRESETS
