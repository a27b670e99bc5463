"""
Job Store
Persistence contract for pipeline jobs, stage logs and the persona/room
artifacts, with the SQLAlchemy implementation used by the service.

Every method opens its own session so the store can be shared between the
request handlers and the background pipeline task.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker, selectinload

from knock.core.exceptions import JobNotFoundError, JobStateError
from knock.models import AgentJob, AgentJobLog, Persona, Room
from knock.schemas.job import (
    JobStatus, StageStatus, JobResponse, JobStatusResponse, StageLogResponse, AgentStats,
    Pagination, FailureReason, FailedJob, ErrorReport, QualityReport,
)
from knock.schemas.pipeline import PipelineContext

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("started_at", "created_at", "execution_time_ms", "quality_score")

LOW_QUALITY_THRESHOLD = 70.0
LOW_QUALITY_LIMIT = 10
TOP_FAILURE_REASONS = 5
# (label, inclusive low, exclusive high)
QUALITY_BUCKETS = (("0-49", 0, 50), ("50-69", 50, 70), ("70-84", 70, 85), ("85-100", 85, 101))


class JobStore(ABC):
    """Persistence handle injected into the orchestrator."""

    @abstractmethod
    def create_job(self, job_id: str, user_id: str, input_data: Dict[str, Any], dry_run: bool = False) -> JobResponse:
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[JobStatusResponse]:
        ...

    @abstractmethod
    def start_attempt(self, job_id: str) -> JobResponse:
        ...

    @abstractmethod
    def complete_job(self, job_id: str, output: Dict[str, Any], quality_score: Optional[float] = None) -> bool:
        ...

    @abstractmethod
    def fail_job(self, job_id: str, error_message: str) -> bool:
        ...

    @abstractmethod
    def add_stage_log(
        self,
        job_id: str,
        agent_name: str,
        status: str,
        attempt: int = 1,
        message: Optional[str] = None,
        input_data: Optional[Dict[str, Any]] = None,
        execution_time_ms: Optional[int] = None,
    ) -> int:
        ...

    @abstractmethod
    def finish_stage_log(
        self,
        log_id: int,
        status: str,
        message: Optional[str] = None,
        output_data: Optional[Dict[str, Any]] = None,
        execution_time_ms: Optional[int] = None,
    ) -> None:
        ...

    @abstractmethod
    def list_jobs(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[JobResponse], int]:
        ...

    @abstractmethod
    def save_artifacts(self, context: PipelineContext, quality_score: Optional[float] = None) -> Dict[str, str]:
        ...

    @abstractmethod
    def stats(self) -> AgentStats:
        ...

    @abstractmethod
    def error_report(self, limit: int = 20, offset: int = 0) -> ErrorReport:
        ...

    @abstractmethod
    def quality_report(self, threshold: float = LOW_QUALITY_THRESHOLD) -> QualityReport:
        ...


class SQLJobStore(JobStore):
    """JobStore backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db: Session = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _get_or_raise(self, db: Session, job_id: str) -> AgentJob:
        job = db.get(AgentJob, job_id)
        if not job:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return job

    def create_job(self, job_id: str, user_id: str, input_data: Dict[str, Any], dry_run: bool = False) -> JobResponse:
        with self._session() as db:
            job = AgentJob(
                id=job_id,
                user_id=user_id,
                status=JobStatus.PROCESSING.value,
                input=input_data,
                dry_run=dry_run,
                attempt=1,
                started_at=datetime.utcnow(),
            )
            db.add(job)
            db.commit()
            db.refresh(job)
            return JobResponse.model_validate(job)

    def get_job(self, job_id: str) -> Optional[JobStatusResponse]:
        with self._session() as db:
            job = (
                db.query(AgentJob)
                .options(selectinload(AgentJob.logs))
                .filter(AgentJob.id == job_id)
                .first()
            )
            if not job:
                return None
            return JobStatusResponse.model_validate(job)

    def start_attempt(self, job_id: str) -> JobResponse:
        """Reset a failed job for another attempt under the same id."""
        with self._session() as db:
            job = self._get_or_raise(db, job_id)
            if job.status != JobStatus.FAILED.value:
                raise JobStateError(
                    f"Only failed jobs can be retried (current status: {job.status})",
                    current_status=job.status,
                )

            job.attempt = (job.attempt or 1) + 1
            job.status = JobStatus.PROCESSING.value
            job.output = None
            job.error_message = None
            job.quality_score = None
            job.execution_time_ms = None
            job.completed_at = None
            job.started_at = datetime.utcnow()
            db.commit()
            db.refresh(job)
            return JobResponse.model_validate(job)

    def complete_job(self, job_id: str, output: Dict[str, Any], quality_score: Optional[float] = None) -> bool:
        """Mark a processing job completed. Returns False if it was already terminal."""
        with self._session() as db:
            job = self._get_or_raise(db, job_id)
            if job.status != JobStatus.PROCESSING.value:
                return False

            now = datetime.utcnow()
            job.status = JobStatus.COMPLETED.value
            job.output = output
            job.error_message = None
            job.quality_score = quality_score
            job.completed_at = now
            if job.started_at:
                job.execution_time_ms = int((now - job.started_at).total_seconds() * 1000)
            db.commit()
            return True

    def fail_job(self, job_id: str, error_message: str) -> bool:
        """Mark a processing job failed. Returns False if it was already terminal."""
        with self._session() as db:
            job = self._get_or_raise(db, job_id)
            if job.status != JobStatus.PROCESSING.value:
                return False

            now = datetime.utcnow()
            job.status = JobStatus.FAILED.value
            job.output = None
            job.error_message = error_message
            job.completed_at = now
            if job.started_at:
                job.execution_time_ms = int((now - job.started_at).total_seconds() * 1000)
            db.commit()
            return True

    def add_stage_log(
        self,
        job_id: str,
        agent_name: str,
        status: str,
        attempt: int = 1,
        message: Optional[str] = None,
        input_data: Optional[Dict[str, Any]] = None,
        execution_time_ms: Optional[int] = None,
    ) -> int:
        with self._session() as db:
            log = AgentJobLog(
                job_id=job_id,
                attempt=attempt,
                agent_name=agent_name,
                status=status,
                message=message,
                input_data=input_data,
                execution_time_ms=execution_time_ms,
            )
            db.add(log)
            db.commit()
            return log.id

    def finish_stage_log(
        self,
        log_id: int,
        status: str,
        message: Optional[str] = None,
        output_data: Optional[Dict[str, Any]] = None,
        execution_time_ms: Optional[int] = None,
    ) -> None:
        with self._session() as db:
            log = db.get(AgentJobLog, log_id)
            if not log:
                raise JobNotFoundError(f"Stage log not found: {log_id}")
            log.status = status
            log.message = message
            log.output_data = output_data
            log.execution_time_ms = execution_time_ms
            db.commit()

    def list_jobs(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[JobResponse], int]:
        if sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"sort_by must be one of {', '.join(SORTABLE_FIELDS)}")

        with self._session() as db:
            query = db.query(AgentJob)
            if user_id:
                query = query.filter(AgentJob.user_id == user_id)
            if status:
                query = query.filter(AgentJob.status == status)

            total = query.count()

            column = getattr(AgentJob, sort_by)
            ordering = column.asc() if sort_order == "asc" else column.desc()
            jobs = query.order_by(ordering, AgentJob.id).offset(offset).limit(limit).all()
            return [JobResponse.model_validate(job) for job in jobs], total

    def save_artifacts(self, context: PipelineContext, quality_score: Optional[float] = None) -> Dict[str, str]:
        """Persist the persona and its room from a finished context."""
        character = context.character
        asset = context.asset
        image_prompt = context.image_prompt

        with self._session() as db:
            persona = Persona(
                id=f"persona_{uuid.uuid4().hex[:12]}",
                user_id=context.input.user_id,
                job_id=context.job_id,
                name=character.name,
                archetype=character.archetype,
                keywords=character.keywords,
                system_prompt=context.generated_prompt.system_prompt,
                need_vectors=context.need_vector.model_dump(mode="json"),
                trauma_and_learning=character.trauma_and_learning.model_dump(mode="json"),
                survival_strategies=[s.model_dump(mode="json") for s in character.survival_strategies],
                personality_traits=character.personality_traits.model_dump(mode="json"),
                conversation_patterns=character.conversation_patterns.model_dump(mode="json"),
                quality=quality_score,
            )
            room = Room(
                id=f"room_{uuid.uuid4().hex[:12]}",
                user_id=context.input.user_id,
                image_url=asset.image_ref,
                image_source=asset.source,
                preset_id=asset.preset_id,
                image_prompt=image_prompt.image_prompt if image_prompt else None,
                visual_elements=image_prompt.visual_elements.model_dump(mode="json") if image_prompt else {},
            )
            persona.room = room
            db.add(persona)
            db.commit()
            logger.info(f"[JobStore] Saved persona {persona.id} and room {room.id} for job {context.job_id}")
            return {"persona_id": persona.id, "room_id": room.id}

    def stats(self) -> AgentStats:
        with self._session() as db:
            counts = dict(
                db.query(AgentJob.status, func.count(AgentJob.id)).group_by(AgentJob.status).all()
            )
            total = sum(counts.values())
            completed = counts.get(JobStatus.COMPLETED.value, 0)

            avg_time, avg_quality = (
                db.query(func.avg(AgentJob.execution_time_ms), func.avg(AgentJob.quality_score))
                .filter(AgentJob.status == JobStatus.COMPLETED.value)
                .one()
            )

            return AgentStats(
                total_jobs=total,
                completed_jobs=completed,
                failed_jobs=counts.get(JobStatus.FAILED.value, 0),
                processing_jobs=counts.get(JobStatus.PROCESSING.value, 0),
                success_rate=round(completed / total * 100, 2) if total else 0.0,
                average_execution_time_ms=round(float(avg_time or 0), 2),
                average_quality_score=round(float(avg_quality or 0), 2),
                total_personas_created=db.query(func.count(Persona.id)).scalar() or 0,
                total_rooms_created=db.query(func.count(Room.id)).scalar() or 0,
            )

    def error_report(self, limit: int = 20, offset: int = 0) -> ErrorReport:
        """Failed jobs newest first, with error counts per agent and the commonest reasons."""
        failed = JobStatus.FAILED.value
        with self._session() as db:
            total = db.query(func.count(AgentJob.id)).filter(AgentJob.status == failed).scalar() or 0

            by_agent = dict(
                db.query(AgentJobLog.agent_name, func.count(AgentJobLog.id))
                .filter(AgentJobLog.status == StageStatus.ERROR.value)
                .group_by(AgentJobLog.agent_name)
                .all()
            )

            count = func.count(AgentJob.id)
            reasons = (
                db.query(AgentJob.error_message, count)
                .filter(AgentJob.status == failed, AgentJob.error_message.isnot(None))
                .group_by(AgentJob.error_message)
                .order_by(count.desc(), AgentJob.error_message)
                .limit(TOP_FAILURE_REASONS)
                .all()
            )

            jobs = (
                db.query(AgentJob)
                .options(selectinload(AgentJob.logs))
                .filter(AgentJob.status == failed)
                .order_by(AgentJob.completed_at.desc(), AgentJob.id)
                .offset(offset)
                .limit(limit)
                .all()
            )
            data = [
                FailedJob(
                    id=job.id,
                    user_id=job.user_id,
                    error_message=job.error_message,
                    attempt=job.attempt or 1,
                    completed_at=job.completed_at,
                    created_at=job.created_at,
                    error_logs=[
                        StageLogResponse.model_validate(log)
                        for log in job.logs if log.status == StageStatus.ERROR.value
                    ],
                )
                for job in jobs
            ]

            return ErrorReport(
                total_failed_jobs=total,
                errors_by_agent=by_agent,
                top_failure_reasons=[FailureReason(message=m, count=c) for m, c in reasons],
                data=data,
                pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(data) < total),
            )

    def quality_report(self, threshold: float = LOW_QUALITY_THRESHOLD) -> QualityReport:
        """Score spread over completed jobs and the lowest scorers below `threshold`."""
        with self._session() as db:
            scored = db.query(AgentJob).filter(
                AgentJob.status == JobStatus.COMPLETED.value, AgentJob.quality_score.isnot(None),
            )
            scores = [s for (s,) in scored.with_entities(AgentJob.quality_score).all()]

            distribution = {label: 0 for label, _, _ in QUALITY_BUCKETS}
            for score in scores:
                for label, low, high in QUALITY_BUCKETS:
                    if low <= score < high:
                        distribution[label] += 1
                        break

            low_jobs = (
                scored.filter(AgentJob.quality_score < threshold)
                .order_by(AgentJob.quality_score.asc(), AgentJob.id)
                .limit(LOW_QUALITY_LIMIT)
                .all()
            )

            return QualityReport(
                total_scored=len(scores),
                average_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
                min_score=min(scores) if scores else None,
                max_score=max(scores) if scores else None,
                distribution=distribution,
                threshold=threshold,
                low_quality_jobs=[JobResponse.model_validate(job) for job in low_jobs],
            )
