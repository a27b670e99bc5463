"""
Pipeline Orchestrator
Runs the five agents in order for a job, records one stage log per agent,
and owns the job lifecycle: execute, status, retry, list, cancel, stats.

Stage failures end the attempt: the failing stage is logged as ``error``,
the remaining stages as ``skipped``, and the job is marked ``failed``.
Persistence errors are not stage failures and propagate to the caller.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy.orm import sessionmaker

from knock.agents.base import Stage
from knock.agents.character_profile import CharacterProfileStage
from knock.agents.image_generation import ImageGenerationStage
from knock.agents.image_prompt import ImagePromptStage
from knock.agents.need_vector import NeedVectorStage
from knock.agents.prompt_assembly import PromptAssemblyStage
from knock.core.config import Settings, settings as default_settings
from knock.core.exceptions import JobNotFoundError, JobStateError
from knock.schemas.job import (
    JobStatus, StageStatus, JobResponse, JobStatusResponse, JobHandle,
    JobListResponse, Pagination, AgentStats, ErrorReport, QualityReport,
)
from knock.schemas.pipeline import PipelineContext, PipelineInput
from knock.services.data_pool import SQLDataPoolStore
from knock.services.job_store import JobStore, SQLJobStore, LOW_QUALITY_THRESHOLD
from knock.services.llm import TextModel, ImageModel, get_text_model, get_image_model
from knock.services.quality import QualityInputs, QualityScorer, score_quality
from knock.services.storage import StorageService

logger = logging.getLogger(__name__)

CANCEL_MESSAGE = "Job cancelled by administrator"
SYSTEM_AGENT = "System"


class PipelineOrchestrator:
    """Drives jobs through a fixed, ordered list of stages."""

    def __init__(
        self,
        store: JobStore,
        stages: Sequence[Stage],
        quality_scorer: QualityScorer = score_quality,
    ):
        self.store = store
        self.stages: List[Stage] = list(stages)
        self.quality_scorer = quality_scorer
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    def create_job(self, data: PipelineInput) -> JobResponse:
        """Persist a new job in ``processing`` before any stage runs."""
        job_id = f"job_{uuid.uuid4().hex[:12]}"
        job = self.store.create_job(
            job_id,
            user_id=data.user_id,
            input_data=data.model_dump(mode="json"),
            dry_run=data.dry_run,
        )
        logger.info(f"[Pipeline] Created job {job_id} | user={data.user_id} dry_run={data.dry_run}")
        return job

    async def execute(self, data: PipelineInput, wait: bool = False) -> JobHandle:
        """Create a job and run it, in the background unless ``wait`` is set."""
        job = self.create_job(data)
        return await self._dispatch(job.id, wait, "Pipeline execution started")

    def start_retry(self, job_id: str) -> JobResponse:
        """Reset a failed job for a new attempt. Raises JobNotFoundError / JobStateError."""
        job = self.store.start_attempt(job_id)
        logger.info(f"[Pipeline] Retrying job {job_id} | attempt={job.attempt}")
        return job

    async def retry_job(self, job_id: str, wait: bool = False) -> JobHandle:
        self.start_retry(job_id)
        return await self._dispatch(job_id, wait, "Pipeline retry started")

    def cancel_job(self, job_id: str) -> JobResponse:
        """Mark a processing job failed; the running task stops at the next stage boundary."""
        job = self.store.get_job(job_id)
        if not job:
            raise JobNotFoundError(f"Job not found: {job_id}")
        if job.status != JobStatus.PROCESSING.value:
            raise JobStateError(
                f"Only processing jobs can be cancelled (current status: {job.status})",
                current_status=job.status,
            )

        if self.store.fail_job(job_id, CANCEL_MESSAGE):
            self.store.add_stage_log(
                job_id, SYSTEM_AGENT, StageStatus.ERROR.value,
                attempt=job.attempt, message=CANCEL_MESSAGE,
            )
            logger.warning(f"[Pipeline] Job {job_id} cancelled")
        return self.store.get_job(job_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job_status(self, job_id: str) -> Optional[JobStatusResponse]:
        return self.store.get_job(job_id)

    def get_user_jobs(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> List[JobResponse]:
        jobs, _ = self.store.list_jobs(
            user_id=user_id, status=status, limit=limit, offset=offset,
            sort_by=sort_by, sort_order=sort_order,
        )
        return jobs

    def list_jobs(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> JobListResponse:
        jobs, total = self.store.list_jobs(
            user_id=user_id, status=status, limit=limit, offset=offset,
            sort_by=sort_by, sort_order=sort_order,
        )
        return JobListResponse(
            data=jobs,
            pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(jobs) < total),
        )

    def stats(self) -> AgentStats:
        return self.store.stats()

    def error_report(self, limit: int = 20, offset: int = 0) -> ErrorReport:
        return self.store.error_report(limit=limit, offset=offset)

    def quality_report(self, threshold: float = LOW_QUALITY_THRESHOLD) -> QualityReport:
        return self.store.quality_report(threshold=threshold)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _dispatch(self, job_id: str, wait: bool, message: str) -> JobHandle:
        if wait:
            job = await self.run_job(job_id)
            return JobHandle(job_id=job_id, status=job.status, message=job.error_message or "Pipeline finished")

        task = asyncio.create_task(self.run_job(job_id), name=f"pipeline-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return JobHandle(job_id=job_id, status=JobStatus.PROCESSING.value, message=message)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error:
            logger.error(f"[Pipeline] Background task {task.get_name()} crashed: {error}", exc_info=error)

    async def wait_for_pending(self):
        """Wait for background runs started by this orchestrator."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _still_processing(self, job_id: str) -> bool:
        job = self.store.get_job(job_id)
        return job is not None and job.status == JobStatus.PROCESSING.value

    def _skip_stages(self, job_id: str, attempt: int, stages: Sequence[Stage], reason: str):
        for stage in stages:
            self.store.add_stage_log(
                job_id, stage.name, StageStatus.SKIPPED.value, attempt=attempt, message=reason,
            )

    async def run_job(self, job_id: str) -> JobStatusResponse:
        """Run every stage for the job's current attempt and return the final job."""
        job = self.store.get_job(job_id)
        if not job:
            raise JobNotFoundError(f"Job not found: {job_id}")
        if job.status == JobStatus.COMPLETED.value:
            logger.warning(f"[Pipeline] Job {job_id} already completed; nothing to run")
            return job

        attempt = job.attempt
        context = PipelineContext(job_id=job_id, input=PipelineInput.model_validate(job.input))
        pipeline_start = time.time()
        logger.info(f"[Pipeline] Starting job {job_id} | attempt={attempt}")

        for index, stage in enumerate(self.stages):
            if not self._still_processing(job_id):
                logger.warning(f"[Pipeline] Job {job_id} is no longer processing; stopping before {stage.name}")
                self._skip_stages(job_id, attempt, self.stages[index:], "Skipped: job is no longer processing")
                return self.store.get_job(job_id)

            step = f"[{index + 1}/{len(self.stages)}]"
            logger.info(f"[Pipeline] {step} {stage.name} starting | {stage.description}")
            stage_start = time.time()

            try:
                input_data = stage.input_snapshot(context)
            except Exception as e:
                return self._fail_stage(job_id, attempt, index, None, e, stage_start)

            log_id = self.store.add_stage_log(
                job_id, stage.name, StageStatus.PROCESSING.value, attempt=attempt,
                message=f"{stage.description} started", input_data=input_data,
            )

            try:
                output = await stage.run(context)
                setattr(context, stage.output_field, output)
                output_data = output.model_dump(mode="json")
            except Exception as e:
                return self._fail_stage(job_id, attempt, index, log_id, e, stage_start)

            elapsed_ms = int((time.time() - stage_start) * 1000)
            self.store.finish_stage_log(
                log_id, StageStatus.COMPLETED.value,
                message=f"{stage.description} completed",
                output_data=output_data,
                execution_time_ms=elapsed_ms,
            )
            logger.info(f"[Pipeline] {step} {stage.name} completed in {elapsed_ms}ms")

        if not self._still_processing(job_id):
            logger.warning(f"[Pipeline] Job {job_id} was cancelled during the last stage; discarding results")
            return self.store.get_job(job_id)

        try:
            quality = self.quality_scorer(QualityInputs(
                need_vector=context.need_vector,
                character=context.character,
                generated_prompt=context.generated_prompt,
                asset=context.asset,
            ))
            output = self.build_output(context, quality, {})
        except Exception as e:
            message = f"Result assembly failed: {str(e) or e.__class__.__name__}"
            logger.error(f"[Pipeline] Job {job_id} {message}")
            self.store.add_stage_log(
                job_id, SYSTEM_AGENT, StageStatus.ERROR.value, attempt=attempt, message=message,
            )
            self.store.fail_job(job_id, message)
            return self.store.get_job(job_id)

        if context.input.dry_run:
            logger.info(f"[Pipeline] Dry run; persona and room not saved for job {job_id}")
        else:
            output.update(self.store.save_artifacts(context, quality))

        self.store.complete_job(job_id, output, quality)
        logger.info(
            f"[Pipeline] Job {job_id} completed in {time.time() - pipeline_start:.2f}s | quality={quality}"
        )
        return self.store.get_job(job_id)

    def _fail_stage(
        self,
        job_id: str,
        attempt: int,
        index: int,
        log_id: Optional[int],
        error: Exception,
        stage_start: float,
    ) -> JobStatusResponse:
        """Record the stage error, skip the rest and fail the job."""
        stage = self.stages[index]
        elapsed_ms = int((time.time() - stage_start) * 1000)
        message = str(error) or error.__class__.__name__
        logger.error(f"[Pipeline] [{index + 1}/{len(self.stages)}] {stage.name} failed after {elapsed_ms}ms: {message}")

        if log_id is None:
            self.store.add_stage_log(
                job_id, stage.name, StageStatus.ERROR.value, attempt=attempt,
                message=message, execution_time_ms=elapsed_ms,
            )
        else:
            self.store.finish_stage_log(
                log_id, StageStatus.ERROR.value, message=message, execution_time_ms=elapsed_ms,
            )
        self._skip_stages(job_id, attempt, self.stages[index + 1:], f"Skipped: {stage.name} failed")
        self.store.fail_job(job_id, message)
        return self.store.get_job(job_id)

    @staticmethod
    def build_output(context: PipelineContext, quality: float, artifacts: Dict[str, str]) -> Dict[str, Any]:
        prompt = context.generated_prompt
        image_prompt = context.image_prompt
        asset = context.asset
        return {
            "persona_id": artifacts.get("persona_id"),
            "room_id": artifacts.get("room_id"),
            "dry_run": context.input.dry_run,
            "quality_score": quality,
            "need_vector": context.need_vector.model_dump(mode="json"),
            "character": context.character.model_dump(mode="json"),
            "system_prompt": {
                "text": prompt.system_prompt,
                "token_count": prompt.token_count,
                "validation": prompt.validation.model_dump(mode="json"),
                "template_id": prompt.template_id,
                "template_version": prompt.template_version,
            },
            "image_prompt": {
                "prompt": image_prompt.image_prompt,
                "visual_elements": image_prompt.visual_elements.model_dump(mode="json"),
                "reasoning": image_prompt.reasoning,
            },
            "image": {
                "source": asset.source,
                "url": asset.image_ref,
                "preset_id": asset.preset_id,
            },
        }


def default_stages(
    text_model: TextModel,
    pool_store: SQLDataPoolStore,
    image_model: Optional[ImageModel] = None,
    storage: Optional[StorageService] = None,
    settings: Optional[Settings] = None,
) -> List[Stage]:
    """Agent1..Agent5 in pipeline order."""
    settings = settings or default_settings
    return [
        NeedVectorStage(text_model, settings.AGENT1_TEMPERATURE, settings.LLM_MAX_TOKENS),
        CharacterProfileStage(text_model, pool_store, settings.AGENT2_TEMPERATURE, settings.LLM_MAX_TOKENS),
        PromptAssemblyStage(pool_store),
        ImagePromptStage(pool_store),
        ImageGenerationStage(
            image_model=image_model,
            storage=storage,
            enabled=settings.USE_AI_IMAGE_GENERATION,
            timeout=settings.IMAGE_GENERATION_TIMEOUT,
        ),
    ]


def build_orchestrator(
    session_factory: sessionmaker,
    settings: Optional[Settings] = None,
    text_model: Optional[TextModel] = None,
    image_model: Optional[ImageModel] = None,
    storage: Optional[StorageService] = None,
) -> PipelineOrchestrator:
    """Wire stores, remote models and stages into an orchestrator."""
    settings = settings or default_settings
    pool_store = SQLDataPoolStore(session_factory)
    text_model = text_model or get_text_model(settings)
    if image_model is None:
        image_model = get_image_model(settings)
    if image_model is not None and storage is None:
        storage = StorageService(settings)

    stages = default_stages(text_model, pool_store, image_model, storage, settings)
    logger.info(f"[Pipeline] Orchestrator ready | provider={settings.LLM_PROVIDER} stages={[s.name for s in stages]}")
    return PipelineOrchestrator(SQLJobStore(session_factory), stages)
