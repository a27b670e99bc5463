import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from conftest import FakeImageModel, FakeTextModel
from knock.agents.base import Stage
from knock.agents.orchestrator import CANCEL_MESSAGE, PipelineOrchestrator, build_orchestrator, default_stages
from knock.core.config import Settings
from knock.core.exceptions import JobNotFoundError, JobStateError, RemoteModelError
from knock.models import Persona, Room
from knock.services.job_store import SQLJobStore


AGENTS = ["Agent1", "Agent2", "Agent3", "Agent4", "Agent5"]


def _run(orchestrator, pipeline_input):
    job = orchestrator.create_job(pipeline_input)
    return asyncio.run(orchestrator.run_job(job.id))


def _stage_statuses(job):
    return [(log.agent_name, log.status) for log in job.logs]


def test_dry_run_completes_all_stages(orchestrator, pipeline_input):
    job = _run(orchestrator, pipeline_input)

    assert job.status == "completed"
    assert job.error_message is None
    assert _stage_statuses(job) == [(name, "completed") for name in AGENTS]
    assert all(log.output_data for log in job.logs)
    assert job.logs[0].input_data["input"]["user_id"] == "user-123"
    assert set(job.logs[1].input_data) == {"need_vector"}

    output = job.output
    assert output["dry_run"] is True
    assert output["persona_id"] is None and output["room_id"] is None
    assert output["character"]["name"] == "Minsu"
    assert output["system_prompt"]["text"].startswith("# System Prompt: Minsu")
    assert output["system_prompt"]["template_id"] == "default-template-v1"
    assert output["image"]["source"] == "preset"
    assert output["quality_score"] == job.quality_score
    assert 0 <= job.quality_score <= 100


def test_dry_run_saves_nothing(orchestrator, pipeline_input, session_factory):
    _run(orchestrator, pipeline_input)

    db = session_factory()
    try:
        assert db.query(Persona).count() == 0
        assert db.query(Room).count() == 0
    finally:
        db.close()


def test_stage_failure_skips_remaining_stages(job_store, pool_store, pipeline_input, test_settings):
    model = FakeTextModel(fail_on="character")
    orchestrator = PipelineOrchestrator(job_store, default_stages(model, pool_store, settings=test_settings))

    job = _run(orchestrator, pipeline_input)

    assert job.status == "failed"
    assert job.output is None
    assert job.error_message == "character provider unavailable"
    assert _stage_statuses(job) == [
        ("Agent1", "completed"),
        ("Agent2", "error"),
        ("Agent3", "skipped"),
        ("Agent4", "skipped"),
        ("Agent5", "skipped"),
    ]
    assert job.logs[1].message == "character provider unavailable"


def test_image_failure_falls_back_to_preset(job_store, pool_store, text_model, pipeline_input, storage):
    settings = Settings(USE_AI_IMAGE_GENERATION=True, IMAGE_GENERATION_TIMEOUT=1.0)
    image_model = FakeImageModel(error=RemoteModelError("quota exceeded"))
    stages = default_stages(text_model, pool_store, image_model, storage, settings)

    job = _run(PipelineOrchestrator(job_store, stages), pipeline_input)

    assert job.status == "completed"
    assert job.output["image"]["source"] == "preset"
    assert job.output["image"]["preset_id"]
    assert len(image_model.prompts) == 1


def test_full_run_saves_persona_and_room(job_store, pool_store, text_model, pipeline_input, storage, session_factory):
    settings = Settings(USE_AI_IMAGE_GENERATION=True, IMAGE_GENERATION_TIMEOUT=1.0)
    stages = default_stages(text_model, pool_store, FakeImageModel(), storage, settings)
    data = pipeline_input.model_copy(update={"dry_run": False})

    job = _run(PipelineOrchestrator(job_store, stages), data)

    assert job.status == "completed"
    assert job.output["image"]["source"] == "generated"
    db = session_factory()
    try:
        persona = db.get(Persona, job.output["persona_id"])
        assert persona.job_id == job.id
        assert persona.room.id == job.output["room_id"]
        assert persona.room.image_source == "generated"
    finally:
        db.close()


def test_status_reads_are_idempotent(orchestrator, pipeline_input):
    job = _run(orchestrator, pipeline_input)

    assert orchestrator.get_job_status(job.id) == orchestrator.get_job_status(job.id)
    assert orchestrator.get_job_status("job_missing") is None


def test_retry_runs_new_attempt_under_same_id(job_store, pool_store, pipeline_input, test_settings):
    model = FakeTextModel(fail_on="character")
    orchestrator = PipelineOrchestrator(job_store, default_stages(model, pool_store, settings=test_settings))
    failed = _run(orchestrator, pipeline_input)

    model.fail_on = None
    handle = asyncio.run(orchestrator.retry_job(failed.id, wait=True))
    job = orchestrator.get_job_status(failed.id)

    assert handle.job_id == failed.id
    assert handle.status == "completed"
    assert job.status == "completed"
    assert job.attempt == 2
    assert job.error_message is None
    assert len(job.logs) == 10
    assert [log.attempt for log in job.logs] == [1] * 5 + [2] * 5
    assert _stage_statuses(job)[5:] == [(name, "completed") for name in AGENTS]


def test_retry_requires_failed_job(orchestrator, pipeline_input):
    job = _run(orchestrator, pipeline_input)

    with pytest.raises(JobStateError):
        orchestrator.start_retry(job.id)
    with pytest.raises(JobNotFoundError):
        orchestrator.start_retry("job_missing")


def test_cancel_stops_at_next_stage_boundary(job_store, pool_store, pipeline_input, test_settings):
    model = FakeTextModel()
    orchestrator = PipelineOrchestrator(job_store, default_stages(model, pool_store, settings=test_settings))
    job = orchestrator.create_job(pipeline_input)

    def cancel_during_agent2(kind):
        if kind == "character":
            orchestrator.cancel_job(job.id)

    model.on_call = cancel_during_agent2
    result = asyncio.run(orchestrator.run_job(job.id))

    assert result.status == "failed"
    assert result.error_message == CANCEL_MESSAGE
    assert result.output is None
    assert _stage_statuses(result) == [
        ("Agent1", "completed"),
        ("Agent2", "completed"),
        ("System", "error"),
        ("Agent3", "skipped"),
        ("Agent4", "skipped"),
        ("Agent5", "skipped"),
    ]


def test_cancel_before_run_skips_every_stage(orchestrator, pipeline_input):
    job = orchestrator.create_job(pipeline_input)

    cancelled = orchestrator.cancel_job(job.id)
    result = asyncio.run(orchestrator.run_job(job.id))

    assert cancelled.status == "failed"
    assert result.status == "failed"
    assert _stage_statuses(result) == [("System", "error")] + [(name, "skipped") for name in AGENTS]


def test_cancel_requires_processing_job(orchestrator, pipeline_input):
    job = _run(orchestrator, pipeline_input)

    with pytest.raises(JobStateError) as exc_info:
        orchestrator.cancel_job(job.id)
    assert exc_info.value.current_status == "completed"

    with pytest.raises(JobNotFoundError):
        orchestrator.cancel_job("job_missing")


def test_execute_in_background(orchestrator, pipeline_input):
    async def scenario():
        handle = await orchestrator.execute(pipeline_input)
        await orchestrator.wait_for_pending()
        return handle

    handle = asyncio.run(scenario())

    assert handle.status == "processing"
    assert handle.job_id.startswith("job_")
    assert orchestrator.get_job_status(handle.job_id).status == "completed"


def test_listing_and_stats(orchestrator, pipeline_input):
    for _ in range(3):
        _run(orchestrator, pipeline_input)

    page = orchestrator.list_jobs(limit=2)
    assert page.pagination.total == 3
    assert page.pagination.has_more is True
    assert len(page.data) == 2

    last = orchestrator.list_jobs(limit=2, offset=2)
    assert last.pagination.has_more is False

    assert len(orchestrator.get_user_jobs("user-123")) == 3
    assert orchestrator.get_user_jobs("someone-else") == []

    stats = orchestrator.stats()
    assert stats.total_jobs == 3
    assert stats.success_rate == 100.0


class BrokenLogStore(SQLJobStore):
    def finish_stage_log(self, log_id, status, message=None, output_data=None, execution_time_ms=None):
        raise OperationalError("UPDATE agent_job_logs", {}, Exception("database is locked"))


def test_persistence_errors_propagate(session_factory, pool_store, text_model, pipeline_input, test_settings):
    orchestrator = PipelineOrchestrator(
        BrokenLogStore(session_factory), default_stages(text_model, pool_store, settings=test_settings),
    )

    with pytest.raises(OperationalError):
        _run(orchestrator, pipeline_input)


def test_quality_scorer_is_pluggable(job_store, pool_store, text_model, pipeline_input, test_settings):
    orchestrator = PipelineOrchestrator(
        job_store,
        default_stages(text_model, pool_store, settings=test_settings),
        quality_scorer=lambda inputs: 42.0,
    )

    job = _run(orchestrator, pipeline_input)

    assert job.quality_score == 42.0
    assert job.output["quality_score"] == 42.0


def test_build_orchestrator_wires_default_stages(session_factory, test_settings):
    orchestrator = build_orchestrator(session_factory, test_settings, text_model=FakeTextModel())

    assert [stage.name for stage in orchestrator.stages] == AGENTS
    assert orchestrator.stages[-1].image_model is None


def _boom(inputs):
    raise ZeroDivisionError("scorer bug")


def test_scorer_crash_fails_the_job(job_store, pool_store, text_model, pipeline_input, test_settings):
    orchestrator = PipelineOrchestrator(
        job_store, default_stages(text_model, pool_store, settings=test_settings), quality_scorer=_boom,
    )

    job = _run(orchestrator, pipeline_input)

    assert job.status == "failed"
    assert job.output is None
    assert "scorer bug" in job.error_message
    assert _stage_statuses(job) == [(name, "completed") for name in AGENTS] + [("System", "error")]

    # the failed job can be retried once the scorer is fixed
    orchestrator.quality_scorer = lambda inputs: 50.0
    asyncio.run(orchestrator.retry_job(job.id, wait=True))
    assert orchestrator.get_job_status(job.id).status == "completed"


class SnapshotFailsStage(Stage):
    name = "Agent1"
    description = "Need vector analysis"
    output_field = "need_vector"

    def input_snapshot(self, context):
        raise TypeError("cannot snapshot input")

    async def run(self, context):
        raise AssertionError("run should not be reached")


class WrongOutputStage(Stage):
    name = "Agent1"
    description = "Need vector analysis"
    output_field = "need_vector"

    async def run(self, context):
        return {"belonging": 0.9}


@pytest.mark.parametrize("broken_stage, message", [
    (SnapshotFailsStage(), "cannot snapshot input"),
    (WrongOutputStage(), "need_vector"),
])
def test_stage_bookkeeping_errors_fail_the_stage(
    job_store, pool_store, text_model, pipeline_input, test_settings, broken_stage, message,
):
    stages = [broken_stage] + default_stages(text_model, pool_store, settings=test_settings)[1:]

    job = _run(PipelineOrchestrator(job_store, stages), pipeline_input)

    assert job.status == "failed"
    assert message in job.error_message
    assert _stage_statuses(job) == [("Agent1", "error")] + [(name, "skipped") for name in AGENTS[1:]]
