import copy

from fastapi.testclient import TestClient

from conftest import INPUT_PAYLOAD
from knock.main import app
from knock.schemas.data_pool import PromptTemplateCreate

AGENT_API = "/api/v1/admin/agent"
TEMPLATE_API = "/api/v1/admin/templates"
MONITORING_API = "/api/v1/admin/monitoring"


def _payload(**overrides):
    payload = copy.deepcopy(INPUT_PAYLOAD)
    payload.update(overrides)
    return payload


def test_execute_runs_pipeline(client):
    response = client.post(f"{AGENT_API}/execute", json=_payload())

    assert response.status_code == 202
    handle = response.json()
    assert handle["status"] == "processing"

    job = client.get(f"{AGENT_API}/jobs/{handle['job_id']}").json()
    assert job["status"] == "completed"
    assert [log["agent_name"] for log in job["logs"]] == ["Agent1", "Agent2", "Agent3", "Agent4", "Agent5"]
    assert job["output"]["character"]["name"] == "Minsu"


def test_execute_validates_input(client):
    response = client.post(f"{AGENT_API}/execute", json=_payload(user_id=""))
    assert response.status_code == 422


def test_execute_checks_template(client, pool_store):
    missing = client.post(f"{AGENT_API}/execute", json=_payload(template_id="nope"))
    assert missing.status_code == 404

    pool_store.create_template(PromptTemplateCreate(
        id="retired", name="Retired", sections={"why": "## WHY"}, is_active=False,
    ))
    inactive = client.post(f"{AGENT_API}/execute", json=_payload(template_id="retired"))
    assert inactive.status_code == 400


def test_job_listing(client):
    for _ in range(3):
        client.post(f"{AGENT_API}/execute", json=_payload())
    client.post(f"{AGENT_API}/execute", json=_payload(user_id="user-999"))

    page = client.get(f"{AGENT_API}/jobs", params={"limit": 2}).json()
    assert page["pagination"] == {"total": 4, "limit": 2, "offset": 0, "has_more": True}

    completed = client.get(f"{AGENT_API}/jobs", params={"status": "completed", "user_id": "user-999"}).json()
    assert completed["pagination"]["total"] == 1

    user_jobs = client.get(f"{AGENT_API}/users/user-123/jobs").json()
    assert len(user_jobs) == 3

    assert client.get(f"{AGENT_API}/jobs", params={"sort_by": "user_id"}).status_code == 422
    assert client.get(f"{AGENT_API}/jobs", params={"limit": 500}).status_code == 422


def test_unknown_job_is_404(client):
    response = client.get(f"{AGENT_API}/jobs/job_missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Job not found"


def test_retry_failed_job(client, text_model):
    text_model.fail_on = "character"
    job_id = client.post(f"{AGENT_API}/execute", json=_payload()).json()["job_id"]
    assert client.get(f"{AGENT_API}/jobs/{job_id}").json()["status"] == "failed"

    text_model.fail_on = None
    response = client.post(f"{AGENT_API}/jobs/{job_id}/retry")

    assert response.status_code == 202
    assert "attempt 2" in response.json()["message"]
    job = client.get(f"{AGENT_API}/jobs/{job_id}").json()
    assert job["status"] == "completed"
    assert job["attempt"] == 2


def test_retry_rejects_unknown_or_active_jobs(client):
    job_id = client.post(f"{AGENT_API}/execute", json=_payload()).json()["job_id"]

    assert client.post(f"{AGENT_API}/jobs/{job_id}/retry").status_code == 400
    assert client.post(f"{AGENT_API}/jobs/job_missing/retry").status_code == 404


def test_cancel_processing_job(client, orchestrator, pipeline_input):
    job = orchestrator.create_job(pipeline_input)

    response = client.delete(f"{AGENT_API}/jobs/{job.id}")
    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["error_message"] == "Job cancelled by administrator"

    assert client.delete(f"{AGENT_API}/jobs/{job.id}").status_code == 400
    assert client.delete(f"{AGENT_API}/jobs/job_missing").status_code == 404


def test_stats(client):
    client.post(f"{AGENT_API}/execute", json=_payload())

    stats = client.get(f"{AGENT_API}/stats").json()

    assert stats["total_jobs"] == 1
    assert stats["completed_jobs"] == 1
    assert stats["success_rate"] == 100.0


def test_test_pipeline_is_dry_run(client):
    response = client.post(f"{AGENT_API}/test-pipeline")

    assert response.status_code == 202
    job = client.get(f"{AGENT_API}/jobs/{response.json()['job_id']}").json()
    assert job["user_id"] == "test-user-admin"
    assert job["dry_run"] is True
    assert job["output"]["persona_id"] is None


def test_presets(client):
    presets = client.get(f"{AGENT_API}/presets").json()

    assert len(presets) == 10
    assert presets[0]["id"] == "cozy-developer"


def test_template_crud(client):
    templates = client.get(TEMPLATE_API).json()
    assert [t["id"] for t in templates] == ["default-template-v1"]

    body = {"id": "casual-v2", "name": "Casual", "version": "2.0", "sections": {"why": "## WHY\n{character_name}"}}
    created = client.post(TEMPLATE_API, json=body)
    assert created.status_code == 201
    assert created.json()["is_default"] is False

    assert client.post(TEMPLATE_API, json=body).status_code == 409
    assert client.get(f"{TEMPLATE_API}/casual-v2").json()["version"] == "2.0"
    assert client.get(f"{TEMPLATE_API}/missing").status_code == 404

    default = client.post(f"{TEMPLATE_API}/casual-v2/default")
    assert default.json()["is_default"] is True
    assert client.get(f"{TEMPLATE_API}/default-template-v1").json()["is_default"] is False
    assert client.post(f"{TEMPLATE_API}/missing/default").status_code == 404


def test_template_syntax_is_checked(client):
    body = {"name": "Broken", "sections": {"why": "## WHY\n{character_name"}}

    response = client.post(TEMPLATE_API, json=body)

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Invalid template syntax"
    assert response.json()["detail"]["details"][0].startswith('Section "why"')


def _casual_template(client):
    body = {"id": "casual-v2", "name": "Casual", "sections": {"why": "## WHY\n{character_name}"}}
    return client.post(TEMPLATE_API, json=body).json()


def test_template_update_bumps_version(client):
    _casual_template(client)

    renamed = client.patch(f"{TEMPLATE_API}/casual-v2", json={"name": "Casual Chat"}).json()
    assert renamed["name"] == "Casual Chat"
    assert renamed["version"] == "1.0"

    edited = client.patch(f"{TEMPLATE_API}/casual-v2", json={"sections": {"why": "## WHY\nI am {character_name}"}})
    assert edited.status_code == 200
    assert edited.json()["version"] == "1.1"
    assert edited.json()["sections"]["why"].endswith("I am {character_name}")

    pinned = client.patch(f"{TEMPLATE_API}/casual-v2", json={"sections": {"why": "## WHY"}, "version": "3.0"})
    assert pinned.json()["version"] == "3.0"


def test_template_update_rejects_bad_input(client):
    _casual_template(client)

    broken = client.patch(f"{TEMPLATE_API}/casual-v2", json={"sections": {"why": "{character_name"}})
    assert broken.status_code == 400
    assert broken.json()["detail"]["error"] == "Invalid template syntax"
    assert client.get(f"{TEMPLATE_API}/casual-v2").json()["version"] == "1.0"

    assert client.patch(f"{TEMPLATE_API}/missing", json={"name": "x"}).status_code == 404
    assert client.patch(f"{TEMPLATE_API}/default-template-v1", json={"is_active": False}).status_code == 400


def test_template_delete_is_soft_by_default(client):
    _casual_template(client)

    response = client.delete(f"{TEMPLATE_API}/casual-v2")
    assert response.status_code == 200
    assert response.json()["message"] == "Template deactivated"
    assert client.get(f"{TEMPLATE_API}/casual-v2").json()["is_active"] is False
    active = client.get(TEMPLATE_API, params={"active_only": True}).json()
    assert [t["id"] for t in active] == ["default-template-v1"]

    hard = client.delete(f"{TEMPLATE_API}/casual-v2", params={"hard_delete": True})
    assert hard.json()["message"] == "Template deleted"
    assert client.get(f"{TEMPLATE_API}/casual-v2").status_code == 404


def test_template_delete_guards(client):
    assert client.delete(f"{TEMPLATE_API}/default-template-v1").status_code == 400
    assert client.delete(f"{TEMPLATE_API}/missing").status_code == 404


def test_template_preview(client):
    body = {"character_name": "Minsu", "variables": {"user_name": "Jisoo"}}

    response = client.post(f"{TEMPLATE_API}/default-template-v1/preview", json=body)

    assert response.status_code == 200
    preview = response.json()
    assert preview["template_version"] == "1.0"
    assert preview["full_prompt"].startswith("# System Prompt: Minsu")
    assert "I am Jisoo's roommate." in preview["sections"]["why"]
    assert "{needs_block}" in preview["sections"]["why"]
    assert "needs_block" in preview["missing_variables"]
    assert "user_name" not in preview["missing_variables"]
    assert preview["character_count"] == len(preview["full_prompt"])
    assert preview["token_count"] > 0

    assert client.post(f"{TEMPLATE_API}/missing/preview", json=body).status_code == 404


def test_monitoring_errors(client, text_model):
    client.post(f"{AGENT_API}/execute", json=_payload())
    text_model.fail_on = "character"
    failed_id = client.post(f"{AGENT_API}/execute", json=_payload()).json()["job_id"]

    report = client.get(f"{MONITORING_API}/errors").json()

    assert report["total_failed_jobs"] == 1
    assert report["errors_by_agent"] == {"Agent2": 1}
    assert report["top_failure_reasons"] == [{"message": "character provider unavailable", "count": 1}]
    assert report["data"][0]["id"] == failed_id
    assert [log["agent_name"] for log in report["data"][0]["error_logs"]] == ["Agent2"]
    assert client.get(f"{MONITORING_API}/errors", params={"limit": 0}).status_code == 422


def test_monitoring_quality(client, orchestrator):
    orchestrator.quality_scorer = lambda inputs: 55.0
    job_id = client.post(f"{AGENT_API}/execute", json=_payload()).json()["job_id"]

    report = client.get(f"{MONITORING_API}/quality").json()

    assert report["total_scored"] == 1
    assert report["average_score"] == 55.0
    assert report["distribution"]["50-69"] == 1
    assert [job["id"] for job in report["low_quality_jobs"]] == [job_id]

    lenient = client.get(f"{MONITORING_API}/quality", params={"threshold": 50}).json()
    assert lenient["low_quality_jobs"] == []
    assert client.get(f"{MONITORING_API}/quality", params={"threshold": 150}).status_code == 422


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["services"]["database"] == "ok"


def test_missing_services_return_503():
    app.state.orchestrator = None
    app.state.pool_store = None

    client = TestClient(app)

    assert client.get(f"{AGENT_API}/stats").status_code == 503
    assert client.get(TEMPLATE_API).status_code == 503
    assert client.get(f"{MONITORING_API}/errors").status_code == 503
    assert client.get("/api/v1/admin/data-pool/visuals").status_code == 503
