# backend/tests/test_main.py
from unittest.mock import AsyncMock, patch

from lead_pipeline.modules.enrichment.services.bulk_pipeline_service import bulk_job_registry
from lead_pipeline.modules.enrichment.services.domain_validation_service import DomainValidationOutcome
from lead_pipeline.modules.enrichment.services.pipeline_service import Notification, PipelineResult
from lead_pipeline.shared.utils.exceptions import (
    CollaboratorError,
    EntityNotFoundError,
    PipelineAlreadyRunningError,
)

ENDPOINTS = "lead_pipeline.modules.enrichment.api.pipeline_endpoints"
PREFIX = "/api/v1/pipeline"


# --- APP ---

def test_root(test_client):
    response = test_client.get("/")
    assert response.status_code == 200
    assert "running" in response.json()["message"]


def test_health_reports_http_client(test_client):
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "active" in response.json()["http_client"]


def test_request_id_is_echoed(test_client):
    response = test_client.get("/", headers={"X-Request-ID": "req-test1234"})
    assert response.headers["X-Request-ID"] == "req-test1234"


# --- SINGLE-LEAD RUN ---

def test_run_pipeline_returns_result(test_client):
    result = PipelineResult(
        lead_id="lead-1",
        outcome="full",
        domain="acmedental.com",
        match_score=72,
        duration_seconds=4.2,
        steps=["Running Pipeline..."],
        notifications=[Notification("Full Pipeline Complete", "Enriched acmedental.com (Score: 72)")],
    )
    with patch(f"{ENDPOINTS}.PipelineService") as MockService:
        MockService.return_value.run_for_lead_id = AsyncMock(return_value=result)
        response = test_client.post(f"{PREFIX}/leads/lead-1/run", json={"user_id": "user-9"})

        assert MockService.return_value.run_for_lead_id.call_args.kwargs["user_id"] == "user-9"

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "full"
    assert body["notifications"][0]["title"] == "Full Pipeline Complete"


def test_run_pipeline_without_body(test_client):
    with patch(f"{ENDPOINTS}.PipelineService") as MockService:
        MockService.return_value.run_for_lead_id = AsyncMock(return_value=PipelineResult(lead_id="lead-1"))
        response = test_client.post(f"{PREFIX}/leads/lead-1/run")

    assert response.status_code == 200


def test_run_pipeline_unknown_lead(test_client):
    with patch(f"{ENDPOINTS}.PipelineService") as MockService:
        MockService.return_value.run_for_lead_id = AsyncMock(side_effect=EntityNotFoundError("Lead", "nope"))
        response = test_client.post(f"{PREFIX}/leads/nope/run")

    assert response.status_code == 404


def test_run_pipeline_already_running(test_client):
    with patch(f"{ENDPOINTS}.PipelineService") as MockService:
        MockService.return_value.run_for_lead_id = AsyncMock(side_effect=PipelineAlreadyRunningError("lead-1"))
        response = test_client.post(f"{PREFIX}/leads/lead-1/run")

    assert response.status_code == 409


def test_run_pipeline_failure_returns_partial_result(test_client):
    async def fail(lead_id, callbacks, user_id=None):
        callbacks.on_complete(PipelineResult(
            lead_id=lead_id,
            outcome="failed",
            error="calculate-match-score failed (500): boom",
            notifications=[Notification("Pipeline Failed", "boom", "destructive")],
        ))
        raise CollaboratorError("calculate-match-score", "boom", 500)

    with patch(f"{ENDPOINTS}.PipelineService") as MockService:
        MockService.return_value.run_for_lead_id = AsyncMock(side_effect=fail)
        response = test_client.post(f"{PREFIX}/leads/lead-1/run")

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["outcome"] == "failed"
    assert detail["notifications"][0]["title"] == "Pipeline Failed"


# --- VALIDATE DOMAIN ---

def test_validate_domain_uses_stored_domain(test_client, fake_repo):
    fake_repo.add(domain="acmedental.com", source_url="https://acmedental.com", enrichment_logs=[{"source": "apollo_api"}])
    outcome = DomainValidationOutcome(success=True, data={
        "is_valid_domain": True, "is_parked": False, "reason": "OK", "http_status": 200
    })

    with patch(f"{ENDPOINTS}.LeadRepository", return_value=fake_repo), \
         patch(f"{ENDPOINTS}.DomainValidationService") as MockService:
        MockService.return_value.validate_and_save_domain = AsyncMock(return_value=outcome)
        response = test_client.post(f"{PREFIX}/leads/lead-1/validate-domain", json={})

        kwargs = MockService.return_value.validate_and_save_domain.call_args.kwargs
        assert kwargs["source_url"] == "https://acmedental.com"
        assert kwargs["current_logs"] == [{"source": "apollo_api"}]

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["domain"] == "acmedental.com"
    assert body["data"]["is_valid_domain"] is True


def test_validate_domain_failure_is_reported(test_client, fake_repo):
    fake_repo.add(domain="acmedental.com")
    outcome = DomainValidationOutcome(success=False, error=CollaboratorError("validate-domain", "timeout"))

    with patch(f"{ENDPOINTS}.LeadRepository", return_value=fake_repo), \
         patch(f"{ENDPOINTS}.DomainValidationService") as MockService:
        MockService.return_value.validate_and_save_domain = AsyncMock(return_value=outcome)
        response = test_client.post(f"{PREFIX}/leads/lead-1/validate-domain", json={"domain": "acme.com"})

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["domain"] == "acme.com"
    assert "timeout" in response.json()["error"]


def test_validate_domain_without_domain(test_client, fake_repo):
    fake_repo.add()
    with patch(f"{ENDPOINTS}.LeadRepository", return_value=fake_repo):
        response = test_client.post(f"{PREFIX}/leads/lead-1/validate-domain", json={})

    assert response.status_code == 400


def test_validate_domain_unknown_lead(test_client, fake_repo):
    with patch(f"{ENDPOINTS}.LeadRepository", return_value=fake_repo):
        response = test_client.post(f"{PREFIX}/leads/nope/validate-domain", json={"domain": "acme.com"})

    assert response.status_code == 404


# --- BULK ---

def test_bulk_run_lifecycle(test_client):
    with patch(f"{ENDPOINTS}.run_bulk_job", new_callable=AsyncMock) as mock_run:
        response = test_client.post(f"{PREFIX}/bulk", json={"lead_ids": ["lead-1", "lead-2"], "limit": 10})

        assert response.status_code == 202
        job_id = response.json()["job_id"]
        assert mock_run.call_args.kwargs["lead_ids"] == ["lead-1", "lead-2"]
        assert mock_run.call_args.kwargs["limit"] == 10

    status = test_client.get(f"{PREFIX}/bulk/{job_id}")
    assert status.status_code == 200
    assert status.json()["status"] == "pending"

    stopped = test_client.post(f"{PREFIX}/bulk/{job_id}/stop")
    assert stopped.status_code == 200
    assert stopped.json()["stop_requested"] is True
    assert bulk_job_registry.get(job_id).stop.requested is True


def test_bulk_unknown_job(test_client):
    assert test_client.get(f"{PREFIX}/bulk/does-not-exist").status_code == 404
    assert test_client.post(f"{PREFIX}/bulk/does-not-exist/stop").status_code == 404


def test_bulk_rejects_bad_limit(test_client):
    response = test_client.post(f"{PREFIX}/bulk", json={"limit": 0})
    assert response.status_code == 422
