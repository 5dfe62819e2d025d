import pytest
from httpx import ASGITransport, AsyncClient

from wooffy_api.core.settings import settings
from wooffy_api.observability.scheduler import get_scheduler_store


@pytest.mark.asyncio
async def test_readyz_reports_component_statuses(app_with_db, monkeypatch) -> None:
    app, _ = app_with_db
    monkeypatch.setattr(settings, "reminder_scheduler_enabled", False)
    monkeypatch.setattr(settings, "assistant_api_key", "")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/health/readyz")
        direct = await client.get("/api/v1/readyz")
        liveness = await client.get("/healthz")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["components"]["reminder_scheduler"]["status"] == "disabled"
    assert payload["components"]["assistant_gateway"]["status"] == "disabled"
    assert "verification" in payload["metrics"]
    assert direct.json()["components"].keys() == payload["components"].keys()
    assert liveness.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_readyz_flags_failing_jobs(app_with_db, monkeypatch) -> None:
    app, _ = app_with_db
    monkeypatch.setattr(settings, "reminder_scheduler_enabled", True)

    class RunningScheduler:
        is_running = True

    app.state.reminder_scheduler = RunningScheduler()
    get_scheduler_store().record_dispatch("pet_birthdays", "pet-birthdays")
    get_scheduler_store().record_failure("pet_birthdays", "pet-birthdays", runtime_seconds=0.1, error="boom")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/readyz")

    payload = response.json()
    assert payload["status"] == "error"
    assert payload["components"]["reminder_scheduler"] == {
        "status": "error",
        "detail": "Jobs failing: pet_birthdays",
    }


@pytest.mark.asyncio
async def test_job_trigger_runs_registered_job(app_with_db, monkeypatch) -> None:
    app, session_factory = app_with_db
    monkeypatch.setattr("wooffy_api.api.v1.endpoints.jobs.async_session", session_factory)
    monkeypatch.setattr(settings, "jobs_api_key", "cron-secret")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        denied = await client.post("/api/v1/jobs/expire-memberships")
        unknown = await client.post("/api/v1/jobs/feed-the-cat", headers={"X-API-Key": "cron-secret"})
        response = await client.post("/api/v1/jobs/expire-memberships", headers={"X-API-Key": "cron-secret"})

    assert denied.status_code == 401
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "NOT_FOUND"
    assert response.status_code == 200
    summary = response.json()
    assert summary["count"] == 0
    assert summary["failures"] == 0
