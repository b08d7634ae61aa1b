from fastapi.testclient import TestClient

from sora_studio.api import system
from sora_studio.main import app


def test_system_health_reports_each_service(db, settings, monkeypatch):
    monkeypatch.setattr(system, "_check_redis", lambda: {"status": "error", "error": "refused"})

    body = TestClient(app).get("/api/system/health").json()

    services = body["services"]
    assert services["database"]["status"] == "ok"
    assert services["redis"]["status"] == "error"
    assert services["celery"]["status"] == "disabled"
    assert services["provider"] == {
        "name": "openai", "status": "ok", "endpoint": "https://api.openai.test/v1",
    }
    assert body["status"] == "healthy"


def test_system_health_flags_missing_provider_credentials(db, settings, monkeypatch):
    monkeypatch.setattr(system, "_check_redis", lambda: {"status": "ok"})
    monkeypatch.setattr(settings, "AI_PROVIDER", "azure")
    monkeypatch.setattr(settings, "AZURE_API_KEY", "")

    body = TestClient(app).get("/api/system/health").json()

    assert body["services"]["provider"]["status"] == "unconfigured"
    assert body["status"] == "degraded"
