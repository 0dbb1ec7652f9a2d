from fastapi.testclient import TestClient

from flowsmith.api.routes import health
from flowsmith.database import get_db
from flowsmith.main import app


def test_health_reports_database():
    response = TestClient(app).get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["dialect"] == "sqlite"


def test_integrations_lists_missing_pieces(db_session, monkeypatch):
    async def unreachable():
        return False

    monkeypatch.setattr(health.n8n_client, "ping", unreachable)
    app.dependency_overrides[get_db] = lambda: db_session
    try:
        response = TestClient(app).get("/api/v1/health/integrations")
    finally:
        app.dependency_overrides.clear()

    body = response.json()
    assert body["integrations"]["n8n_configured"] is True
    assert body["integrations"]["database"] is True
    assert body["ready"] is False
    assert set(body["missing"]) == {"anthropic", "n8n_reachable"}


def test_health_checks_database_once(monkeypatch):
    checks = []

    def failing_check():
        checks.append(1)
        return {"ok": False, "error": "connection refused"}

    monkeypatch.setattr(health, "database_health", failing_check)

    response = TestClient(app).get("/api/v1/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert checks == [1]
