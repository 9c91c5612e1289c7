"""
Health and ping endpoints. These open their own connections, so they run
without the transactional `db_session` fixture.
"""
from fastapi.testclient import TestClient

from main import app


def test_ping():
    resp = TestClient(app).get("/ping")
    assert resp.json() == {"pong": True}


def test_health_reports_database():
    resp = TestClient(app).get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_detailed_health_degrades_without_cache():
    body = TestClient(app).get("/health/detailed").json()

    assert body["checks"]["database"]["status"] == "healthy"
    assert body["checks"]["redis"]["status"] == "unavailable"
    assert body["status"] == "degraded"
