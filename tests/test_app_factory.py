"""Tests for app factory and role-based routing."""

from fastapi.testclient import TestClient

from onsenbook.api.factory import create_app


class TestPublicRole:
    def test_health_available(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_tasks_not_mounted(self):
        client = TestClient(create_app(role="public"))
        assert client.get("/tasks/health").status_code == 404
        assert client.post("/tasks/reservations/expire").status_code == 404

    def test_role_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_ROLE", "worker")
        client = TestClient(create_app())
        assert client.get("/tasks/health").status_code == 200


class TestWorkerRole:
    def test_health_available(self):
        client = TestClient(create_app(role="worker"))
        assert client.get("/health").status_code == 200

    def test_tasks_mounted(self):
        client = TestClient(create_app(role="worker"))
        response = client.get("/tasks/health")
        assert response.status_code == 200
        assert response.json()["subsystem"] == "tasks"


class TestCorrelationId:
    def test_generates_correlation_id(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health")
        assert response.headers.get("X-Correlation-ID")

    def test_echoes_incoming_correlation_id(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health", headers={"X-Correlation-ID": "cid-42"})
        assert response.headers["X-Correlation-ID"] == "cid-42"
