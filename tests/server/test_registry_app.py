"""Tests for the Starlette application: health, OpenAPI, middleware and lifespan."""

from __future__ import annotations

from unittest.mock import patch

from starlette.testclient import TestClient

from hushnet.registry.challenge_store import MemoryChallengeStore
from hushnet.registry.directory import NodeDirectory
from hushnet.registry.node_store import MemoryNodeStore, PostgresNodeStore
from hushnet.server.app import create_app
from hushnet.server.registry_endpoints import get_directory, set_directory


class TestHealthEndpoint:
    def test_memory_directory(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["server"] == "hushnet-registry"
        assert data["database"] == "memory"
        assert "monitor" not in data

    def test_no_directory(self):
        response = TestClient(create_app()).get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_database_unreachable(self):
        set_directory(NodeDirectory(MemoryChallengeStore(), PostgresNodeStore()))
        with patch("hushnet.core.db.check_connection", return_value=False):
            response = TestClient(create_app()).get("/api/health")

        assert response.status_code == 503
        assert response.json()["database"] == "unreachable"

    def test_database_connected(self):
        set_directory(NodeDirectory(MemoryChallengeStore(), PostgresNodeStore()))
        with patch("hushnet.core.db.check_connection", return_value=True):
            response = TestClient(create_app()).get("/api/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"


class TestOpenAPI:
    def test_served_as_json(self, client):
        response = client.get("/api/openapi.json")

        assert response.status_code == 200
        spec = response.json()
        assert spec["openapi"].startswith("3.")
        for path in ("/api/registry/challenge", "/api/registry/register", "/api/registry/heartbeat", "/api/nodes"):
            assert path in spec["paths"]


class TestMiddleware:
    def test_request_id_generated(self, client):
        response = client.get("/api/nodes")
        assert response.headers["X-Request-ID"]

    def test_request_id_echoed(self, client):
        response = client.get("/api/nodes", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

    def test_oversized_request_id_replaced(self, client):
        response = client.get("/api/nodes", headers={"X-Request-ID": "x" * 200})
        assert response.headers["X-Request-ID"] != "x" * 200

    def test_cors_open_by_default(self, client):
        response = client.get("/api/nodes", headers={"Origin": "https://browser.example"})
        assert response.headers["access-control-allow-origin"] == "*"


class TestLifespan:
    def test_builds_directory_from_settings(self, memory_env):
        with TestClient(create_app()) as client:
            directory = get_directory()
            assert isinstance(directory.nodes, MemoryNodeStore)
            assert isinstance(directory.challenges, MemoryChallengeStore)
            assert client.get("/api/health").json()["database"] == "memory"
            assert client.app.state.health_monitor is None

        assert get_directory() is None

    def test_keeps_installed_directory(self, memory_env, directory):
        set_directory(directory)
        with TestClient(create_app()):
            assert get_directory() is directory

        assert get_directory() is directory

    def test_starts_and_stops_monitor(self, memory_env, monkeypatch):
        monkeypatch.setenv("HUSHNET_HEALTH_MONITOR_ENABLED", "true")
        monkeypatch.setenv("HUSHNET_GEOIP_ENABLED", "false")
        monkeypatch.setenv("HUSHNET_HEALTH_INTERVAL_SECONDS", "3600")

        with TestClient(create_app()) as client:
            monitor = client.app.state.health_monitor
            assert monitor is not None
            assert monitor.is_running
            assert monitor.lookup is None
            assert client.get("/api/health").json()["monitor"]["running"] is True

        assert not monitor.is_running
