"""Server-specific test fixtures."""

from __future__ import annotations

from collections.abc import Generator

import pytest
from starlette.testclient import TestClient

from hushnet.server.app import create_app
from hushnet.server.registry_endpoints import set_directory


@pytest.fixture
def client(directory) -> Generator[TestClient, None, None]:
    """Client over an app backed by the in-memory test directory.

    The lifespan is not entered, so no health monitor runs.
    """
    set_directory(directory)
    yield TestClient(create_app())
    set_directory(None)


@pytest.fixture
def memory_env(clean_env, monkeypatch):
    """Memory stores and no background monitor, for tests that run the lifespan."""
    monkeypatch.setenv("HUSHNET_CHALLENGE_STORE", "memory")
    monkeypatch.setenv("HUSHNET_NODE_STORE", "memory")
    monkeypatch.setenv("HUSHNET_HEALTH_MONITOR_ENABLED", "false")
