"""Global test fixtures for the Hushnet registry test suite."""

from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from hushnet.core.config import clear_config_cache
from hushnet.registry.challenge_store import MemoryChallengeStore, reset_challenge_store
from hushnet.registry.directory import NodeDirectory
from hushnet.registry.node_store import MemoryNodeStore, reset_node_store
from hushnet.registry.verification import public_key_b64
from hushnet.server.config import clear_settings_cache
from hushnet.server.registry_endpoints import set_directory

TEST_IP = "203.0.113.7"


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_globals():
    """Reset cached settings, store singletons and the installed directory."""
    clear_config_cache()
    clear_settings_cache()
    reset_challenge_store()
    reset_node_store()
    set_directory(None)
    yield
    clear_config_cache()
    clear_settings_cache()
    reset_challenge_store()
    reset_node_store()
    set_directory(None)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all HUSHNET_ variables and the bare deployment aliases."""
    bare = ("DATABASE_URL", "HEALTH_TIMEOUT_MS", "HEALTH_INTERVAL_SECONDS", "GEOIP_URL")
    for key in list(os.environ.keys()):
        if key.startswith("HUSHNET_") or key in bare:
            monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(os.path.dirname(__file__))


# ============================================================================
# Time
# ============================================================================


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# Keys and payloads
# ============================================================================


@pytest.fixture
def private_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture
def pubkey_b64(private_key):
    return public_key_b64(private_key)


@pytest.fixture
def other_private_key():
    return Ed25519PrivateKey.generate()


def _make_payload(host: str = "node-a.example.net", **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": "node-a",
        "host": host,
        "api_base_url": f"https://{host}",
        "protocol_version": "1.0",
        "features": {"relay": True, "max_peers": 64},
        "contact_email": "ops@example.net",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_payload():
    """Factory for valid registration payloads: make_payload(host, **overrides)."""
    return _make_payload


# ============================================================================
# Stores and directory
# ============================================================================


@pytest.fixture
def challenge_store(clock):
    return MemoryChallengeStore(clock=clock)


@pytest.fixture
def node_store(clock):
    return MemoryNodeStore(clock=clock)


@pytest.fixture
def directory(challenge_store, node_store, clock):
    """A directory over memory stores that resolves every host to TEST_IP."""
    return NodeDirectory(challenge_store, node_store, resolver=lambda host: TEST_IP, clock=clock)


@pytest.fixture
def mock_get_cursor():
    """Patch hushnet.core.db.get_cursor to yield a MagicMock cursor."""
    cursor = MagicMock()
    cursor.fetchone.return_value = None
    cursor.fetchall.return_value = []
    cursor.rowcount = 0

    @contextmanager
    def fake_get_cursor():
        yield cursor

    with patch("hushnet.core.db.get_cursor", fake_get_cursor):
        yield cursor
