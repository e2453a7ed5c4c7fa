# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Node store backends.

The store is the single source of truth for node records and the
arbiter of the host/key binding: ``upsert_node_if_key_matches`` is an
atomic compare-and-upsert, so two different keys can never both win the
same host, and one key can never hold two hosts.

Configure via HUSHNET_NODE_STORE=postgres|memory (default: postgres).
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import psycopg2
import psycopg2.errors
from psycopg2.extras import Json

from ..core.exceptions import ConfigException, HostConflict
from .challenge_store import Clock, utcnow
from .models import HealthUpdate, Node, NodeRegistration, NodeStatus

logger = logging.getLogger(__name__)

HOST_TAKEN_MESSAGE = "Host already registered with another key"
KEY_TAKEN_MESSAGE = "Key already bound to another host"


class NodeStore(ABC):
    """Abstract interface for node persistence."""

    @abstractmethod
    def upsert_node_if_key_matches(self, registration: NodeRegistration) -> Node:
        """Insert a new node, or update one whose stored key matches.

        New nodes start with status ``unknown``. Updates touch descriptive
        fields and ip only; liveness, location and uptime are kept.

        Raises:
            HostConflict: host is bound to another key, or the key is
                bound to another host.
        """
        ...

    @abstractmethod
    def get_node(self, host: str) -> Node | None:
        ...

    @abstractmethod
    def list_nodes(self) -> list[Node]:
        """All nodes, in no particular order."""
        ...

    @abstractmethod
    def touch_last_seen(self, host: str, seen_at: datetime) -> bool:
        """Record a liveness signal. Returns False if the host is unknown."""
        ...

    @abstractmethod
    def record_health(self, host: str, update: HealthUpdate) -> bool:
        """Write one health check outcome. Returns False if the host is unknown."""
        ...


class MemoryNodeStore(NodeStore):
    """In-memory node store for development and tests.

    A single lock makes every operation atomic. Callers always get copies,
    never the stored records.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._nodes: dict[str, Node] = {}
        self._hosts_by_key: dict[bytes, str] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def upsert_node_if_key_matches(self, registration: NodeRegistration) -> Node:
        payload = registration.payload
        key = registration.public_key
        with self._lock:
            existing = self._nodes.get(payload.host)
            if existing is not None and existing.public_key != key:
                raise HostConflict(HOST_TAKEN_MESSAGE, host=payload.host)
            owner = self._hosts_by_key.get(key)
            if owner is not None and owner != payload.host:
                raise HostConflict(KEY_TAKEN_MESSAGE, host=payload.host)

            if existing is None:
                node = Node(
                    host=payload.host,
                    name=payload.name,
                    api_base_url=payload.api_base_url,
                    public_key=key,
                    protocol_version=payload.protocol_version,
                    features=copy.deepcopy(payload.features),
                    contact_email=payload.contact_email,
                    ip=registration.ip,
                    status=NodeStatus.UNKNOWN,
                    registered_at=self._clock(),
                )
                self._nodes[payload.host] = node
                self._hosts_by_key[key] = payload.host
            else:
                node = existing
                node.name = payload.name
                node.api_base_url = payload.api_base_url
                node.protocol_version = payload.protocol_version
                node.features = copy.deepcopy(payload.features)
                node.contact_email = payload.contact_email
                node.ip = registration.ip
            return copy.deepcopy(node)

    def get_node(self, host: str) -> Node | None:
        with self._lock:
            node = self._nodes.get(host)
            return copy.deepcopy(node) if node is not None else None

    def list_nodes(self) -> list[Node]:
        with self._lock:
            return [copy.deepcopy(n) for n in self._nodes.values()]

    def touch_last_seen(self, host: str, seen_at: datetime) -> bool:
        with self._lock:
            node = self._nodes.get(host)
            if node is None:
                return False
            node.last_seen_at = seen_at
            return True

    def record_health(self, host: str, update: HealthUpdate) -> bool:
        with self._lock:
            node = self._nodes.get(host)
            if node is None:
                return False
            node.status = update.status
            node.last_latency_ms = update.latency_ms
            node.uptime_ratio = update.uptime_ratio
            if update.status is NodeStatus.ONLINE:
                node.last_seen_at = update.checked_at
            if update.country_code is not None:
                node.country_code = update.country_code
            if update.country_name is not None:
                node.country_name = update.country_name
            return True


# =============================================================================
# POSTGRESQL
# =============================================================================

_NODE_COLUMNS = """
    name, host, host(ip) AS ip, api_base_url, pubkey, protocol_version, features,
    contact_email, registered_at, country_code, country_name, last_seen_at,
    last_latency_ms, status, uptime_ratio
"""


def _row_to_node(row: dict[str, Any]) -> Node:
    return Node(
        host=row["host"],
        name=row["name"],
        api_base_url=row["api_base_url"],
        public_key=bytes(row["pubkey"]),
        protocol_version=row["protocol_version"],
        features=row["features"] or {},
        contact_email=row["contact_email"],
        ip=row["ip"],
        country_code=row["country_code"],
        country_name=row["country_name"],
        status=NodeStatus(row["status"]),
        last_seen_at=row["last_seen_at"],
        last_latency_ms=row["last_latency_ms"],
        uptime_ratio=float(row["uptime_ratio"] or 0.0),
        registered_at=row["registered_at"],
    )


class PostgresNodeStore(NodeStore):
    """PostgreSQL-backed node store (``nodes`` table in schema.sql)."""

    def upsert_node_if_key_matches(self, registration: NodeRegistration) -> Node:
        from ..core.db import get_cursor

        payload = registration.payload
        try:
            with get_cursor() as cur:
                # The WHERE on the conflict branch is the key comparison:
                # a mismatching key updates nothing and returns no row.
                cur.execute(
                    f"""
                    INSERT INTO nodes (
                        name, host, ip, api_base_url, pubkey,
                        protocol_version, features, contact_email, status
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 'unknown')
                    ON CONFLICT (host) DO UPDATE
                      SET name = EXCLUDED.name,
                          ip = EXCLUDED.ip,
                          api_base_url = EXCLUDED.api_base_url,
                          protocol_version = EXCLUDED.protocol_version,
                          features = EXCLUDED.features,
                          contact_email = EXCLUDED.contact_email
                      WHERE nodes.pubkey = EXCLUDED.pubkey
                    RETURNING {_NODE_COLUMNS}
                    """,
                    (
                        payload.name,
                        payload.host,
                        registration.ip,
                        payload.api_base_url,
                        psycopg2.Binary(registration.public_key),
                        payload.protocol_version,
                        Json(payload.features),
                        payload.contact_email,
                    ),
                )
                row = cur.fetchone()
        except psycopg2.errors.UniqueViolation as e:
            # nodes_pubkey_key: this key already owns a different host
            raise HostConflict(KEY_TAKEN_MESSAGE, host=payload.host) from e

        if row is None:
            raise HostConflict(HOST_TAKEN_MESSAGE, host=payload.host)
        return _row_to_node(row)

    def get_node(self, host: str) -> Node | None:
        from ..core.db import get_cursor

        with get_cursor() as cur:
            cur.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE host = %s", (host,))
            row = cur.fetchone()
        return _row_to_node(row) if row else None

    def list_nodes(self) -> list[Node]:
        from ..core.db import get_cursor

        with get_cursor() as cur:
            cur.execute(f"SELECT {_NODE_COLUMNS} FROM nodes")
            rows = cur.fetchall()
        return [_row_to_node(row) for row in rows]

    def touch_last_seen(self, host: str, seen_at: datetime) -> bool:
        from ..core.db import get_cursor

        with get_cursor() as cur:
            cur.execute("UPDATE nodes SET last_seen_at = %s WHERE host = %s", (seen_at, host))
            return cur.rowcount > 0

    def record_health(self, host: str, update: HealthUpdate) -> bool:
        from ..core.db import get_cursor

        online = update.status is NodeStatus.ONLINE
        with get_cursor() as cur:
            cur.execute(
                """
                UPDATE nodes
                SET status = %s,
                    last_latency_ms = %s,
                    last_seen_at = CASE WHEN %s THEN %s ELSE last_seen_at END,
                    uptime_ratio = %s,
                    country_code = COALESCE(%s, country_code),
                    country_name = COALESCE(%s, country_name)
                WHERE host = %s
                """,
                (
                    update.status.value,
                    update.latency_ms,
                    online,
                    update.checked_at,
                    update.uptime_ratio,
                    update.country_code,
                    update.country_name,
                    host,
                ),
            )
            return cur.rowcount > 0


# =============================================================================
# FACTORY
# =============================================================================

_store_instance: NodeStore | None = None


def get_node_store() -> NodeStore:
    """Get or create the global node store from HUSHNET_NODE_STORE."""
    global _store_instance
    if _store_instance is not None:
        return _store_instance

    from ..core.config import get_config

    backend = get_config().node_store.lower()
    if backend == "postgres":
        logger.info("Using PostgreSQL node store")
        _store_instance = PostgresNodeStore()
    elif backend == "memory":
        logger.info("Using in-memory node store")
        _store_instance = MemoryNodeStore()
    else:
        raise ConfigException(f"Unknown node store backend '{backend}'")
    return _store_instance


def reset_node_store() -> None:
    """Reset the global store instance (for testing)."""
    global _store_instance
    _store_instance = None
