# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Data model for registered nodes and authentication challenges."""

from __future__ import annotations

import base64
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from ..core.exceptions import MalformedInput

MAX_HOST_LENGTH = 253


class NodeStatus(str, Enum):
    """Liveness as last determined by the health monitor."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"

    @property
    def rank(self) -> int:
        """Listing rank: online first, then offline, then never-probed."""
        return _STATUS_RANK[self]


_STATUS_RANK = {
    NodeStatus.ONLINE: 0,
    NodeStatus.OFFLINE: 1,
    NodeStatus.UNKNOWN: 2,
}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class Challenge:
    """A single-use nonce issued to a claimed public key."""

    nonce: str
    pubkey_b64: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {"nonce": self.nonce, "expires_at": self.expires_at.isoformat()}


@dataclass
class Node:
    """A registered node as stored by the registry."""

    host: str
    name: str
    api_base_url: str
    public_key: bytes
    protocol_version: str
    features: dict[str, Any] = field(default_factory=dict)
    contact_email: str | None = None
    ip: str | None = None
    country_code: str | None = None
    country_name: str | None = None
    status: NodeStatus = NodeStatus.UNKNOWN
    last_seen_at: datetime | None = None
    last_latency_ms: int | None = None
    uptime_ratio: float = 0.0
    registered_at: datetime | None = None

    @property
    def pubkey_b64(self) -> str:
        return base64.b64encode(self.public_key).decode("ascii")

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the public listing."""
        return {
            "name": self.name,
            "host": self.host,
            "ip": self.ip,
            "api_base_url": self.api_base_url,
            "pubkey_b64": self.pubkey_b64,
            "protocol_version": self.protocol_version,
            "features": self.features,
            "contact_email": self.contact_email,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "registered_at": _iso(self.registered_at),
            "last_seen_at": _iso(self.last_seen_at),
            "last_latency_ms": self.last_latency_ms,
            "uptime_ratio": self.uptime_ratio,
            "status": self.status.value,
        }


def sort_nodes(nodes: Iterable[Node]) -> list[Node]:
    """Order nodes by status rank, then by name in code-point order.

    Code-point order on str is the same as byte order on UTF-8.
    """
    return sorted(nodes, key=lambda n: (n.status.rank, n.name))


@dataclass
class RegistrationPayload:
    """The signed ``payload`` object of a registration request."""

    name: str
    host: str
    api_base_url: str
    protocol_version: str
    features: dict[str, Any] = field(default_factory=dict)
    contact_email: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> RegistrationPayload:
        """Validate a raw payload object.

        Raises:
            MalformedInput: on missing, empty or mistyped fields.
        """
        if not isinstance(data, dict):
            raise MalformedInput("payload must be an object", field="payload")

        values: dict[str, str] = {}
        for name in ("name", "host", "api_base_url", "protocol_version"):
            value = data.get(name)
            if not isinstance(value, str) or not value.strip():
                raise MalformedInput(f"payload.{name} is required", field=name)
            values[name] = value

        host = values["host"]
        if len(host) > MAX_HOST_LENGTH or any(c.isspace() for c in host) or "/" in host:
            raise MalformedInput("payload.host must be a bare host name", field="host", value=host)

        try:
            parsed = urlparse(values["api_base_url"])
        except ValueError as e:
            raise MalformedInput(
                f"payload.api_base_url is not a valid URL: {e}",
                field="api_base_url",
                value=values["api_base_url"],
            ) from e
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise MalformedInput(
                "payload.api_base_url must be an http(s) URL",
                field="api_base_url",
                value=values["api_base_url"],
            )

        features = data.get("features")
        if features is None:
            features = {}
        elif not isinstance(features, dict):
            raise MalformedInput("payload.features must be an object", field="features")

        contact_email = data.get("contact_email")
        if contact_email is not None and not isinstance(contact_email, str):
            raise MalformedInput("payload.contact_email must be a string", field="contact_email")

        return cls(
            name=values["name"],
            host=host,
            api_base_url=values["api_base_url"],
            protocol_version=values["protocol_version"],
            features=features,
            contact_email=contact_email or None,
        )


@dataclass
class NodeRegistration:
    """Fields written by a successful registration."""

    payload: RegistrationPayload
    public_key: bytes
    ip: str | None


@dataclass
class HealthUpdate:
    """Outcome of one health check for one node.

    Location fields are only written when not None.
    """

    status: NodeStatus
    checked_at: datetime
    uptime_ratio: float
    latency_ms: int | None = None
    country_code: str | None = None
    country_name: str | None = None
