# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Node directory - registration, heartbeat and listing.

The directory holds no state of its own. Every transition goes through
two atomic store primitives: challenge consumption and the node
compare-and-upsert. A challenge is consumed before the signature is
checked, so a failed attempt still burns its nonce.

Example:
    >>> directory = NodeDirectory(MemoryChallengeStore(), MemoryNodeStore())
    >>> challenge = directory.challenges.issue(pubkey_b64)
    >>> signature = sign_registration(private_key, payload, challenge.nonce)
    >>> directory.register(RegistrationRequest(payload, challenge.nonce, signature, pubkey_b64))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..core.exceptions import HostConflict, MalformedInput, NodeNotFound, SignatureInvalid
from .challenge_store import ChallengeStore, Clock, utcnow
from .models import Challenge, Node, NodeRegistration, RegistrationPayload, sort_nodes
from .node_store import HOST_TAKEN_MESSAGE, NodeStore
from .resolver import Resolver, resolve_host_ip
from .verification import (
    decode_public_key,
    decode_signature,
    heartbeat_message,
    normalize_pubkey_b64,
    registration_message,
    verify,
)

logger = logging.getLogger(__name__)


@dataclass
class RegistrationRequest:
    """A parsed registration request.

    ``payload`` is the raw object as received; extra keys are signed over
    but never stored.
    """

    payload: dict[str, Any]
    nonce: str
    signature_b64: str
    pubkey_b64: str


@dataclass
class HeartbeatRequest:
    host: str
    nonce: str
    signature_b64: str
    pubkey_b64: str


def _require_nonce(nonce: Any) -> str:
    if not isinstance(nonce, str) or not nonce:
        raise MalformedInput("nonce is required", field="nonce")
    return nonce


class NodeDirectory:
    """Registry operations over a challenge store and a node store."""

    def __init__(
        self,
        challenges: ChallengeStore,
        nodes: NodeStore,
        resolver: Resolver = resolve_host_ip,
        clock: Clock = utcnow,
    ):
        self.challenges = challenges
        self.nodes = nodes
        self._resolve = resolver
        self._clock = clock

    def issue_challenge(self, pubkey_b64: str) -> Challenge:
        """Issue a challenge for a claimed key after checking it decodes."""
        return self.challenges.issue(normalize_pubkey_b64(pubkey_b64))

    def _authenticate(self, nonce: str, pubkey_b64: str, signature_b64: str, message: bytes) -> bytes:
        """Consume the challenge, then check the signature.

        Returns the raw public key on success.
        """
        public_key = decode_public_key(pubkey_b64)
        signature = decode_signature(signature_b64)

        self.challenges.consume(nonce, normalize_pubkey_b64(pubkey_b64))
        if not verify(public_key, message, signature):
            logger.info("Rejected signature for nonce %s...", nonce[:8], extra={"nonce": nonce[:8]})
            raise SignatureInvalid("Signature verification failed")
        return public_key

    def register(self, request: RegistrationRequest) -> Node:
        """Register a node or refresh its descriptive fields.

        Raises:
            MalformedInput: bad payload, key, signature encoding or
                unresolvable host.
            ChallengeError: nonce unknown, expired or issued to another key.
            SignatureInvalid: signature does not verify.
            HostConflict: host or key already bound elsewhere.
        """
        payload = RegistrationPayload.from_dict(request.payload)
        nonce = _require_nonce(request.nonce)
        # Canonicalize before consuming so unsignable payloads keep their nonce
        message = registration_message(request.payload, nonce)

        public_key = self._authenticate(nonce, request.pubkey_b64, request.signature_b64, message)
        ip = self._resolve(payload.host)

        node = self.nodes.upsert_node_if_key_matches(
            NodeRegistration(payload=payload, public_key=public_key, ip=ip)
        )
        logger.info("Registered node %s (%s) at %s", node.name, node.host, ip, extra={"host": node.host})
        return node

    def heartbeat(self, request: HeartbeatRequest) -> Node:
        """Record a signed liveness signal for a registered host.

        Only ``last_seen_at`` changes; status stays with the health monitor.
        """
        if not isinstance(request.host, str) or not request.host:
            raise MalformedInput("host is required", field="host")
        nonce = _require_nonce(request.nonce)
        message = heartbeat_message(request.host, nonce)

        public_key = self._authenticate(nonce, request.pubkey_b64, request.signature_b64, message)

        # Host/key bindings never change once made, so check-then-touch is safe
        node = self.nodes.get_node(request.host)
        if node is None:
            raise NodeNotFound(request.host)
        if node.public_key != public_key:
            raise HostConflict(HOST_TAKEN_MESSAGE, host=request.host)

        seen_at = self._clock()
        if not self.nodes.touch_last_seen(request.host, seen_at):
            raise NodeNotFound(request.host)
        node.last_seen_at = seen_at
        logger.debug("Heartbeat from %s", request.host, extra={"host": request.host})
        return node

    def list(self) -> list[Node]:
        """All nodes, online first, then offline, then unknown, each by name."""
        return sort_nodes(self.nodes.list_nodes())
