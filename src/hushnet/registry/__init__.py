"""Hushnet registry - challenges, signature checks and the node directory."""

from .challenge_store import (
    ChallengeStore,
    MemoryChallengeStore,
    PostgresChallengeStore,
    RedisChallengeStore,
    get_challenge_store,
    reset_challenge_store,
)
from .directory import HeartbeatRequest, NodeDirectory, RegistrationRequest
from .models import Challenge, HealthUpdate, Node, NodeStatus, RegistrationPayload
from .node_store import (
    MemoryNodeStore,
    NodeStore,
    PostgresNodeStore,
    get_node_store,
    reset_node_store,
)
from .verification import sign_heartbeat, sign_registration, verify

__all__ = [
    "Challenge",
    "ChallengeStore",
    "HealthUpdate",
    "HeartbeatRequest",
    "MemoryChallengeStore",
    "MemoryNodeStore",
    "Node",
    "NodeDirectory",
    "NodeStatus",
    "NodeStore",
    "PostgresChallengeStore",
    "PostgresNodeStore",
    "RedisChallengeStore",
    "RegistrationPayload",
    "RegistrationRequest",
    "get_challenge_store",
    "get_node_store",
    "reset_challenge_store",
    "reset_node_store",
    "sign_heartbeat",
    "sign_registration",
    "verify",
]
