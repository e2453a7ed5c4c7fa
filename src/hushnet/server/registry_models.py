# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Pydantic models for the registry REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Request Models
# =============================================================================


class ChallengeBody(BaseModel):
    """Request model for issuing a challenge."""

    pubkey_b64: str = Field(..., description="Standard base64 of the 32-byte Ed25519 public key")


class RegisterBody(BaseModel):
    """Request model for registering a node."""

    payload: dict[str, Any] = Field(..., description="Node descriptor; signed in canonical form")
    nonce: str = Field(..., description="Nonce from /api/registry/challenge")
    signature_b64: str = Field(..., description="Ed25519 signature over canonical(payload) + nonce")
    pubkey_b64: str = Field(..., description="Key the challenge was issued to")


class HeartbeatBody(BaseModel):
    """Request model for a signed heartbeat."""

    host: str = Field(..., description="Registered host")
    nonce: str = Field(..., description="Nonce from /api/registry/challenge")
    signature_b64: str = Field(..., description="Ed25519 signature over host + nonce")
    pubkey_b64: str = Field(..., description="Key the host is registered with")
