# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Registry API endpoints.

Implements:
- POST /api/registry/challenge - Issue a single-use nonce for a key
- POST /api/registry/register - Register or refresh a node
- POST /api/registry/heartbeat - Signed liveness signal
- GET /api/nodes - List all nodes
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..core.exceptions import RegistryError
from ..registry.directory import HeartbeatRequest, NodeDirectory, RegistrationRequest
from .errors import (
    error_from_exception,
    internal_error,
    invalid_format_error,
    invalid_json_error,
    missing_field_error,
    service_unavailable_error,
)
from .registry_models import ChallengeBody, HeartbeatBody, RegisterBody

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# Global directory instance (initialized in app startup)
_directory: NodeDirectory | None = None


def get_directory() -> NodeDirectory | None:
    """Get the node directory instance."""
    return _directory


def set_directory(directory: NodeDirectory | None) -> None:
    """Set the node directory instance."""
    global _directory
    _directory = directory


async def _parse_body(request: Request, model: type[ModelT]) -> ModelT | JSONResponse:
    try:
        body_json = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return invalid_json_error()

    try:
        return model.model_validate(body_json)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        if first["type"] == "missing":
            return missing_field_error(field)
        return invalid_format_error(field, first["msg"])


async def challenge_endpoint(request: Request) -> JSONResponse:
    """POST /api/registry/challenge - Issue a challenge nonce.

    Request Body (JSON):
        {"pubkey_b64": "base64 of 32 raw bytes"}

    Returns:
        200: {"nonce": "...", "expires_at": "ISO-8601"}
        400: Missing or malformed key
        503: Store unavailable
    """
    directory = get_directory()
    if directory is None:
        return service_unavailable_error("Node directory")

    body = await _parse_body(request, ChallengeBody)
    if isinstance(body, JSONResponse):
        return body

    try:
        challenge = await asyncio.to_thread(directory.issue_challenge, body.pubkey_b64)
    except RegistryError as e:
        return error_from_exception(e)
    except Exception as e:
        logger.exception(f"Error issuing challenge: {e}")
        return internal_error()

    return JSONResponse(challenge.to_dict())


async def register_endpoint(request: Request) -> JSONResponse:
    """POST /api/registry/register - Register a node.

    Request Body (JSON):
        {
            "payload": {"name", "host", "api_base_url", "protocol_version",
                        "features", "contact_email"},
            "nonce": "...",
            "signature_b64": "...",
            "pubkey_b64": "..."
        }

    Returns:
        200: {"ok": true}
        400: Malformed request, nonce problem or unresolvable host
        401: Bad signature
        403: Host or key already bound elsewhere
    """
    directory = get_directory()
    if directory is None:
        return service_unavailable_error("Node directory")

    body = await _parse_body(request, RegisterBody)
    if isinstance(body, JSONResponse):
        return body

    registration = RegistrationRequest(
        payload=body.payload,
        nonce=body.nonce,
        signature_b64=body.signature_b64,
        pubkey_b64=body.pubkey_b64,
    )
    try:
        await asyncio.to_thread(directory.register, registration)
    except RegistryError as e:
        logger.info("Registration rejected (%s): %s", e.code, e.message)
        return error_from_exception(e)
    except Exception as e:
        logger.exception(f"Error registering node: {e}")
        return internal_error()

    return JSONResponse({"ok": True})


async def heartbeat_endpoint(request: Request) -> JSONResponse:
    """POST /api/registry/heartbeat - Signed heartbeat from a registered node.

    Request Body (JSON):
        {"host": "...", "nonce": "...", "signature_b64": "...", "pubkey_b64": "..."}

    Returns:
        200: {"ok": true}
        400: Malformed request or nonce problem
        401: Bad signature
        403: Host bound to another key
        404: Unknown host
    """
    directory = get_directory()
    if directory is None:
        return service_unavailable_error("Node directory")

    body = await _parse_body(request, HeartbeatBody)
    if isinstance(body, JSONResponse):
        return body

    heartbeat = HeartbeatRequest(
        host=body.host,
        nonce=body.nonce,
        signature_b64=body.signature_b64,
        pubkey_b64=body.pubkey_b64,
    )
    try:
        await asyncio.to_thread(directory.heartbeat, heartbeat)
    except RegistryError as e:
        logger.info("Heartbeat rejected (%s): %s", e.code, e.message)
        return error_from_exception(e)
    except Exception as e:
        logger.exception(f"Error recording heartbeat: {e}")
        return internal_error()

    return JSONResponse({"ok": True})


async def list_nodes_endpoint(request: Request) -> JSONResponse:
    """GET /api/nodes - All registered nodes, online first.

    Returns:
        200: {"nodes": [...]}
    """
    directory = get_directory()
    if directory is None:
        return service_unavailable_error("Node directory")

    try:
        nodes = await asyncio.to_thread(directory.list)
    except RegistryError as e:
        return error_from_exception(e)
    except Exception as e:
        logger.exception(f"Error listing nodes: {e}")
        return internal_error()

    return JSONResponse({"nodes": [node.to_dict() for node in nodes]})
