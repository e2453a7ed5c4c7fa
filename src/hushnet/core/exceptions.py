# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Custom exception hierarchy for the Hushnet registry.

Registry errors carry the HTTP status and error code the API maps them to,
so handlers can translate any of them with a single ``except`` clause.
Monitor errors (probe and lookup failures) never leave the health loop.
"""

from __future__ import annotations

from typing import Any


class HushnetException(Exception):  # noqa: N818
    """Base exception for all Hushnet errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigException(HushnetException):
    """Raised when service configuration is invalid or incomplete."""

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


# =============================================================================
# REQUEST-PATH ERRORS
# =============================================================================


class RegistryError(HushnetException):
    """Base class for errors returned synchronously to API callers."""

    status_code: int = 400
    code: str = "VALIDATION_INVALID_VALUE"


class MalformedInput(RegistryError):
    """Bad base64, wrong key length, missing or mistyped fields."""

    status_code = 400
    code = "VALIDATION_INVALID_FORMAT"

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class CanonicalizationError(MalformedInput):
    """Value cannot be brought into canonical form (NaN, cycles, bad keys)."""

    code = "VALIDATION_NOT_CANONICAL"


class ChallengeError(RegistryError):
    """Base class for challenge consumption failures."""

    status_code = 400

    def __init__(self, message: str, nonce: str | None = None):
        details = {}
        if nonce:
            # Only a prefix, nonces are bearer material until consumed
            details["nonce"] = nonce[:8]
        super().__init__(message, details)
        self.nonce = nonce


class ChallengeNotFound(ChallengeError):
    code = "CHALLENGE_NOT_FOUND"


class ChallengeExpired(ChallengeError):
    code = "CHALLENGE_EXPIRED"


class IdentityMismatch(ChallengeError):
    """The nonce was issued to a different public key."""

    code = "CHALLENGE_IDENTITY_MISMATCH"


class SignatureInvalid(RegistryError):
    status_code = 401
    code = "AUTH_SIGNATURE_FAILED"


class HostConflict(RegistryError):
    """Host already bound to another key, or key already bound to another host."""

    status_code = 403
    code = "FORBIDDEN_HOST_CONFLICT"

    def __init__(self, message: str, host: str | None = None):
        details = {}
        if host:
            details["host"] = host
        super().__init__(message, details)
        self.host = host


class NodeNotFound(RegistryError):
    status_code = 404
    code = "NOT_FOUND_NODE"

    def __init__(self, host: str):
        super().__init__(f"Node not found: {host}", {"host": host})
        self.host = host


class StoreUnavailable(RegistryError):
    """The persistent store cannot be reached."""

    status_code = 503
    code = "SERVICE_UNAVAILABLE"


# =============================================================================
# MONITOR ERRORS
# =============================================================================


class ProbeError(HushnetException):
    """A node's liveness endpoint could not be reached or answered non-2xx."""

    def __init__(self, message: str, url: str | None = None, status: int | None = None):
        details: dict[str, Any] = {}
        if url:
            details["url"] = url
        if status is not None:
            details["status"] = status
        super().__init__(message, details)
        self.url = url
        self.status = status


class ProbeTimeout(ProbeError):
    pass


class LookupUnavailable(HushnetException):
    """The IP location service failed; location fields stay as they were."""
