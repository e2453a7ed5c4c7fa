# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Standardized REST error responses for the registry API.

Every error leaves the API in one shape:
{
    "success": false,
    "error": {
        "code": "ERROR_CODE",
        "message": "Human readable message",
        "details": {...}            # only when there is something to add
    }
}

Registry failures carry their own status and code (see
``hushnet.core.exceptions.RegistryError``); the constants below cover the
errors the HTTP layer raises itself, before a request reaches the directory.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
import uuid
from typing import Any

from starlette.responses import JSONResponse

from ..core.exceptions import RegistryError

logger = logging.getLogger(__name__)

# Debug mode: include exception details in 500 responses.
# Set HUSHNET_DEBUG=1 to enable (default: disabled, the registry is public).
_DEBUG = os.environ.get("HUSHNET_DEBUG", "0") == "1"

# Request-shape errors (400)
VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
VALIDATION_INVALID_JSON = "VALIDATION_INVALID_JSON"

# Server errors (500, 503)
INTERNAL_ERROR = "INTERNAL_ERROR"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Error code (e.g., VALIDATION_MISSING_FIELD)
        message: Human-readable error message
        status_code: HTTP status code (default 400)
        details: Optional machine-readable context, such as the offending field

    Returns:
        JSONResponse with standardized error format
    """
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


def error_from_exception(exc: RegistryError) -> JSONResponse:
    """Map a registry error to its status code, error code and details."""
    return error_response(exc.code, exc.message, status_code=exc.status_code, details=exc.details)


def missing_field_error(field_name: str) -> JSONResponse:
    return error_response(
        VALIDATION_MISSING_FIELD,
        f"{field_name} is required",
        details={"field": field_name},
    )


def invalid_format_error(field_name: str, reason: str) -> JSONResponse:
    return error_response(
        VALIDATION_INVALID_FORMAT,
        f"Invalid {field_name}: {reason}",
        details={"field": field_name},
    )


def invalid_json_error() -> JSONResponse:
    return error_response(VALIDATION_INVALID_JSON, "Invalid JSON body")


def internal_error(
    message: str = "Internal server error",
    exc: BaseException | None = None,
) -> JSONResponse:
    """Create a 500 internal error response.

    Always includes a request_id that is also logged, so an operator can
    find the failure from what the caller reports. In debug mode
    (HUSHNET_DEBUG=1) the exception type and message are included too.

    Args:
        message: Base error message.
        exc: Exception to report. Defaults to the one currently being handled.
    """
    request_id = uuid.uuid4().hex[:12]
    error_body: dict[str, Any] = {
        "code": INTERNAL_ERROR,
        "message": message,
        "request_id": request_id,
    }

    if exc is None:
        exc = sys.exc_info()[1]

    if exc is not None:
        logger.error("request_id=%s %s: %s", request_id, type(exc).__name__, exc)
        if _DEBUG:
            error_body["exception"] = type(exc).__name__
            error_body["detail"] = str(exc)
            error_body["traceback"] = traceback.format_exception_only(type(exc), exc)[0].strip()

    return JSONResponse({"success": False, "error": error_body}, status_code=500)


def service_unavailable_error(service: str) -> JSONResponse:
    return error_response(SERVICE_UNAVAILABLE, f"{service} unavailable", status_code=503)
