"""Request middleware for the registry API."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..core.logging import correlation_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Opens a correlation scope per request and echoes its id.

    An incoming X-Request-ID is reused so callers can tie their own logs to
    ours; otherwise a fresh id is generated.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER) or None
        if incoming is not None and (len(incoming) > 64 or not incoming.isprintable()):
            incoming = None

        with correlation_context(incoming) as cid:
            start_time = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.debug(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
            response.headers[REQUEST_ID_HEADER] = cid
            return response
