"""HTTP liveness probes against registered nodes."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import aiohttp

from ..core.exceptions import ProbeError, ProbeTimeout

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """A successful (2xx) probe."""

    latency_ms: int
    status_code: int


class HttpProber:
    """Issues GET requests over one shared aiohttp session.

    The session is created on first use so the prober can be built outside
    a running event loop. Call ``close()`` on shutdown.
    """

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def probe(self, url: str, timeout: float) -> ProbeResult:
        """GET ``url`` within ``timeout`` seconds.

        Raises:
            ProbeTimeout: no complete response in time.
            ProbeError: connection failure or non-2xx status.
        """
        session = await self._get_session()
        start = time.monotonic()
        try:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=False,
            ) as response:
                await response.read()
                latency_ms = int(round((time.monotonic() - start) * 1000))
                if not 200 <= response.status < 300:
                    raise ProbeError(f"Unhealthy status {response.status}", url=url, status=response.status)
                return ProbeResult(latency_ms=latency_ms, status_code=response.status)
        except asyncio.TimeoutError as e:
            raise ProbeTimeout(f"No response within {timeout}s", url=url) from e
        except aiohttp.ClientError as e:
            raise ProbeError(f"Request failed: {e}", url=url) from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
