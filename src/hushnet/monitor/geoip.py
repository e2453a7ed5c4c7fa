"""IP address to country lookup.

Queries an ipapi.co-compatible JSON service. The URL template must contain
``{ip}``; the response fields ``country`` (ISO code) and ``country_name``
are read.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from ..core.exceptions import LookupUnavailable

logger = logging.getLogger(__name__)

DEFAULT_GEOIP_URL = "https://ipapi.co/{ip}/json/"


@dataclass
class Location:
    country_code: str | None
    country_name: str | None


class GeoIPLookup:
    """Country lookup over HTTP, sharing one aiohttp session."""

    def __init__(
        self,
        url_template: str = DEFAULT_GEOIP_URL,
        timeout: float = 3.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def lookup(self, ip: str) -> Location | None:
        """Look up the country for ``ip``.

        Returns:
            The location, or None when the service has no data for the address.

        Raises:
            LookupUnavailable: transport failure, non-2xx or unparseable reply.
        """
        url = self.url_template.format(ip=ip)
        session = await self._get_session()
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status != 200:
                    raise LookupUnavailable(f"Lookup returned {response.status}", {"ip": ip})
                data: Any = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise LookupUnavailable("Lookup timed out", {"ip": ip}) from e
        except (aiohttp.ClientError, json.JSONDecodeError) as e:
            raise LookupUnavailable(f"Lookup failed: {e}", {"ip": ip}) from e

        if not isinstance(data, dict) or data.get("error"):
            # Reserved and private ranges come back as {"error": true, ...}
            logger.debug("No location data for %s", ip)
            return None

        code = data.get("country")
        name = data.get("country_name")
        if not code and not name:
            return None
        return Location(country_code=code or None, country_name=name or None)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
