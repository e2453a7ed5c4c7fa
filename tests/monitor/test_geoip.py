"""Tests for the IP location lookup."""

from __future__ import annotations

import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from hushnet.core.exceptions import LookupUnavailable
from hushnet.monitor.geoip import GeoIPLookup, Location

RESPONSES = {
    "198.51.100.9": (200, '{"ip": "198.51.100.9", "country": "SE", "country_name": "Sweden"}'),
    "10.0.0.1": (200, '{"ip": "10.0.0.1", "error": true, "reason": "Reserved IP Address"}'),
    "192.0.2.1": (200, '{"ip": "192.0.2.1"}'),
    "192.0.2.2": (429, '{"error": true, "reason": "RateLimited"}'),
    "192.0.2.3": (200, "<html>not json</html>"),
}


@pytest_asyncio.fixture
async def server():
    async def lookup(request):
        status, body = RESPONSES[request.match_info["ip"]]
        return web.Response(status=status, text=body, content_type="application/json")

    app = web.Application()
    app.router.add_get("/{ip}/json/", lookup)
    server = test_utils.TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def geoip(server):
    template = str(server.make_url("/")) + "{ip}/json/"
    lookup = GeoIPLookup(template, timeout=2.0)
    yield lookup
    await lookup.close()


@pytest.mark.asyncio
async def test_country_found(geoip):
    assert await geoip.lookup("198.51.100.9") == Location(country_code="SE", country_name="Sweden")


@pytest.mark.asyncio
async def test_reserved_address_has_no_location(geoip):
    assert await geoip.lookup("10.0.0.1") is None


@pytest.mark.asyncio
async def test_missing_fields(geoip):
    assert await geoip.lookup("192.0.2.1") is None


@pytest.mark.asyncio
async def test_rate_limited(geoip):
    with pytest.raises(LookupUnavailable):
        await geoip.lookup("192.0.2.2")


@pytest.mark.asyncio
async def test_unparseable_body(geoip):
    with pytest.raises(LookupUnavailable):
        await geoip.lookup("192.0.2.3")


@pytest.mark.asyncio
async def test_service_down():
    lookup = GeoIPLookup("http://127.0.0.1:1/{ip}/json/", timeout=1.0)
    try:
        with pytest.raises(LookupUnavailable):
            await lookup.lookup("198.51.100.9")
    finally:
        await lookup.close()
