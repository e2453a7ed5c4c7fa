"""End-to-end flow: a node registers over HTTP and the monitor marks it online.

Runs entirely in-process: memory stores, the ASGI app through httpx and a
fake prober standing in for the node's health endpoint.
"""

from __future__ import annotations

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from hushnet.core.exceptions import ProbeError
from hushnet.monitor.health import HealthMonitor, HealthMonitorConfig
from hushnet.monitor.probe import ProbeResult
from hushnet.registry.verification import public_key_b64, sign_heartbeat, sign_registration
from hushnet.server.app import create_app
from hushnet.server.registry_endpoints import set_directory


class ScriptedProber:
    def __init__(self):
        self.up: set[str] = set()

    async def probe(self, url: str, timeout: float) -> ProbeResult:
        if url in self.up:
            return ProbeResult(latency_ms=25, status_code=200)
        raise ProbeError("connection refused", url=url)


async def _signed_register(http: httpx.AsyncClient, key: Ed25519PrivateKey, payload: dict) -> httpx.Response:
    pubkey = public_key_b64(key)
    nonce = (await http.post("/api/registry/challenge", json={"pubkey_b64": pubkey})).json()["nonce"]
    return await http.post(
        "/api/registry/register",
        json={
            "payload": payload,
            "nonce": nonce,
            "signature_b64": sign_registration(key, payload, nonce),
            "pubkey_b64": pubkey,
        },
    )


@pytest.mark.asyncio
async def test_register_probe_and_list(directory, node_store, clock, make_payload):
    set_directory(directory)
    prober = ScriptedProber()
    monitor = HealthMonitor(node_store, prober, config=HealthMonitorConfig(), clock=clock)
    transport = httpx.ASGITransport(app=create_app())

    alpha_key, bravo_key = Ed25519PrivateKey.generate(), Ed25519PrivateKey.generate()

    async with httpx.AsyncClient(transport=transport, base_url="http://registry.test") as http:
        assert (await _signed_register(http, alpha_key, make_payload("alpha.example", name="alpha"))).status_code == 200
        assert (await _signed_register(http, bravo_key, make_payload("bravo.example", name="bravo"))).status_code == 200

        nodes = (await http.get("/api/nodes")).json()["nodes"]
        assert [(n["name"], n["status"]) for n in nodes] == [("alpha", "unknown"), ("bravo", "unknown")]

        prober.up.add("https://bravo.example/health")
        report = await monitor.run_cycle()
        assert (report.online, report.offline) == (1, 1)

        nodes = (await http.get("/api/nodes")).json()["nodes"]
        assert [(n["name"], n["status"]) for n in nodes] == [("bravo", "online"), ("alpha", "offline")]
        assert nodes[0]["last_latency_ms"] == 25
        assert nodes[0]["uptime_ratio"] == pytest.approx(0.1)
        assert nodes[1]["last_latency_ms"] is None

        # A heartbeat refreshes last_seen_at without touching the probed status
        clock.advance(30)
        pubkey = public_key_b64(alpha_key)
        nonce = (await http.post("/api/registry/challenge", json={"pubkey_b64": pubkey})).json()["nonce"]
        response = await http.post(
            "/api/registry/heartbeat",
            json={
                "host": "alpha.example",
                "nonce": nonce,
                "signature_b64": sign_heartbeat(alpha_key, "alpha.example", nonce),
                "pubkey_b64": pubkey,
            },
        )
        assert response.status_code == 200

        alpha = next(n for n in (await http.get("/api/nodes")).json()["nodes"] if n["name"] == "alpha")
        assert alpha["status"] == "offline"
        assert alpha["last_seen_at"] == clock.now.isoformat()

        # The other key cannot take over bravo's host
        hijack = await _signed_register(http, alpha_key, make_payload("bravo.example", name="evil"))
        assert hijack.status_code == 403
