# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Registry HTTP server.

Wires the node directory and the background health monitor into a
Starlette application. Store access is synchronous and runs on worker
threads, so neither request handling nor the monitor blocks the loop.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..monitor.geoip import GeoIPLookup
from ..monitor.health import HealthMonitor, HealthMonitorConfig
from ..monitor.probe import HttpProber
from ..registry.challenge_store import get_challenge_store
from ..registry.directory import NodeDirectory
from ..registry.node_store import PostgresNodeStore, get_node_store
from .config import get_settings
from .middleware import REQUEST_ID_HEADER, CorrelationIdMiddleware
from .registry_endpoints import (
    challenge_endpoint,
    get_directory,
    heartbeat_endpoint,
    list_nodes_endpoint,
    register_endpoint,
    set_directory,
)

logger = logging.getLogger(__name__)

OPENAPI_PATH = Path(__file__).parent / "openapi.yaml"


async def health_endpoint(request: Request) -> JSONResponse:
    """Registry liveness, including store connectivity."""
    settings = get_settings()

    health_data: dict[str, Any] = {
        "status": "healthy",
        "server": settings.server_name,
        "version": settings.server_version,
    }

    directory = get_directory()
    if directory is None:
        health_data["status"] = "degraded"
        health_data["database"] = "not initialized"
    elif isinstance(directory.nodes, PostgresNodeStore):
        from ..core.db import check_connection

        connected = await asyncio.to_thread(check_connection)
        health_data["database"] = "connected" if connected else "unreachable"
        if not connected:
            health_data["status"] = "degraded"
    else:
        health_data["database"] = "memory"

    monitor: HealthMonitor | None = getattr(request.app.state, "health_monitor", None)
    if monitor is not None:
        health_data["monitor"] = {
            "running": monitor.is_running,
            "last_cycle": monitor.last_report.to_dict() if monitor.last_report else None,
        }

    status_code = 200 if health_data["status"] == "healthy" else 503
    return JSONResponse(health_data, status_code=status_code)


# ============================================================================
# OpenAPI Endpoint
# ============================================================================

# Cache for the OpenAPI spec
_openapi_spec_cache: dict | None = None


def _load_openapi_spec() -> dict:
    """Load and cache the OpenAPI specification."""
    global _openapi_spec_cache
    if _openapi_spec_cache is None:
        with open(OPENAPI_PATH, encoding="utf-8") as f:
            spec = yaml.safe_load(f)
        spec.setdefault("info", {})["version"] = get_settings().server_version
        _openapi_spec_cache = spec
    return _openapi_spec_cache


async def openapi_spec_endpoint(request: Request) -> JSONResponse:
    """Serve the OpenAPI specification as JSON."""
    return JSONResponse(_load_openapi_spec())


# ============================================================================
# Application
# ============================================================================


@asynccontextmanager
async def lifespan(app: Starlette):
    """Application lifespan handler.

    Builds the directory from the configured stores unless one was
    installed beforehand with ``set_directory``, then starts the health
    monitor against the same stores.
    """
    settings = get_settings()
    logger.info(f"Starting registry on {settings.host}:{settings.port}")

    owns_directory = get_directory() is None
    if owns_directory:
        set_directory(NodeDirectory(get_challenge_store(), get_node_store()))
    directory = get_directory()
    assert directory is not None

    monitor: HealthMonitor | None = None
    prober: HttpProber | None = None
    lookup: GeoIPLookup | None = None
    if settings.health_monitor_enabled:
        prober = HttpProber()
        if settings.geoip_enabled:
            lookup = GeoIPLookup(settings.geoip_url, timeout=settings.geoip_timeout_seconds)
        monitor = HealthMonitor(
            directory.nodes,
            prober,
            lookup=lookup,
            config=HealthMonitorConfig.from_settings(settings),
            challenge_store=directory.challenges,
        )
        await monitor.start()
    app.state.health_monitor = monitor

    try:
        yield
    finally:
        if monitor is not None:
            await monitor.stop()
        if prober is not None:
            await prober.close()
        if lookup is not None:
            await lookup.close()
        if owns_directory:
            set_directory(None)
            if isinstance(directory.nodes, PostgresNodeStore):
                from ..core.db import close_pool

                close_pool()
        logger.info("Registry shutting down")


def create_app() -> Starlette:
    """Create the Starlette ASGI application."""
    settings = get_settings()

    routes = [
        Route("/api/registry/challenge", challenge_endpoint, methods=["POST"]),
        Route("/api/registry/register", register_endpoint, methods=["POST"]),
        Route("/api/registry/heartbeat", heartbeat_endpoint, methods=["POST"]),
        Route("/api/nodes", list_nodes_endpoint, methods=["GET"]),
        Route("/api/health", health_endpoint, methods=["GET"]),
        Route("/api/openapi.json", openapi_spec_endpoint, methods=["GET"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", REQUEST_ID_HEADER],
            expose_headers=[REQUEST_ID_HEADER],
        ),
        Middleware(CorrelationIdMiddleware),
    ]

    return Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
    )


# Global app instance for uvicorn
app = create_app()

