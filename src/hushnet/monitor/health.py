# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Background health monitoring for registered nodes.

Every cycle the monitor sweeps expired challenges, snapshots the node
list and probes each node's health endpoint concurrently. Outcomes are
written back through the same store the API uses:

- 2xx within the timeout: ``online``, latency recorded, ``last_seen_at`` set
- timeout, connection error or non-2xx: ``offline``, latency cleared

Uptime is an exponentially weighted moving average of probe outcomes::

    uptime = (1 - alpha) * uptime + alpha * (1 if online else 0)

With the default alpha of 0.1 a single flaky probe moves the ratio by at
most 0.1, and about 22 consecutive failures bring a perfect node below 0.1.

A failure for one node never affects the others, and a failing cycle is
logged and retried on the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from ..core.exceptions import LookupUnavailable, ProbeError, ProbeTimeout
from ..registry.challenge_store import ChallengeStore, Clock, utcnow
from ..registry.models import HealthUpdate, Node, NodeStatus
from ..registry.node_store import NodeStore
from .geoip import GeoIPLookup, Location
from .probe import HttpProber

if TYPE_CHECKING:
    from ..core.config import CoreSettings

logger = logging.getLogger(__name__)

DEFAULT_UPTIME_SMOOTHING = 0.1


def next_uptime_ratio(prior: float, online: bool, alpha: float = DEFAULT_UPTIME_SMOOTHING) -> float:
    """One EWMA step, clamped to [0, 1]."""
    outcome = 1.0 if online else 0.0
    value = (1.0 - alpha) * prior + alpha * outcome
    return min(1.0, max(0.0, value))


@dataclass
class HealthMonitorConfig:
    """Tunables for the health loop."""

    interval_seconds: float = 60.0
    timeout_seconds: float = 3.0
    health_path: str = "/health"
    max_concurrency: int = 32
    uptime_smoothing: float = DEFAULT_UPTIME_SMOOTHING

    @classmethod
    def from_settings(cls, settings: CoreSettings | None = None) -> HealthMonitorConfig:
        if settings is None:
            from ..core.config import get_config

            settings = get_config()
        return cls(
            interval_seconds=settings.health_interval_seconds,
            timeout_seconds=settings.health_timeout_seconds,
            health_path=settings.health_path,
            max_concurrency=settings.health_max_concurrency,
            uptime_smoothing=settings.uptime_smoothing,
        )


@dataclass
class CycleReport:
    """Summary of one monitoring cycle."""

    checked: int = 0
    online: int = 0
    offline: int = 0
    errors: int = 0
    purged_challenges: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def health_url(node: Node, health_path: str) -> str:
    path = health_path if health_path.startswith("/") else f"/{health_path}"
    return node.api_base_url.rstrip("/") + path


class HealthMonitor:
    """Periodically probes every registered node.

    Usage:
        monitor = HealthMonitor(store, HttpProber(), GeoIPLookup())
        await monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        store: NodeStore,
        prober: HttpProber,
        lookup: GeoIPLookup | None = None,
        config: HealthMonitorConfig | None = None,
        challenge_store: ChallengeStore | None = None,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.prober = prober
        self.lookup = lookup
        self.config = config or HealthMonitorConfig()
        self.challenge_store = challenge_store
        self._clock = clock
        self._running = False
        self._task: asyncio.Task | None = None
        self._wake: asyncio.Event | None = None
        self.last_report: CycleReport | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Schedule the monitoring loop. The first cycle runs immediately."""
        if self._running:
            return

        self._running = True
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "Health monitor started (interval=%ss, timeout=%ss, concurrency=%d)",
            self.config.interval_seconds,
            self.config.timeout_seconds,
            self.config.max_concurrency,
        )

    async def stop(self) -> None:
        """Stop scheduling cycles. A cycle already in flight runs to completion."""
        if not self._running:
            return

        self._running = False
        if self._wake is not None:
            self._wake.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Health monitor stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Health cycle failed, retrying next tick")

            if not self._running:
                break
            assert self._wake is not None
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.config.interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def run_cycle(self) -> CycleReport:
        """Run one full monitoring cycle and return its summary."""
        report = CycleReport()

        if self.challenge_store is not None:
            try:
                report.purged_challenges = await asyncio.to_thread(self.challenge_store.purge_expired)
            except Exception:
                logger.exception("Challenge expiry sweep failed")

        nodes = await asyncio.to_thread(self.store.list_nodes)
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(node: Node) -> NodeStatus:
            async with semaphore:
                return await self._check_node(node)

        results = await asyncio.gather(*(bounded(node) for node in nodes), return_exceptions=True)

        for node, result in zip(nodes, results):
            report.checked += 1
            if isinstance(result, BaseException):
                report.errors += 1
                logger.error("Health check for %s failed", node.host, exc_info=result, extra={"host": node.host})
            elif result is NodeStatus.ONLINE:
                report.online += 1
            else:
                report.offline += 1

        self.last_report = report
        logger.info(
            "Health cycle: %d checked, %d online, %d offline, %d errors",
            report.checked,
            report.online,
            report.offline,
            report.errors,
        )
        return report

    async def _locate(self, ip: str) -> Location | None:
        if self.lookup is None:
            return None
        try:
            return await self.lookup.lookup(ip)
        except LookupUnavailable as e:
            logger.debug("Location lookup for %s failed: %s", ip, e)
            return None

    async def _check_node(self, node: Node) -> NodeStatus:
        """Probe one node and persist the outcome."""
        url = health_url(node, self.config.health_path)
        latency_ms: int | None = None
        try:
            result = await self.prober.probe(url, self.config.timeout_seconds)
            status = NodeStatus.ONLINE
            latency_ms = result.latency_ms
        except ProbeTimeout:
            status = NodeStatus.OFFLINE
            logger.debug("Probe timeout: %s", node.host)
        except ProbeError as e:
            status = NodeStatus.OFFLINE
            logger.debug("Probe failed: %s - %s", node.host, e)

        location = await self._locate(node.ip) if node.ip else None

        update = HealthUpdate(
            status=status,
            checked_at=self._clock(),
            uptime_ratio=next_uptime_ratio(
                node.uptime_ratio,
                status is NodeStatus.ONLINE,
                self.config.uptime_smoothing,
            ),
            latency_ms=latency_ms,
            country_code=location.country_code if location else None,
            country_name=location.country_name if location else None,
        )
        await asyncio.to_thread(self.store.record_health, node.host, update)

        if status is not node.status:
            logger.info(
                "Node %s: %s -> %s",
                node.host,
                node.status.value,
                status.value,
                extra={"host": node.host, "status": status.value, "latency_ms": latency_ms},
            )
        return status
