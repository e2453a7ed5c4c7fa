"""Hushnet monitor - background health checks for registered nodes."""

from .geoip import GeoIPLookup, Location
from .health import CycleReport, HealthMonitor, HealthMonitorConfig, next_uptime_ratio
from .probe import HttpProber, ProbeResult

__all__ = [
    "CycleReport",
    "GeoIPLookup",
    "HealthMonitor",
    "HealthMonitorConfig",
    "HttpProber",
    "Location",
    "ProbeResult",
    "next_uptime_ratio",
]
