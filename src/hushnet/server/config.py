# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Server configuration using pydantic-settings."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from ..core.config import CoreSettings

logger = logging.getLogger(__name__)


def get_package_version() -> str:
    """Get the package version from installed metadata.

    Returns the version from pyproject.toml when installed,
    or a dev fallback when running from source without install.
    """
    try:
        return version("hushnet-registry")
    except PackageNotFoundError:
        return "0.0.0-dev"


class ServerSettings(CoreSettings):
    """Configuration for the registry HTTP server.

    Inherits core settings (DB, stores, health monitor, logging) and adds
    HTTP-specific settings. Server fields use the HUSHNET_ prefix, e.g.
    HUSHNET_HOST and HUSHNET_PORT.
    """

    model_config = SettingsConfigDict(
        env_prefix="HUSHNET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Host to bind to")
    port: int = Field(default=8080, description="Port to bind to")

    # CORS settings
    allowed_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins. The public directory is readable from anywhere by default.",
    )

    health_monitor_enabled: bool = Field(
        default=True,
        description="Run the background health monitor inside the server process",
    )

    server_name: str = Field(default="hushnet-registry", description="Server name")
    server_version: str = Field(default_factory=get_package_version, description="Server version")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


# Global settings instance
_settings: ServerSettings | None = None


def get_settings() -> ServerSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = ServerSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the cached settings (for testing)."""
    global _settings
    _settings = None
