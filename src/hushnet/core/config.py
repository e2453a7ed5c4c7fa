"""Core configuration - centralized config for the hushnet package.

All environment-based configuration flows through this module.

Usage:
    from hushnet.core.config import get_config
    config = get_config()

    timeout = config.health_timeout_ms
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    """Core configuration settings for the registry.

    Most settings use the HUSHNET_ prefix. The database target and the
    health-check knobs also accept the bare names used by the container
    deployment (DATABASE_URL, HEALTH_TIMEOUT_MS, GEOIP_URL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # DATABASE SETTINGS
    # ==========================================================================

    database_url: str | None = Field(
        default=None,
        description="libpq connection string; overrides the discrete db_* settings",
        validation_alias=AliasChoices("HUSHNET_DATABASE_URL", "DATABASE_URL"),
    )
    db_host: str = Field(
        default="localhost",
        description="Database host",
        validation_alias="HUSHNET_DB_HOST",
    )
    db_port: int = Field(
        default=5432,
        description="Database port",
        validation_alias="HUSHNET_DB_PORT",
    )
    db_name: str = Field(
        default="hushnet",
        description="Database name",
        validation_alias="HUSHNET_DB_NAME",
    )
    db_user: str = Field(
        default="hushnet",
        description="Database user",
        validation_alias="HUSHNET_DB_USER",
    )
    db_password: str = Field(
        default="",
        description="Database password",
        validation_alias="HUSHNET_DB_PASSWORD",
    )

    # Connection pool settings
    db_pool_min: int = Field(
        default=1,
        description="Minimum pool connections",
        validation_alias="HUSHNET_DB_POOL_MIN",
    )
    db_pool_max: int = Field(
        default=10,
        description="Maximum pool connections",
        validation_alias="HUSHNET_DB_POOL_MAX",
    )

    # ==========================================================================
    # REGISTRY SETTINGS
    # ==========================================================================

    challenge_store: str = Field(
        default="postgres",
        description="Challenge store backend: 'postgres', 'memory' or 'redis'",
        validation_alias="HUSHNET_CHALLENGE_STORE",
    )
    node_store: str = Field(
        default="postgres",
        description="Node store backend: 'postgres' or 'memory'",
        validation_alias="HUSHNET_NODE_STORE",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis URL for the redis challenge store",
        validation_alias="HUSHNET_REDIS_URL",
    )
    challenge_ttl_seconds: int = Field(
        default=300,
        description="Lifetime of an issued challenge nonce",
        validation_alias="HUSHNET_CHALLENGE_TTL_SECONDS",
    )

    # ==========================================================================
    # HEALTH MONITOR SETTINGS
    # ==========================================================================

    health_timeout_ms: int = Field(
        default=3000,
        description="Per-probe timeout in milliseconds",
        validation_alias=AliasChoices("HUSHNET_HEALTH_TIMEOUT_MS", "HEALTH_TIMEOUT_MS"),
    )
    health_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between health cycles",
        validation_alias=AliasChoices("HUSHNET_HEALTH_INTERVAL_SECONDS", "HEALTH_INTERVAL_SECONDS"),
    )
    health_path: str = Field(
        default="/health",
        description="Liveness path appended to each node's api_base_url",
        validation_alias="HUSHNET_HEALTH_PATH",
    )
    health_max_concurrency: int = Field(
        default=32,
        description="Maximum probes in flight per cycle",
        validation_alias="HUSHNET_HEALTH_MAX_CONCURRENCY",
    )
    uptime_smoothing: float = Field(
        default=0.1,
        description="EWMA weight of the latest probe outcome in uptime_ratio",
        validation_alias="HUSHNET_UPTIME_SMOOTHING",
    )

    geoip_enabled: bool = Field(
        default=True,
        description="Enrich nodes with country data after each probe",
        validation_alias="HUSHNET_GEOIP_ENABLED",
    )
    geoip_url: str = Field(
        default="https://ipapi.co/{ip}/json/",
        description="Location lookup URL template, {ip} is substituted",
        validation_alias=AliasChoices("HUSHNET_GEOIP_URL", "GEOIP_URL"),
    )
    geoip_timeout_seconds: float = Field(
        default=3.0,
        description="Location lookup timeout",
        validation_alias="HUSHNET_GEOIP_TIMEOUT_SECONDS",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="HUSHNET_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="HUSHNET_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="HUSHNET_LOG_FILE",
    )

    @field_validator("uptime_smoothing")
    @classmethod
    def _check_smoothing(cls, value: float) -> float:
        if not 0.0 < value <= 1.0:
            raise ValueError("uptime_smoothing must be in (0, 1]")
        return value

    @field_validator("health_timeout_ms", "health_max_concurrency", "challenge_ttl_seconds")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def connection_params(self) -> dict:
        """Get database connection parameters for psycopg2."""
        if self.database_url:
            return {"dsn": self.database_url}
        return {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }

    @property
    def pool_config(self) -> dict:
        """Get connection pool configuration."""
        return {
            "minconn": self.db_pool_min,
            "maxconn": self.db_pool_max,
        }

    @property
    def health_timeout_seconds(self) -> float:
        return self.health_timeout_ms / 1000.0


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
