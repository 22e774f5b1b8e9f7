"""Service configuration with environment variable loading."""

import functools

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Meter sync service settings.

    All settings can be overridden via environment variables with the
    METER_SYNC_ prefix. Example: METER_SYNC_LOCAL_DB_HOST, METER_SYNC_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="METER_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Local (edge-resident) store
    local_db_host: str = "localhost"
    local_db_port: int = 5432
    local_db_name: str = "postgres"
    local_db_user: str = "postgres"
    local_db_password: str = ""
    local_db_url: str | None = None  # full SQLAlchemy URL, wins over the parts

    # Remote (central multi-tenant) store
    remote_db_host: str = "localhost"
    remote_db_port: int = 5432
    remote_db_name: str = "postgres"
    remote_db_user: str = "postgres"
    remote_db_password: str = ""
    remote_db_url: str | None = None

    # Connection pools (shared by both stores)
    pool_size: int = 5
    pool_timeout: float = 5.0  # seconds to wait for a pooled connection
    connect_timeout: float = 5.0
    pool_recycle: int = 10  # idle connection reclamation, seconds

    # Remote service API
    remote_api_url: str = "http://localhost:3001"
    remote_api_timeout: float = 5.0
    reading_upload_path: str = "/api/sync/meter-readings"
    remote_api_health_path: str = "/health"

    # Upload queue
    upload_batch_size: int = 100
    upload_max_retries: int | None = None  # None = retry forever
    upload_claim_timeout: float = 300.0  # in-flight claims older than this are reclaimed

    # Connectivity monitor
    monitor_enabled: bool = True
    monitor_interval: float = 60.0
    monitor_timeout: float = 5.0
    # Probe targets; unset means this service's own endpoints on host/port
    monitor_local_db_url: str | None = None
    monitor_remote_db_url: str | None = None
    monitor_remote_api_url: str | None = None

    # HTTP listener (loopback only)
    host: str = "127.0.0.1"
    port: int = 3002
    cors_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    @field_validator(
        "monitor_interval", "monitor_timeout", "remote_api_timeout", "upload_claim_timeout"
    )
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Ensure intervals and timeouts are positive."""
        if v <= 0:
            raise ValueError("intervals and timeouts must be positive")
        return v

    @field_validator("upload_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("upload_batch_size must be at least 1")
        return v

    @field_validator("upload_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("upload_max_retries must be at least 1 (or unset for unlimited)")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @property
    def local_database_url(self) -> str:
        """SQLAlchemy async URL for the local store."""
        if self.local_db_url:
            return self.local_db_url
        return _build_url(
            self.local_db_host,
            self.local_db_port,
            self.local_db_name,
            self.local_db_user,
            self.local_db_password,
        )

    @property
    def remote_database_url(self) -> str:
        """SQLAlchemy async URL for the remote store."""
        if self.remote_db_url:
            return self.remote_db_url
        return _build_url(
            self.remote_db_host,
            self.remote_db_port,
            self.remote_db_name,
            self.remote_db_user,
            self.remote_db_password,
        )

    @property
    def service_url(self) -> str:
        """Base URL this service's own listener answers on."""
        host = "127.0.0.1" if self.host in ("0.0.0.0", "") else self.host
        return f"http://{host}:{self.port}"


def _build_url(host: str, port: int, database: str, user: str, password: str) -> str:
    url = URL.create(
        "postgresql+asyncpg",
        username=user,
        password=password or None,
        host=host,
        port=port,
        database=database,
    )
    return url.render_as_string(hide_password=False)


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    Call get_settings.cache_clear() to reload.
    """
    return Settings()
