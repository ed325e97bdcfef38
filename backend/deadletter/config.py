"""Application configuration via Pydantic Settings.

Loads from .env file and environment variables.
All settings are validated at startup.
"""

from __future__ import annotations

from urllib.parse import urlparse

from arq.connections import RedisSettings as ArqRedisSettings
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Dead letter service settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"

    # --- Dead Letter Queue ---
    dlq_queue_name: str = "dead-letter-queue"
    dlq_alert_threshold: int = Field(default=10, ge=1)
    dlq_cleanup_interval_ms: int = Field(default=86_400_000, gt=0)  # 24h
    dlq_retention_days: int = Field(default=30, ge=1)
    dlq_scan_limit: int = Field(default=1000, ge=1)
    dlq_record_ttl_days: int = Field(default=90, ge=1)  # arq key expiry
    dlq_retry_marker_ttl: int = Field(default=3600, ge=1)  # seconds

    # --- Task Queue (arq) ---
    arq_queue_name: str = "deadletter:arq"
    arq_max_jobs: int = 5
    arq_job_timeout: int = 600
    arq_max_tries: int = 5

    # --- App ---
    log_level: str = "INFO"
    log_format: str = "json"

    @model_validator(mode="after")
    def check_queue_names(self) -> Settings:
        # The dead-letter queue is a record store; a worker must never consume it.
        if self.arq_queue_name == self.dlq_queue_name:
            msg = "arq_queue_name must differ from dlq_queue_name"
            raise ValueError(msg)
        if self.dlq_record_ttl_days < self.dlq_retention_days:
            msg = "dlq_record_ttl_days must be >= dlq_retention_days"
            raise ValueError(msg)
        return self

    @property
    def dlq_cleanup_interval_seconds(self) -> float:
        return self.dlq_cleanup_interval_ms / 1000

    def redis_settings(self) -> ArqRedisSettings:
        """Parse redis_url into arq RedisSettings.

        redis_url format: redis://:password@localhost:6379/0
        arq requires host/port/password/database separately.
        """
        parsed = urlparse(self.redis_url)
        database = parsed.path.lstrip("/")
        return ArqRedisSettings(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6379,
            password=parsed.password or None,
            database=int(database) if database else 0,
        )


settings = Settings()
