"""Core configuration settings.

Centralized configuration using Pydantic Settings for environment
variable management with sensible defaults.
"""

import logging
import os
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Environment Detection
    # =========================================================================

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )

    # Application
    app_name: str = "Azure Cost Pilot"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Dashboard base URL used in notification links
    dashboard_base_url: str = "http://localhost:4200"

    # Database
    database_url: str = "sqlite:///./data/costpilot.db"

    # Fallback Azure credentials (used when a connection has no own secret)
    azure_tenant_id: str | None = None
    azure_client_id: str | None = None
    azure_client_secret: str | None = None

    # =========================================================================
    # Worker & Engine
    # =========================================================================

    worker_run_interval_hours: int = Field(default=24, alias="WORKER_RUN_INTERVAL_HOURS")
    cost_sync_days: int = Field(default=7, alias="COST_SYNC_DAYS")
    backfill_days: int = Field(default=30, alias="BACKFILL_DAYS")
    event_lookback_days: int = Field(default=14, alias="EVENT_LOOKBACK_DAYS")
    waste_lookback_days: int = Field(default=30, alias="WASTE_LOOKBACK_DAYS")
    spike_threshold: Decimal = Field(default=Decimal("5"), alias="SPIKE_THRESHOLD")
    history_days: int = Field(default=7, alias="HISTORY_DAYS")

    # Notifications
    notification_enabled: bool = False
    notification_min_severity: str = "warning"  # info, warning, error, critical
    notification_cooldown_minutes: int = 30
    teams_webhook_url: str | None = None

    # Database Configuration
    database_pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    database_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")
    database_pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT")
    slow_query_threshold_ms: float = Field(default=500.0, alias="SLOW_QUERY_THRESHOLD_MS")
    enable_query_logging: bool = Field(default=False, alias="ENABLE_QUERY_LOGGING")

    # Performance & Bulk Operations
    bulk_batch_size: int = Field(default=1000, alias="BULK_BATCH_SIZE")

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("environment", mode="before")
    @classmethod
    def detect_environment(cls, v: str | None) -> str:
        """Auto-detect environment from common environment variables."""
        if v:
            return v.lower()

        if os.getenv("PRODUCTION") or os.getenv("PROD"):
            return "production"
        if os.getenv("STAGING"):
            return "staging"

        return "development"

    @field_validator("worker_run_interval_hours")
    @classmethod
    def clamp_run_interval(cls, v: int) -> int:
        """Worker never runs more often than once an hour."""
        return max(1, v)

    @field_validator("spike_threshold")
    @classmethod
    def default_spike_threshold(cls, v: Decimal) -> Decimal:
        """Non-positive thresholds fall back to the default of 5."""
        if v <= 0:
            logger.warning(f"Ignoring non-positive spike threshold {v}, using 5")
            return Decimal("5")
        return v

    @model_validator(mode="after")
    def validate_debug_mode(self):
        """Prevent debug mode in production."""
        if self.environment == "production" and self.debug:
            logger.error(
                "DEBUG mode cannot be enabled in production! "
                "Set DEBUG=false or ENVIRONMENT=development"
            )
            raise ValueError("DEBUG cannot be True in production environment")

        return self

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def has_fallback_credentials(self) -> bool:
        """Check if fallback Azure credentials are present."""
        return all([
            self.azure_tenant_id,
            self.azure_client_id,
            self.azure_client_secret,
        ])


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
