"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq and sweep locks)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/matrix.log"
    health_check_port: int = Field(
        default=8080, ge=1, le=65535, description="Health check HTTP server port"
    )

    # Quota purchase
    max_quotas_per_level: int = Field(
        default=10,
        gt=0,
        description="Maximum WAITING + PROCESSING quotas per user and level",
    )

    # Cycle processing
    auto_process_cycles: bool = Field(
        default=True,
        description="Try to fire a cycle right after a successful purchase",
    )
    refresh_scores_before_cycle: bool = Field(
        default=True,
        description="Recompute WAITING scores of a level before selecting candidates",
    )
    max_cycles_per_sweep: int = Field(
        default=50, gt=0, description="Upper bound of cycles fired by one sweep"
    )

    # Conflict retry
    conflict_max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries of a transaction after a serialization conflict",
    )
    conflict_retry_backoff_ms: int = Field(
        default=50, ge=0, description="Base backoff between conflict retries"
    )

    # Jupiter Pool staleness thresholds (days since last cycle)
    jupiter_pool_warning_days: int = Field(default=3, ge=0)
    jupiter_pool_critical_days: int = Field(default=5, ge=1)

    # Recovery and scheduling
    stuck_processing_minutes: int = Field(
        default=15,
        gt=0,
        description="Age after which a PROCESSING entry is considered stranded",
    )
    cycle_sweep_interval_seconds: int = Field(default=60, gt=0)
    score_update_interval_seconds: int = Field(default=300, gt=0)
    pool_monitor_interval_seconds: int = Field(default=3600, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level name."""
        level = v.upper()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(
                f"Invalid LOG_LEVEL: {v}. Expected one of: {', '.join(sorted(allowed))}"
            )
        return level

    @model_validator(mode="after")
    def validate_pool_thresholds(self) -> "Settings":
        """Critical staleness must come strictly after the warning threshold."""
        if self.jupiter_pool_critical_days <= self.jupiter_pool_warning_days:
            raise ValueError(
                "JUPITER_POOL_CRITICAL_DAYS must be greater than "
                "JUPITER_POOL_WARNING_DAYS "
                f"({self.jupiter_pool_critical_days} <= {self.jupiter_pool_warning_days})"
            )
        return self

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )
            if self.database_url.startswith("sqlite"):
                logger.warning(
                    "DATABASE_URL points to SQLite in production. "
                    "Row locks are not enforced; use PostgreSQL."
                )
        return self


settings = Settings()
