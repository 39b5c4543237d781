"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match current behavior of the collections engine

Collaborators:
  - container.py: reads settings to compose repositories, cache and queue
  - infrastructure/db/pool.py: statement/lock timeouts
  - worker/worker.py: Redis + queue name

Constraints:
  - No business logic, pure configuration
  - Limits live here so they can differ per environment

Notes:
  - Uses pydantic-settings for env parsing and validation
  - Singleton via lru_cache
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        database_url: PostgreSQL connection string
        app_env: Application environment (development/production/test)
        log_level: Root log level (default: INFO)
        log_json: Emit JSON logs (default: True)
        redis_url: Redis connection string for cache/queue (optional)
        db_pool_min_size / db_pool_max_size: connection pool bounds
        db_statement_timeout_ms: statement_timeout per connection
        db_lock_timeout_ms: lock_timeout per unit of work (row locks)
        db_slow_query_seconds: statements slower than this are logged
        db_healthcheck_on_acquire: SELECT 1 before handing out a connection
        db_application_name: application_name reported to pg_stat_activity
        duplicate_check_minutes: symmetric duplicate window (default: 30)
        max_bulk_create_items: max items per bulk create (default: 1000)
        max_bulk_cancel_items: max ids per bulk cancel (default: 500)
        max_collection_amount: upper bound for amounts (default: 1_000_000_000)
        business_utc_offset_hours: business day offset (default: +5, Tashkent)
        notifications_queue_name: RQ queue for manager notifications
        manager_webhook_url: webhook that receives manager notifications
        metrics_port: worker /metrics port (0 disables it)
    """

    # Required (no defaults)
    database_url: str

    # Environment
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Redis (cache + queue)
    redis_url: str = ""
    report_cache_backend: str = ""

    # Database - Connection Pool
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_statement_timeout_ms: int = 30000  # 30 seconds
    db_lock_timeout_ms: int = 5000
    db_slow_query_seconds: float = 0.25
    db_healthcheck_on_acquire: bool = True
    db_application_name: str = "vendcash"

    # Collections - business limits
    duplicate_check_minutes: int = 30
    max_bulk_create_items: int = 1000
    max_bulk_cancel_items: int = 500
    max_collection_amount: int = 1_000_000_000
    business_utc_offset_hours: int = 5

    # Observability (0 = sin endpoint /metrics)
    metrics_port: int = 0

    # Notifications
    notifications_queue_name: str = "notifications"
    notifications_retry_max_attempts: int = 3
    manager_webhook_url: str = ""
    manager_webhook_timeout_seconds: float = 5.0

    # Retry/Resilience
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0

    @field_validator("duplicate_check_minutes")
    @classmethod
    def duplicate_window_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("duplicate_check_minutes must be greater than 0")
        return v

    @field_validator(
        "max_bulk_create_items", "max_bulk_cancel_items", "max_collection_amount"
    )
    @classmethod
    def limits_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("collection limits must be greater than 0")
        return v

    @field_validator("db_lock_timeout_ms", "db_statement_timeout_ms")
    @classmethod
    def timeouts_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("database timeouts must be >= 0")
        return v

    @field_validator("db_slow_query_seconds")
    @classmethod
    def slow_query_threshold_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("db_slow_query_seconds must be greater than 0")
        return v

    @field_validator("business_utc_offset_hours")
    @classmethod
    def offset_in_range(cls, v: int) -> int:
        if v < -12 or v > 14:
            raise ValueError("business_utc_offset_hours must be between -12 and 14")
        return v

    @field_validator("report_cache_backend")
    @classmethod
    def cache_backend_valid(cls, v: str) -> str:
        backend = (v or "").strip().lower()
        if backend not in {"", "memory", "redis"}:
            raise ValueError("report_cache_backend must be memory or redis")
        return backend

    def validate_pool_params(self) -> None:
        """
        Cross-field validation: min pool size cannot exceed max.
        Called explicitly after instantiation.
        """
        if self.db_pool_min_size > self.db_pool_max_size:
            raise ValueError(
                f"db_pool_min_size ({self.db_pool_min_size}) must be <= "
                f"db_pool_max_size ({self.db_pool_max_size})"
            )

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    def is_test(self) -> bool:
        return self.app_env.strip().lower() in {"test", "testing", "ci"}

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    settings = Settings()
    settings.validate_pool_params()
    return settings
