from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FINIATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "finiate"
    debug: bool = False

    # Logging
    log_level: str = "WARNING"
    json_logs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///finiate.db"

    # Store I/O: per unit-of-work timeout and attempts on transient errors (2 = one retry)
    store_timeout_seconds: float = 10.0
    store_retry_attempts: int = 2

    # Lifecycle
    default_put_off: str = "1d"  # extension used by put-off without --until/--by
    status_max_amount: int = 5


@lru_cache
def get_settings() -> Settings:
    return Settings()
