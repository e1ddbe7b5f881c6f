"""Application configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "bookflow"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Booking data storage
    storage_backend: Literal["memory", "redis"] = "memory"
    storage_key_prefix: str = "bookflow"
    booking_data_ttl_seconds: int = 24 * 60 * 60
    reference_ttl_seconds: int = 60 * 60
    # Redis write lock: expiry if the holder dies, and how long to wait for it
    storage_lock_timeout_seconds: float = Field(default=10.0, gt=0)
    storage_lock_wait_seconds: float = Field(default=5.0, gt=0)

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Session
    session_cookie_name: str = "bookflow_session"
    session_cookie_max_age: int = 24 * 60 * 60

    # Payment confirmation polling
    verification_max_attempts: int = Field(default=10, ge=1)
    verification_interval_seconds: float = Field(default=5.0, ge=0)
    verification_retry_on_network_error: bool = False

    # Payment backend
    verification_gateway: Literal["http", "static"] = "http"
    static_gateway_statuses: List[str] = ["pending", "success"]
    payment_api_base_url: str = "http://localhost:8080/api/v1"
    payment_api_timeout_seconds: float = 30.0

    # Universal success view (front end route)
    success_view_path: str = "/booking/confirmation"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
