from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "applyr-api"
    environment: str = "dev"
    api_prefix: str = "/api/v1"
    storage_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_command_timeout_seconds: float = 15.0
    database_connect_max_retries: int = 5
    database_connect_initial_delay_seconds: float = 1.0
    transaction_timeout_seconds: float | None = None
    auth_base_url: str | None = None
    auth_timeout_seconds: float = 5.0
    log_level: str = "INFO"
    otel_enabled: bool = True
    otel_service_name: str = "applyr-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="APPLYR_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
