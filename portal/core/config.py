from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Portal configuration read from ``PORTAL_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="PORTAL_", env_file=".env", case_sensitive=False)

    app_name: str = Field(default="Maker-Checker Portal")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s %(levelname)s %(name)s [trace=%(trace_id)s] %(message)s")
    # Per-logger overrides, e.g. "portal.reports=DEBUG,httpx=INFO"
    log_levels: str | None = Field(default=None)

    # Backend access
    api_base_url: str = Field(default="http://localhost:8080/api")
    request_timeout: float = Field(default=10.0, gt=0)

    # Report export
    report_domain: str = Field(default="tickets")
    poll_interval_seconds: float = Field(default=2.0, gt=0)
    poll_jitter_seconds: float = Field(default=0.5, ge=0)
    rate_limit_notice_threshold: int = Field(default=3, ge=1)
    download_dir: str = Field(default=".")

    # Ticket list view
    search_debounce_seconds: float = Field(default=0.3, ge=0)
    page_size: int = Field(default=10, ge=1, le=100)

    # Role parsing; substring matching is kept only for old identity providers
    legacy_role_substring_match: bool = Field(default=False)

    # Reference server
    api_prefix: str = Field(default="/api")
    report_step_delay_seconds: float = Field(default=0.5, ge=0)
    status_rate_limit: int = Field(default=30, ge=1)
    status_rate_window_seconds: int = Field(default=10, ge=1)

    # Observability configuration
    otel_enabled: bool = Field(default=False)
    otel_service_name: str = Field(default="maker-checker-portal")
    otel_exporter_otlp_endpoint: str | None = Field(default=None)
    otel_exporter_otlp_headers: str | None = Field(default=None)


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the portal settings."""

    return Settings()
