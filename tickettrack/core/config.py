from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration read from environment variables."""

    model_config = SettingsConfigDict(env_prefix="TICKETTRACK_", env_file=".env", case_sensitive=False)

    app_name: str = Field(default="tickettrack")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s %(levelname)s %(name)s %(message)s")

    # Editing sessions
    autosave_delay_ms: int = Field(default=2000, ge=0)
    autosave_enabled: bool = Field(default=True)
    undo_max_history_size: int = Field(default=50, ge=1)

    # Queries and analytics
    default_page_size: int = Field(default=20, ge=1)
    productivity_window_days: int = Field(default=7, ge=1)
    standup_lookback_days: int = Field(default=7, ge=1)

    # Observability configuration
    otel_enabled: bool = Field(default=False)
    otel_service_name: str = Field(default="tickettrack")
    otel_exporter_otlp_endpoint: str | None = Field(default=None)
    otel_exporter_otlp_headers: str | None = Field(default=None)

    @property
    def autosave_delay_seconds(self) -> float:
        return self.autosave_delay_ms / 1000.0


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()
