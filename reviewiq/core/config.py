"""
Configuration management for the ReviewIQ backend.

Secrets (classifier and Places API keys, SMTP credentials) come from the
environment or a .env file, never from source.
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings with environment variable support.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment Settings
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database Configuration
    database_url: str = "sqlite:///./reviewiq.db"
    log_sql_queries: bool = False

    # Classifier (OpenAI-compatible chat completions)
    openai_api_key: Optional[str] = None
    openai_api_base: str = "https://api.openai.com/v1"
    classifier_model: str = "gpt-4o-mini"
    classifier_temperature: float = 0.2
    classifier_timeout_ms: int = 5000

    # Analytics
    metrics_cache_ttl_seconds: int = 60
    metrics_cache_max_size: int = 1000
    sla_threshold_minutes: int = 240
    max_trend_days: int = 365

    # External review sync (Google Places API v1)
    google_places_api_key: Optional[str] = None
    google_places_api_base: str = "https://places.googleapis.com/v1"
    sync_enabled: bool = False
    sync_cron_hours: int = 6
    sync_http_timeout_seconds: int = 30

    # Stuck-pending reconciliation
    pending_sweep_enabled: bool = False
    pending_sweep_interval_minutes: int = 15
    pending_sweep_max_age_minutes: int = 10

    # Email alerts
    smtp_server: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    alert_from_email: str = "alerts@reviewiq.com"
    alert_from_name: str = "ReviewIQ Alerts"

    # API (comma-separated list of allowed origins)
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origin_list(self) -> List[str]:
        """Parse CORS origins from the comma-separated setting."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @field_validator("classifier_timeout_ms", "metrics_cache_ttl_seconds")
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name.upper()} must be positive")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def classifier_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def email_enabled(self) -> bool:
        """Check if email is configured for escalation alerts."""
        return all([self.smtp_server, self.smtp_username, self.smtp_password])


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance with environment variables loaded
    """
    return Settings()


# Export settings instance for easy import
settings = get_settings()
