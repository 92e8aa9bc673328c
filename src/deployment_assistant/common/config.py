"""Deployment Assistant configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
}


class AssistantSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DA_")

    environment: str = "development"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/assistant.db"

    # API
    api_title: str = "Deployment Assistant"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    log_level: str = "INFO"

    # Expiration monitor
    default_expiration_window: int = 30  # days
    expiration_windows: list[int] = [7, 30, 60, 90]
    lookback_years: int = 5
    imminent_days: int = 7
    upcoming_days: int = 30

    # Customer products status thresholds (days remaining)
    product_active_days: int = 90
    product_expiring_soon_days: int = 30

    # Removals monitor: time frame code -> days back
    removal_time_frames: dict[str, int] = {"1d": 1, "1w": 7, "1m": 30, "1y": 365}
    default_removal_time_frame: str = "1w"

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    def is_allowed_window(self, window: int) -> bool:
        return window in self.expiration_windows

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"DA_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default API key - set DA_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> AssistantSettings:
    settings = AssistantSettings()
    settings.validate_for_production()
    return settings
