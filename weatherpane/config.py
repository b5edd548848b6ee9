"""Panel configuration pulled from environment variables via pydantic."""
from __future__ import annotations

from typing import Mapping, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from weatherpane.errors import ConfigurationMissing
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="config")

LOCATION_OPTION = "location"


class Settings(BaseSettings):
    """Environment-driven configuration for the weather panel."""
    model_config = SettingsConfigDict(env_prefix="WEATHERPANE_", extra="ignore")

    location: str | None = None
    default_location: str | None = "Vienna"
    refresh_interval_seconds: float = 900.0
    http_timeout_seconds: float = 10.0
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    temperature_unit: str = "celsius"  # options: celsius, fahrenheit
    wind_speed_unit: str = "kmh"  # options: kmh, ms, mph, kn
    forecast_hours: int = 8
    geocode_language: str = "en"
    geocode_cache_expire_seconds: int = 86400
    geocoding_base_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    weather_base_url: str = "https://api.open-meteo.com/v1/forecast"
    log_level: str = "INFO"
    log_file: str | None = None

    @field_validator("location", "default_location", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty or whitespace-only locations as unset."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("retry_max_attempts", "forecast_hours", mode="after")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        """Reject counts below one."""
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("refresh_interval_seconds", "http_timeout_seconds", mode="after")
    @classmethod
    def positive(cls, v: float) -> float:
        """Reject zero or negative durations."""
        if v <= 0:
            raise ValueError("must be positive")
        return v


settings = Settings()


def resolve_location_query(options: Mapping[str, str] | None = None,
                           config: Settings | None = None) -> str:
    """
    Pick the location string for the panel.

    The host's ``location=<free text>`` option wins, then the ``location``
    setting, then ``default_location``. Raises ConfigurationMissing when all
    of them are blank.
    """
    config = config or settings
    candidates = [
        ((options or {}).get(LOCATION_OPTION), "host option"),
        (config.location, "settings.location"),
        (config.default_location, "settings.default_location"),
    ]
    for value, source in candidates:
        if value is not None and str(value).strip():
            query = str(value).strip()
            logger.info("Resolved location query", extra={"query": query, "source": source})
            return query
    raise ConfigurationMissing("No location option supplied and no default location configured")


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
