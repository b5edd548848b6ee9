"""Factory helpers for choosing the panel's data source at startup."""

from __future__ import annotations

from dataclasses import dataclass

from weatherpane import config
from weatherpane.data_sources.base import PanelDataSource
from weatherpane.data_sources.geocoding_client import GeoCoordinate, GeocodeClient
from weatherpane.data_sources.open_meteo_client import WeatherClient, WeatherReading
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "open_meteo"


@dataclass
class OpenMeteoDataSource(PanelDataSource):
    """Open-Meteo geocoding + forecast clients behind one object."""

    geocoder: GeocodeClient
    weather: WeatherClient

    def resolve(self, query: str) -> GeoCoordinate:
        """Resolve a location through the geocoding API."""
        return self.geocoder.resolve(query)

    def fetch(self, coordinate: GeoCoordinate) -> WeatherReading:
        """Fetch current conditions through the forecast API."""
        return self.weather.fetch(coordinate)


def build_data_source(settings: config.Settings | None = None, source: str | None = None) -> PanelDataSource:
    """Instantiate the configured data source."""
    settings = settings or config.settings
    source = (source or DEFAULT_SOURCE_NAME).lower()

    if source == "open_meteo":
        logger.info("Using Open-Meteo data source")
        return OpenMeteoDataSource(
            geocoder=GeocodeClient(
                base_url=settings.geocoding_base_url,
                language=settings.geocode_language,
                timeout=settings.http_timeout_seconds,
            ),
            weather=WeatherClient(
                base_url=settings.weather_base_url,
                timeout=settings.http_timeout_seconds,
                temperature_unit=settings.temperature_unit,
                wind_speed_unit=settings.wind_speed_unit,
                forecast_hours=settings.forecast_hours,
            ),
        )

    raise ValueError(f"Unknown data source '{source}'")
