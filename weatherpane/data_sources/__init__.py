"""Geocoding and weather data sources for the panel."""

from .geocoding_client import GeoCoordinate, GeocodeClient, normalize_query
from .open_meteo_client import HourlyForecast, WeatherClient, WeatherReading
from .base import CallableDataSource, GeocodeSource, PanelDataSource, WeatherSource
from .factory import OpenMeteoDataSource, build_data_source

__all__ = [
    "build_data_source",
    "OpenMeteoDataSource",
    "CallableDataSource",
    "GeocodeSource",
    "WeatherSource",
    "PanelDataSource",
    "GeoCoordinate",
    "GeocodeClient",
    "normalize_query",
    "HourlyForecast",
    "WeatherClient",
    "WeatherReading",
]
