"""Interfaces for geocoding and weather data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from weatherpane.data_sources.geocoding_client import GeoCoordinate
from weatherpane.data_sources.open_meteo_client import WeatherReading


class GeocodeSource(Protocol):
    """Anything that can turn a location string into a coordinate."""

    def resolve(self, query: str) -> GeoCoordinate:
        """Return the best match for `query` or raise a WeatherPaneError."""
        ...


class WeatherSource(Protocol):
    """Anything that can fetch the current reading for a coordinate."""

    def fetch(self, coordinate: GeoCoordinate) -> WeatherReading:
        """Return the current reading or raise a WeatherPaneError."""
        ...


class PanelDataSource(GeocodeSource, WeatherSource, Protocol):
    """Both halves of the pipeline's network dependencies."""


@dataclass
class CallableDataSource(PanelDataSource):
    """Wrap two callables so they can be swapped for fakes or other backends."""

    resolve_location: Callable[[str], GeoCoordinate]
    fetch_weather: Callable[[GeoCoordinate], WeatherReading]

    def resolve(self, query: str) -> GeoCoordinate:
        """Delegate to the configured geocoding callable."""
        return self.resolve_location(query)

    def fetch(self, coordinate: GeoCoordinate) -> WeatherReading:
        """Delegate to the configured weather callable."""
        return self.fetch_weather(coordinate)
