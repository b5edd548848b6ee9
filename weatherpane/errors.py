"""Error taxonomy shared by the provider clients, the pipeline and the HTTP surface."""

from __future__ import annotations


class WeatherPaneError(Exception):
    """Base exception for all weatherpane errors."""

    retryable: bool = False
    summary: str = "weather unavailable"


class LocationNotFound(WeatherPaneError):
    """Raised when the geocoding provider returns zero matches for a query."""

    summary = "location not found"

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"No geocoding match for {query!r}")


class NetworkFailure(WeatherPaneError):
    """Raised on transport-level problems (DNS, connection refused, timeout)."""

    retryable = True
    summary = "network unavailable"


class ProviderError(WeatherPaneError):
    """Raised when a provider answers with a non-2xx status or a malformed payload."""

    retryable = True
    summary = "provider error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message if status_code is None else f"HTTP {status_code}: {message}")


class ConfigurationMissing(WeatherPaneError):
    """Raised at startup when neither a location nor a default location is configured."""

    summary = "no location configured"


__all__ = [
    "WeatherPaneError",
    "LocationNotFound",
    "NetworkFailure",
    "ProviderError",
    "ConfigurationMissing",
]
