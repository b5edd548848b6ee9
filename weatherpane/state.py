"""State vocabulary of the fetch pipeline: phases, failures and the FetchState snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from weatherpane.data_sources.geocoding_client import GeoCoordinate
from weatherpane.data_sources.open_meteo_client import WeatherReading
from weatherpane.errors import ConfigurationMissing, LocationNotFound, NetworkFailure, ProviderError


class Phase(str, Enum):
    """Where the pipeline is in the geocode -> weather sequence."""
    IDLE = "idle"
    GEOCODING = "geocoding"
    WEATHER_FETCHING = "weather_fetching"
    READY = "ready"
    GEOCODE_FAILED = "geocode_failed"
    WEATHER_FAILED = "weather_failed"


class ErrorKind(str, Enum):
    """Failure classes surfaced to the render model."""
    LOCATION_NOT_FOUND = "location_not_found"
    NETWORK_FAILURE = "network_failure"
    PROVIDER_ERROR = "provider_error"
    CONFIGURATION_MISSING = "configuration_missing"


class Stage(str, Enum):
    """Which network call a failure belongs to."""
    GEOCODE = "geocode"
    WEATHER = "weather"


_STAGE_LABELS = {Stage.GEOCODE: "location lookup", Stage.WEATHER: "weather update"}


@dataclass(frozen=True)
class Failure:
    """A surfaced error: terminal, or retryable with retries exhausted."""
    kind: ErrorKind
    stage: Stage
    retryable: bool
    detail: str

    @property
    def summary(self) -> str:
        """One-line, human-readable error for the panel."""
        if self.kind == ErrorKind.LOCATION_NOT_FOUND:
            return LocationNotFound.summary
        if self.kind == ErrorKind.CONFIGURATION_MISSING:
            return ConfigurationMissing.summary
        reason = NetworkFailure.summary if self.kind == ErrorKind.NETWORK_FAILURE else ProviderError.summary
        return f"{_STAGE_LABELS[self.stage]} failed: {reason}"


@dataclass(frozen=True)
class RequestId:
    """Tag carried by a network command and echoed back by its completion."""
    generation: int
    serial: int


@dataclass(frozen=True)
class FetchState:
    """Immutable snapshot of the pipeline; replaced on every accepted event."""
    phase: Phase = Phase.IDLE
    generation: int = 0
    query: Optional[str] = None
    coordinate: Optional[GeoCoordinate] = None
    reading: Optional[WeatherReading] = None
    error: Optional[Failure] = None
    attempt: int = 0
    pending_request: Optional[RequestId] = None
    retry_pending: bool = False
    stale: bool = False

    @property
    def busy(self) -> bool:
        """True while a request is in flight or a retry is scheduled."""
        return self.phase in (Phase.GEOCODING, Phase.WEATHER_FETCHING)
