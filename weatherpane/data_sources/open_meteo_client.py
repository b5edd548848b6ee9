"""Fetch current conditions and a short hourly outlook from the Open-Meteo forecast API."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

import requests

from weatherpane.config import settings
from weatherpane.data_sources.http import get_json
from weatherpane.errors import ProviderError
from utils.logging_utils import get_tagged_logger

if TYPE_CHECKING:
    from weatherpane.data_sources.geocoding_client import GeoCoordinate

logger = get_tagged_logger(__name__, tag="open_meteo_client")

# Plain session: every refresh has to reach the provider.
session = requests.Session()

CURRENT_VARS = ["temperature_2m", "weather_code", "wind_speed_10m", "is_day"]
HOURLY_VARS = [
    "temperature_2m",
    "precipitation_probability",
    "wind_speed_10m",
    "wind_direction_10m",
    "weather_code",
    "is_day",
]

# Unit labels Open-Meteo reports for each requested unit option.
EXPECTED_UNITS = {
    "celsius": "°C",
    "fahrenheit": "°F",
    "kmh": "km/h",
    "ms": "m/s",
    "mph": "mp/h",
    "kn": "kn",
}

# Acceptable alternative labels that should not trigger warnings.
ALLOWED_UNIT_SYNONYMS = {
    "°C": {"°C", "C"},
    "°F": {"°F", "F"},
    "km/h": {"km/h", "kmh", "kph"},
    "m/s": {"m/s", "ms"},
    "mp/h": {"mp/h", "mph"},
    "kn": {"kn", "knots"},
}


@dataclass(frozen=True)
class HourlyForecast:
    """One hour of the outlook shown under the current conditions."""
    time: dt.datetime  # timezone-aware
    temperature: float
    precipitation_probability: Optional[float]
    wind_speed: float
    wind_direction: float
    condition_code: int
    is_day: bool


@dataclass(frozen=True)
class WeatherReading:
    """Current conditions for a coordinate, in the provider's native units."""
    temperature: float
    condition_code: int
    wind_speed: float
    observed_at: dt.datetime  # timezone-aware
    is_day: bool
    temperature_unit: str = "°C"
    wind_speed_unit: str = "km/h"
    forecast: Tuple[HourlyForecast, ...] = ()


def _require(block: dict, key: str, context: str) -> Any:
    if key not in block or block[key] is None:
        raise ProviderError(f"Open-Meteo {context} is missing {key}")
    return block[key]


def _as_float(value: Any, key: str, context: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProviderError(f"Open-Meteo {context}.{key} is not a number: {value!r}")
    return float(value)


def _as_code(value: Any, context: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or (
            isinstance(value, float) and not value.is_integer()):
        raise ProviderError(f"Open-Meteo {context}.weather_code is not an integer: {value!r}")
    return int(value)


def _as_is_day(value: Any, context: str = "current") -> bool:
    """Open-Meteo reports is_day as 0/1; accept real booleans too."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    raise ProviderError(f"Open-Meteo {context}.is_day is not 0/1: {value!r}")


def _as_time(value: Any, tzinfo: dt.tzinfo, context: str) -> dt.datetime:
    """Interpret an Open-Meteo local time string using the response's UTC offset."""
    if not isinstance(value, str):
        raise ProviderError(f"Open-Meteo {context}.time is not a string: {value!r}")
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise ProviderError(f"Open-Meteo {context}.time is not ISO-8601: {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=tzinfo)


def _warn_on_unexpected_units(units: dict, *, requested: dict, context: str) -> None:
    """Log a warning if Open-Meteo returns units we did not request/expect."""
    if not isinstance(units, dict):
        return
    for field, option in requested.items():
        actual = units.get(field)
        expected = EXPECTED_UNITS.get(option)
        if not actual or not expected or actual == expected:
            continue
        if actual not in ALLOWED_UNIT_SYNONYMS.get(expected, set()):
            logger.warning(
                "Unexpected Open-Meteo unit",
                extra={"context": context, "field": field, "unit": actual, "expected": expected},
            )


def _parse_hourly(data: dict, observed_at: dt.datetime, tzinfo: dt.tzinfo, limit: int) -> Tuple[HourlyForecast, ...]:
    """Return up to `limit` hours starting at the observation hour."""
    hourly = _require(data, "hourly", "response")
    if not isinstance(hourly, dict):
        raise ProviderError("Open-Meteo hourly block is not an object")
    times = _require(hourly, "time", "hourly")
    columns = {var: _require(hourly, var, "hourly") for var in HOURLY_VARS}
    if not isinstance(times, list) or any(
        not isinstance(col, list) or len(col) != len(times) for col in columns.values()
    ):
        raise ProviderError("Open-Meteo hourly columns are not equal-length lists")

    start_hour = observed_at.replace(minute=0, second=0, microsecond=0)
    out: List[HourlyForecast] = []
    for i, t in enumerate(times):
        when = _as_time(t, tzinfo, "hourly")
        if when < start_hour:
            continue
        precip = columns["precipitation_probability"][i]
        out.append(
            HourlyForecast(
                time=when,
                temperature=_as_float(columns["temperature_2m"][i], "temperature_2m", "hourly"),
                # Open-Meteo leaves this null for some models/hours.
                precipitation_probability=None if precip is None else _as_float(
                    precip, "precipitation_probability", "hourly"),
                wind_speed=_as_float(columns["wind_speed_10m"][i], "wind_speed_10m", "hourly"),
                wind_direction=_as_float(columns["wind_direction_10m"][i], "wind_direction_10m", "hourly"),
                condition_code=_as_code(columns["weather_code"][i], "hourly"),
                is_day=_as_is_day(columns["is_day"][i], "hourly"),
            )
        )
        if len(out) >= limit:
            break
    return tuple(out)


def parse_weather_payload(data: Any, *, forecast_hours: int = 8) -> WeatherReading:
    """
    Validate a forecast payload and build a WeatherReading.

    Readings are all-or-nothing: any missing or mistyped required field raises
    ProviderError instead of producing a partial reading.
    """
    if not isinstance(data, dict):
        raise ProviderError("Open-Meteo payload is not an object")
    current = _require(data, "current", "response")
    if not isinstance(current, dict):
        raise ProviderError("Open-Meteo current block is not an object")
    units = data.get("current_units")
    if not isinstance(units, dict):
        units = {}

    offset = data.get("utc_offset_seconds", 0)
    if isinstance(offset, bool) or not isinstance(offset, (int, float)):
        raise ProviderError(f"Open-Meteo utc_offset_seconds is not a number: {offset!r}")
    tzinfo = dt.timezone(dt.timedelta(seconds=int(offset)))

    observed_at = _as_time(_require(current, "time", "current"), tzinfo, "current")
    temperature = _as_float(_require(current, "temperature_2m", "current"), "temperature_2m", "current")
    code = _as_code(_require(current, "weather_code", "current"), "current")
    wind_speed = _as_float(_require(current, "wind_speed_10m", "current"), "wind_speed_10m", "current")
    is_day = _as_is_day(_require(current, "is_day", "current"))

    return WeatherReading(
        temperature=temperature,
        condition_code=code,
        wind_speed=wind_speed,
        observed_at=observed_at,
        is_day=is_day,
        temperature_unit=str(units.get("temperature_2m") or "°C"),
        wind_speed_unit=str(units.get("wind_speed_10m") or "km/h"),
        forecast=_parse_hourly(data, observed_at, tzinfo, forecast_hours),
    )


class WeatherClient:
    """Fetches the current reading for a resolved coordinate."""

    def __init__(self,
                 http_session: requests.Session | None = None,
                 *,
                 base_url: str | None = None,
                 timeout: float | None = None,
                 temperature_unit: str | None = None,
                 wind_speed_unit: str | None = None,
                 forecast_hours: int | None = None):
        """Initialize from settings; every argument can be overridden."""
        self.session = http_session or session
        self.base_url = base_url or settings.weather_base_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.temperature_unit = temperature_unit or settings.temperature_unit
        self.wind_speed_unit = wind_speed_unit or settings.wind_speed_unit
        self.forecast_hours = forecast_hours or settings.forecast_hours

    def fetch(self, coordinate: "GeoCoordinate") -> WeatherReading:
        """Fetch current conditions, raising NetworkFailure or ProviderError."""
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "current": ",".join(CURRENT_VARS),
            "hourly": ",".join(HOURLY_VARS),
            "timezone": "auto",
            "forecast_days": 2,
            "temperature_unit": self.temperature_unit,
            "wind_speed_unit": self.wind_speed_unit,
        }
        data = get_json(self.session, self.base_url, params, timeout=self.timeout)
        if isinstance(data, dict):
            _warn_on_unexpected_units(
                data.get("current_units"),
                requested={"temperature_2m": self.temperature_unit, "wind_speed_10m": self.wind_speed_unit},
                context="weather_current",
            )
        reading = parse_weather_payload(data, forecast_hours=self.forecast_hours)
        logger.info(
            "Fetched weather",
            extra={
                "resolved_name": coordinate.resolved_name,
                "temperature": reading.temperature,
                "condition_code": reading.condition_code,
                "observed_at": reading.observed_at.isoformat(),
            },
        )
        return reading
