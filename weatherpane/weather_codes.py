"""WMO weather interpretation codes, as published by Open-Meteo, mapped to panel text and icons.

`describe()` is total: any code outside the published table maps to
`IconClass.UNKNOWN` so the drawing layer never has to handle a failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class IconClass(str, Enum):
    """Glyph family the drawing layer picks an icon from."""
    CLEAR_DAY = "clear_day"
    CLEAR_NIGHT = "clear_night"
    PARTLY_CLOUDY_DAY = "partly_cloudy_day"
    PARTLY_CLOUDY_NIGHT = "partly_cloudy_night"
    CLOUDY = "cloudy"
    FOG = "fog"
    DRIZZLE = "drizzle"
    FREEZING_RAIN = "freezing_rain"
    RAIN = "rain"
    SNOW = "snow"
    RAIN_SHOWERS = "rain_showers"
    SNOW_SHOWERS = "snow_showers"
    THUNDERSTORM = "thunderstorm"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """How strongly the drawing layer should emphasize a condition."""
    NORMAL = "normal"
    NOTICE = "notice"
    WARNING = "warning"


@dataclass(frozen=True)
class Condition:
    """Human-readable description of a weather code."""
    description: str
    icon_class: IconClass
    severity: Severity = Severity.NORMAL


UNKNOWN_CONDITION = Condition("Unknown conditions", IconClass.UNKNOWN)

# code -> (description, day icon, night icon, severity)
_CODES: Dict[int, Tuple[str, IconClass, IconClass, Severity]] = {
    0: ("Clear sky", IconClass.CLEAR_DAY, IconClass.CLEAR_NIGHT, Severity.NORMAL),
    1: ("Mainly clear", IconClass.CLEAR_DAY, IconClass.CLEAR_NIGHT, Severity.NORMAL),
    2: ("Partly cloudy", IconClass.PARTLY_CLOUDY_DAY, IconClass.PARTLY_CLOUDY_NIGHT, Severity.NORMAL),
    3: ("Overcast", IconClass.CLOUDY, IconClass.CLOUDY, Severity.NORMAL),
    45: ("Fog", IconClass.FOG, IconClass.FOG, Severity.NOTICE),
    48: ("Depositing rime fog", IconClass.FOG, IconClass.FOG, Severity.NOTICE),
    51: ("Light drizzle", IconClass.DRIZZLE, IconClass.DRIZZLE, Severity.NOTICE),
    53: ("Moderate drizzle", IconClass.DRIZZLE, IconClass.DRIZZLE, Severity.NOTICE),
    55: ("Dense drizzle", IconClass.DRIZZLE, IconClass.DRIZZLE, Severity.WARNING),
    56: ("Light freezing drizzle", IconClass.FREEZING_RAIN, IconClass.FREEZING_RAIN, Severity.NOTICE),
    57: ("Dense freezing drizzle", IconClass.FREEZING_RAIN, IconClass.FREEZING_RAIN, Severity.WARNING),
    61: ("Slight rain", IconClass.RAIN, IconClass.RAIN, Severity.NOTICE),
    63: ("Moderate rain", IconClass.RAIN, IconClass.RAIN, Severity.NOTICE),
    65: ("Heavy rain", IconClass.RAIN, IconClass.RAIN, Severity.WARNING),
    66: ("Light freezing rain", IconClass.FREEZING_RAIN, IconClass.FREEZING_RAIN, Severity.NOTICE),
    67: ("Heavy freezing rain", IconClass.FREEZING_RAIN, IconClass.FREEZING_RAIN, Severity.WARNING),
    71: ("Slight snow", IconClass.SNOW, IconClass.SNOW, Severity.NOTICE),
    73: ("Moderate snow", IconClass.SNOW, IconClass.SNOW, Severity.WARNING),
    75: ("Heavy snow", IconClass.SNOW, IconClass.SNOW, Severity.WARNING),
    77: ("Snow grains", IconClass.SNOW, IconClass.SNOW, Severity.WARNING),
    80: ("Slight rain showers", IconClass.RAIN_SHOWERS, IconClass.RAIN_SHOWERS, Severity.NOTICE),
    81: ("Moderate rain showers", IconClass.RAIN_SHOWERS, IconClass.RAIN_SHOWERS, Severity.NOTICE),
    82: ("Violent rain showers", IconClass.RAIN_SHOWERS, IconClass.RAIN_SHOWERS, Severity.WARNING),
    85: ("Slight snow showers", IconClass.SNOW_SHOWERS, IconClass.SNOW_SHOWERS, Severity.NOTICE),
    86: ("Heavy snow showers", IconClass.SNOW_SHOWERS, IconClass.SNOW_SHOWERS, Severity.WARNING),
    95: ("Thunderstorm", IconClass.THUNDERSTORM, IconClass.THUNDERSTORM, Severity.WARNING),
    96: ("Thunderstorm with slight hail", IconClass.THUNDERSTORM, IconClass.THUNDERSTORM, Severity.WARNING),
    99: ("Thunderstorm with heavy hail", IconClass.THUNDERSTORM, IconClass.THUNDERSTORM, Severity.WARNING),
}

KNOWN_CODES = frozenset(_CODES)


def describe(code: object, is_day: bool = True) -> Condition:
    """Return the description and icon class for `code`; unknown codes never raise."""
    if isinstance(code, bool) or not isinstance(code, int):
        return UNKNOWN_CONDITION
    entry = _CODES.get(code)
    if entry is None:
        return UNKNOWN_CONDITION
    description, day_icon, night_icon, severity = entry
    return Condition(description, day_icon if is_day else night_icon, severity)
