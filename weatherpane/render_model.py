"""Read-only snapshot of what the panel should show, derived from FetchState."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional, Tuple

from weatherpane.state import FetchState, Phase
from weatherpane.weather_codes import IconClass, Severity, describe

FETCHING_TEXT = "Fetching data..."
WAITING_TEXT = "Waiting to start"


@dataclass(frozen=True)
class ForecastRow:
    """One hour of the outlook, already described."""
    time: dt.datetime
    description: str
    icon_class: IconClass
    severity: Severity
    temperature: float
    precipitation_probability: Optional[float]
    wind_speed: float
    wind_direction: float


@dataclass(frozen=True)
class RenderModel:
    """
    Everything the drawing layer needs, and nothing it could mutate.

    When `has_reading` is False the panel shows either `error` or
    `status_text`; otherwise it shows the reading, marked by `stale` when a
    refresh is pending or has failed, with `error` as an extra line.
    """
    phase: Phase
    generation: int
    location_name: Optional[str] = None
    description: Optional[str] = None
    icon_class: Optional[IconClass] = None
    severity: Optional[Severity] = None
    temperature: Optional[float] = None
    temperature_unit: Optional[str] = None
    wind_speed: Optional[float] = None
    wind_speed_unit: Optional[str] = None
    is_day: Optional[bool] = None
    observed_at: Optional[dt.datetime] = None
    stale: bool = False
    busy: bool = False
    error: Optional[str] = None
    status_text: Optional[str] = None
    forecast: Tuple[ForecastRow, ...] = ()

    @property
    def has_reading(self) -> bool:
        return self.temperature is not None

    def displayed_content(self) -> tuple:
        """The fields a viewer sees, minus timestamps, for change detection."""
        return (
            self.location_name,
            self.description,
            self.icon_class,
            self.temperature,
            self.temperature_unit,
            self.wind_speed,
            self.wind_speed_unit,
            self.stale,
            self.error,
            tuple(
                (row.description, row.temperature, row.precipitation_probability, row.wind_speed, row.wind_direction)
                for row in self.forecast
            ),
        )


def build_render_model(state: FetchState) -> RenderModel:
    """Project a FetchState onto a fresh RenderModel."""
    location_name = state.coordinate.resolved_name if state.coordinate else state.query
    error = state.error.summary if state.error else None

    if state.reading is None:
        status_text = None
        if state.busy:
            status_text = FETCHING_TEXT
        elif state.phase == Phase.IDLE:
            status_text = WAITING_TEXT
        return RenderModel(
            phase=state.phase,
            generation=state.generation,
            location_name=location_name,
            busy=state.busy,
            error=error,
            status_text=status_text,
        )

    reading = state.reading
    condition = describe(reading.condition_code, reading.is_day)
    forecast = []
    for hour in reading.forecast:
        hour_condition = describe(hour.condition_code, hour.is_day)
        forecast.append(
            ForecastRow(
                time=hour.time,
                description=hour_condition.description,
                icon_class=hour_condition.icon_class,
                severity=hour_condition.severity,
                temperature=hour.temperature,
                precipitation_probability=hour.precipitation_probability,
                wind_speed=hour.wind_speed,
                wind_direction=hour.wind_direction,
            )
        )

    return RenderModel(
        phase=state.phase,
        generation=state.generation,
        location_name=location_name,
        description=condition.description,
        icon_class=condition.icon_class,
        severity=condition.severity,
        temperature=reading.temperature,
        temperature_unit=reading.temperature_unit,
        wind_speed=reading.wind_speed,
        wind_speed_unit=reading.wind_speed_unit,
        is_day=reading.is_day,
        observed_at=reading.observed_at,
        stale=state.stale,
        busy=state.busy,
        error=error,
        status_text=None,
        forecast=tuple(forecast),
    )
