"""Lay a RenderModel out as plain text lines for a fixed-size terminal pane."""

from __future__ import annotations

from typing import List, Optional

from weatherpane.render_model import ForecastRow, RenderModel

CONTROLS_TEXT = "Reload: POST /v1/panel/retry | New location: POST /v1/panel/location"
STALE_MARK = "(stale)"


def wind_direction_arrow(degrees: Optional[float]) -> str:
    """Arrow pointing where the wind blows to, from the direction it comes from."""
    if degrees is None or degrees < 0:
        return "?"
    if degrees < 45 or degrees == 360:
        return "↓"  # north
    if degrees < 90:
        return "↙"  # north-east
    if degrees < 135:
        return "←"  # east
    if degrees < 180:
        return "↖"  # south-east
    if degrees < 225:
        return "↑"  # south
    if degrees < 270:
        return "↗"  # south-west
    if degrees < 315:
        return "→"  # west
    if degrees < 360:
        return "↘"  # north-west
    return "?"


def _fit(text: str, cols: int) -> str:
    return text if len(text) <= cols else text[:cols]


def _center(text: str, cols: int) -> str:
    text = _fit(text, cols)
    return " " * max(0, (cols - len(text)) // 2) + text


def format_hour(row: ForecastRow, temperature_unit: str, wind_speed_unit: str) -> str:
    """One outlook line: time, condition, temperature, rain chance, wind."""
    precip = "--" if row.precipitation_probability is None else f"{row.precipitation_probability:.0f}"
    return (
        f"{row.time:%H}:00  {row.description.upper():<30} "
        f"{row.temperature:>5.1f}{temperature_unit}  "
        f"💧 {precip:>3}%  "
        f"{wind_direction_arrow(row.wind_direction)} {row.wind_speed:g}{wind_speed_unit}"
    )


def format_current(model: RenderModel) -> str:
    """Current conditions on one line."""
    return (
        f"{model.description}  {model.temperature:.1f}{model.temperature_unit or ''}  "
        f"wind {model.wind_speed:g} {model.wind_speed_unit or ''}".rstrip()
    )


def render_panel(model: RenderModel, rows: int, cols: int) -> List[str]:
    """Return at most `rows` lines, none longer than `cols`."""
    if rows <= 0 or cols <= 0:
        return []

    block: List[str] = []
    footer: Optional[str] = None
    if not model.has_reading:
        message = model.error or model.status_text or ""
        block.append(_center(message, cols))
        if model.error:
            footer = CONTROLS_TEXT
    else:
        header = model.location_name or ""
        if model.stale:
            header = f"{header} {STALE_MARK}".strip()
        block.append(_center(header, cols))
        block.append(_center(format_current(model), cols))
        if model.error:
            block.append(_center(model.error, cols))
        if model.forecast:
            block.append("")
            hours = [
                format_hour(row, model.temperature_unit or "", model.wind_speed_unit or "")
                for row in model.forecast
            ]
            width = max(len(h) for h in hours)
            indent = " " * max(0, (cols - width) // 2)
            block.extend(_fit(indent + h, cols) for h in hours)
        footer = CONTROLS_TEXT

    body_rows = rows - 1 if footer is not None and rows > 1 else rows
    block = block[:body_rows]
    top = max(0, (body_rows - len(block)) // 2)
    lines = [""] * top + block
    lines += [""] * (body_rows - len(lines))
    if footer is not None and rows > 1:
        lines.append(_fit(footer, cols))
    return [line.rstrip() for line in lines]
