"""HTTP API through which a host reads the panel and forwards user actions."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, field_validator

from .host import PanelHost
from .render_model import RenderModel
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")


class ForecastHour(BaseModel):
    """Serialized outlook hour."""
    time: datetime
    description: str
    icon_class: str
    severity: str
    temperature: float
    precipitation_probability: Optional[float] = None
    wind_speed: float
    wind_direction: float


class PanelResponse(BaseModel):
    """Serialized RenderModel."""
    phase: str
    generation: int
    location_name: Optional[str] = None
    description: Optional[str] = None
    icon_class: Optional[str] = None
    severity: Optional[str] = None
    temperature: Optional[float] = None
    temperature_unit: Optional[str] = None
    wind_speed: Optional[float] = None
    wind_speed_unit: Optional[str] = None
    is_day: Optional[bool] = None
    observed_at: Optional[datetime] = None
    stale: bool = False
    busy: bool = False
    error: Optional[str] = None
    status_text: Optional[str] = None
    forecast: List[ForecastHour] = []


class PanelTextResponse(BaseModel):
    """Panel laid out as plain text lines."""
    rows: int
    cols: int
    lines: List[str]


class LocationRequest(BaseModel):
    """Incoming location change."""
    location: str

    @field_validator("location")
    @classmethod
    def non_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only locations."""
        v = v.strip()
        if not v:
            raise ValueError("location must not be blank")
        return v


def get_panel_host(request: Request) -> PanelHost:
    """Return the PanelHost started by the application lifespan."""
    host = getattr(request.app.state, "panel_host", None)
    if host is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Panel host not running")
    return host


def _to_response(model: RenderModel) -> PanelResponse:
    """Convert a RenderModel into its API shape."""
    return PanelResponse(
        phase=model.phase.value,
        generation=model.generation,
        location_name=model.location_name,
        description=model.description,
        icon_class=model.icon_class.value if model.icon_class else None,
        severity=model.severity.value if model.severity else None,
        temperature=model.temperature,
        temperature_unit=model.temperature_unit,
        wind_speed=model.wind_speed,
        wind_speed_unit=model.wind_speed_unit,
        is_day=model.is_day,
        observed_at=model.observed_at,
        stale=model.stale,
        busy=model.busy,
        error=model.error,
        status_text=model.status_text,
        forecast=[
            ForecastHour(
                time=row.time,
                description=row.description,
                icon_class=row.icon_class.value,
                severity=row.severity.value,
                temperature=row.temperature,
                precipitation_probability=row.precipitation_probability,
                wind_speed=row.wind_speed,
                wind_direction=row.wind_direction,
            )
            for row in model.forecast
        ],
    )


router = APIRouter()


@router.get("/panel", response_model=PanelResponse)
async def get_panel(host: PanelHost = Depends(get_panel_host)):
    """Current render model."""
    return _to_response(host.render_model)


@router.get("/panel/text", response_model=PanelTextResponse)
async def get_panel_text(
    rows: int = Query(default=12, ge=1, le=200),
    cols: int = Query(default=80, ge=1, le=500),
    host: PanelHost = Depends(get_panel_host),
):
    """Current render model laid out for a rows x cols pane."""
    return PanelTextResponse(rows=rows, cols=cols, lines=host.render_text(rows, cols))


@router.post("/panel/location", response_model=PanelResponse, status_code=status.HTTP_202_ACCEPTED)
async def change_location(req: LocationRequest, host: PanelHost = Depends(get_panel_host)):
    """Restart the pipeline for a new location."""
    logger.info("Location change requested", extra={"location": req.location})
    host.change_location(req.location)
    return _to_response(host.render_model)


@router.post("/panel/retry", response_model=PanelResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry(host: PanelHost = Depends(get_panel_host)):
    """Reload after a failure."""
    host.retry()
    return _to_response(host.render_model)


@router.post("/panel/refresh", response_model=PanelResponse, status_code=status.HTTP_202_ACCEPTED)
async def refresh(host: PanelHost = Depends(get_panel_host)):
    """Refresh the weather now."""
    host.refresh()
    return _to_response(host.render_model)
