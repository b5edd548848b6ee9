"""Asyncio host runtime: runs the pipeline's commands and feeds results back as events.

Everything that touches the pipeline runs on the event loop thread. Blocking
provider calls are pushed to a worker thread with ``asyncio.to_thread`` and
their outcome is dispatched back on the loop, so the pipeline only ever sees
one event at a time.
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Mapping, Optional, Set

from weatherpane import config
from weatherpane.backoff import RetryPolicy
from weatherpane.data_sources import PanelDataSource, build_data_source
from weatherpane.errors import ConfigurationMissing
from weatherpane.panel_text import render_panel
from weatherpane.pipeline import (
    Command,
    Event,
    FetchPipeline,
    FetchWeather,
    GeocodeCompleted,
    Reconfigure,
    RefreshTick,
    ResolveLocation,
    RetryDue,
    ScheduleRetry,
    Start,
    UserRetry,
    WeatherCompleted,
)
from weatherpane.render_model import RenderModel
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="host")


class PanelHost:
    """Drives one FetchPipeline: network completions, retry timers and the refresh tick."""

    def __init__(self,
                 pipeline: FetchPipeline,
                 data_source: PanelDataSource,
                 *,
                 refresh_interval: float = 900.0):
        self.pipeline = pipeline
        self.data_source = data_source
        self.refresh_interval = refresh_interval
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ticker: Optional[asyncio.Task] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._requests: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls,
                      options: Mapping[str, str] | None = None,
                      settings: config.Settings | None = None,
                      data_source: PanelDataSource | None = None) -> "PanelHost":
        """Build a host from the plugin options and settings."""
        settings = settings or config.settings
        try:
            query: Optional[str] = config.resolve_location_query(options, settings)
        except ConfigurationMissing as exc:
            # Start() turns a missing query into a visible, terminal error.
            logger.error("Starting without a location", extra={"error": str(exc)})
            query = None
        pipeline = FetchPipeline(query, retry_policy=RetryPolicy.from_settings(settings))
        return cls(
            pipeline,
            data_source or build_data_source(settings),
            refresh_interval=settings.refresh_interval_seconds,
        )

    # --- lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start the refresh ticker and kick off the first geocode."""
        self._loop = asyncio.get_running_loop()
        self._ticker = asyncio.create_task(self._tick_forever())
        logger.info("Panel host started", extra={"refresh_interval": self.refresh_interval})
        self.dispatch(Start())

    async def stop(self) -> None:
        """Cancel timers and abandon in-flight requests."""
        self._cancel_retry()
        tasks: List[asyncio.Task] = list(self._requests)
        if self._ticker is not None:
            tasks.append(self._ticker)
            self._ticker = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._requests.clear()
        logger.info("Panel host stopped")

    # --- host-facing operations --------------------------------------------

    @property
    def render_model(self) -> RenderModel:
        return self.pipeline.render_model

    def subscribe(self, listener: Callable[[RenderModel], None]) -> Callable[[], None]:
        """Register a repaint callback; returns an unsubscribe callable."""
        return self.pipeline.subscribe(listener)

    def render_text(self, rows: int, cols: int) -> List[str]:
        """Lay out the current RenderModel for a rows x cols pane."""
        return render_panel(self.render_model, rows, cols)

    def change_location(self, query: Optional[str]) -> None:
        """Restart the pipeline for a new location string."""
        self._cancel_retry()
        self.dispatch(Reconfigure(query))
        self.dispatch(Start())

    def retry(self) -> None:
        """User-initiated reload after a failure."""
        self.dispatch(UserRetry())

    def refresh(self) -> None:
        """Refresh now instead of waiting for the next tick."""
        self.dispatch(RefreshTick())

    def dispatch(self, event: Event) -> None:
        """Apply `event` to the pipeline and execute the resulting commands."""
        for command in self.pipeline.dispatch(event):
            self._execute(command)

    # --- command execution --------------------------------------------------

    def _execute(self, command: Command) -> None:
        if isinstance(command, ResolveLocation):
            self._spawn(self._run_geocode(command))
        elif isinstance(command, FetchWeather):
            self._spawn(self._run_weather(command))
        elif isinstance(command, ScheduleRetry):
            self._cancel_retry()
            loop = self._loop or asyncio.get_running_loop()
            self._retry_handle = loop.call_later(command.delay, self._fire_retry, command.generation)
        else:
            raise TypeError(f"Unsupported pipeline command: {command!r}")

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._requests.add(task)
        task.add_done_callback(self._requests.discard)

    def _fire_retry(self, generation: int) -> None:
        self._retry_handle = None
        self.dispatch(RetryDue(generation))

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    async def _run_geocode(self, command: ResolveLocation) -> None:
        try:
            coordinate = await asyncio.to_thread(self.data_source.resolve, command.query)
        except Exception as exc:
            logger.debug("Geocode request failed", extra={"query": command.query, "error": repr(exc)})
            self.dispatch(GeocodeCompleted(request=command.request, error=exc))
            return
        self.dispatch(GeocodeCompleted(request=command.request, coordinate=coordinate))

    async def _run_weather(self, command: FetchWeather) -> None:
        try:
            reading = await asyncio.to_thread(self.data_source.fetch, command.coordinate)
        except Exception as exc:
            logger.debug(
                "Weather request failed",
                extra={"resolved_name": command.coordinate.resolved_name, "error": repr(exc)},
            )
            self.dispatch(WeatherCompleted(request=command.request, error=exc))
            return
        self.dispatch(WeatherCompleted(request=command.request, reading=reading))

    async def _tick_forever(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            self.dispatch(RefreshTick())
