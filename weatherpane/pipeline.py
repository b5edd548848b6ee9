"""Event-driven state machine behind the weather panel.

The pipeline never performs I/O. The host feeds it events (start, network
completions, retry timers, refresh ticks, reconfiguration, user retry) and
executes the commands it returns. Exactly one FetchState transition is applied
per event and the RenderModel is swapped atomically afterwards.

Every network command carries a RequestId tagged with the pipeline
generation. Only the single outstanding request may complete; anything else,
in particular completions from before a reconfiguration, is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple, Union

from weatherpane.backoff import RetryPolicy
from weatherpane.data_sources.geocoding_client import GeoCoordinate
from weatherpane.data_sources.open_meteo_client import WeatherReading
from weatherpane.errors import (
    ConfigurationMissing,
    LocationNotFound,
    NetworkFailure,
    ProviderError,
    WeatherPaneError,
)
from weatherpane.render_model import RenderModel, build_render_model
from weatherpane.state import ErrorKind, Failure, FetchState, Phase, RequestId, Stage
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="pipeline")


# --- events ----------------------------------------------------------------

@dataclass(frozen=True)
class Start:
    """Begin resolving the configured location (plugin load or after Reconfigure)."""


@dataclass(frozen=True)
class GeocodeCompleted:
    """Outcome of a ResolveLocation command."""
    request: RequestId
    coordinate: Optional[GeoCoordinate] = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class WeatherCompleted:
    """Outcome of a FetchWeather command."""
    request: RequestId
    reading: Optional[WeatherReading] = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class RetryDue:
    """A ScheduleRetry timer fired."""
    generation: int


@dataclass(frozen=True)
class RefreshTick:
    """The periodic refresh interval elapsed."""


@dataclass(frozen=True)
class Reconfigure:
    """The location string changed; restart from scratch."""
    query: Optional[str]


@dataclass(frozen=True)
class UserRetry:
    """The user asked to reload after a failure."""


Event = Union[Start, GeocodeCompleted, WeatherCompleted, RetryDue, RefreshTick, Reconfigure, UserRetry]


# --- commands ----------------------------------------------------------------

@dataclass(frozen=True)
class ResolveLocation:
    """Ask the host to geocode `query` and report back with GeocodeCompleted."""
    request: RequestId
    query: str


@dataclass(frozen=True)
class FetchWeather:
    """Ask the host to fetch weather and report back with WeatherCompleted."""
    request: RequestId
    coordinate: GeoCoordinate


@dataclass(frozen=True)
class ScheduleRetry:
    """Ask the host to deliver RetryDue(generation) after `delay` seconds."""
    generation: int
    delay: float
    attempt: int


Command = Union[ResolveLocation, FetchWeather, ScheduleRetry]

RenderListener = Callable[[RenderModel], None]


def _clean_query(query: Optional[str]) -> Optional[str]:
    if query is None:
        return None
    query = str(query).strip()
    return query or None


def _classify(error: BaseException) -> Tuple[ErrorKind, bool]:
    """Map an exception from a client to (kind, retryable)."""
    if isinstance(error, LocationNotFound):
        return ErrorKind.LOCATION_NOT_FOUND, False
    if isinstance(error, ConfigurationMissing):
        return ErrorKind.CONFIGURATION_MISSING, False
    if isinstance(error, NetworkFailure):
        return ErrorKind.NETWORK_FAILURE, True
    if isinstance(error, WeatherPaneError):
        return ErrorKind.PROVIDER_ERROR, error.retryable
    # Anything unexpected from a client is treated like a bad provider answer.
    return ErrorKind.PROVIDER_ERROR, True


class FetchPipeline:
    """Owns the single FetchState/RenderModel pair for one panel."""

    def __init__(self, query: Optional[str], retry_policy: RetryPolicy | None = None):
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self._state = FetchState(query=_clean_query(query))
        self._serial = 0
        self._render_model = build_render_model(self._state)
        self._listeners: List[RenderListener] = []

    @property
    def state(self) -> FetchState:
        return self._state

    @property
    def render_model(self) -> RenderModel:
        return self._render_model

    def subscribe(self, listener: RenderListener) -> Callable[[], None]:
        """Call `listener` with every new RenderModel; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispatch(self, event: Event) -> List[Command]:
        """Apply one event and return the commands the host must execute."""
        if isinstance(event, Start):
            new_state, commands = self._on_start(self._state)
        elif isinstance(event, GeocodeCompleted):
            new_state, commands = self._on_geocode_completed(self._state, event)
        elif isinstance(event, WeatherCompleted):
            new_state, commands = self._on_weather_completed(self._state, event)
        elif isinstance(event, RetryDue):
            new_state, commands = self._on_retry_due(self._state, event)
        elif isinstance(event, RefreshTick):
            new_state, commands = self._on_refresh_tick(self._state)
        elif isinstance(event, Reconfigure):
            new_state, commands = self._on_reconfigure(self._state, event)
        elif isinstance(event, UserRetry):
            new_state, commands = self._on_user_retry(self._state)
        else:
            raise TypeError(f"Unsupported pipeline event: {event!r}")

        if new_state != self._state:
            self._apply(new_state, event)
        return commands

    # --- internals -----------------------------------------------------------

    def _apply(self, new_state: FetchState, event: Event) -> None:
        old = self._state
        self._state = new_state
        self._render_model = build_render_model(new_state)
        if old.phase != new_state.phase:
            logger.info(
                "Pipeline transition",
                extra={
                    "event": type(event).__name__,
                    "from_phase": old.phase.value,
                    "to_phase": new_state.phase.value,
                    "generation": new_state.generation,
                },
            )
        # The new state is committed; a failing listener must not lose its commands.
        for listener in list(self._listeners):
            try:
                listener(self._render_model)
            except Exception:
                logger.exception(
                    "Render listener failed",
                    extra={"listener": repr(listener), "to_phase": new_state.phase.value},
                )

    def _next_request(self, state: FetchState) -> RequestId:
        self._serial += 1
        return RequestId(generation=state.generation, serial=self._serial)

    def _issue_geocode(self, state: FetchState, attempt: int):
        request = self._next_request(state)
        state = replace(
            state,
            phase=Phase.GEOCODING,
            attempt=attempt,
            pending_request=request,
            retry_pending=False,
            error=None,
        )
        return state, [ResolveLocation(request=request, query=state.query)]

    def _issue_weather(self, state: FetchState, attempt: int):
        request = self._next_request(state)
        state = replace(
            state,
            phase=Phase.WEATHER_FETCHING,
            attempt=attempt,
            pending_request=request,
            retry_pending=False,
            error=None,
            stale=state.reading is not None,
        )
        return state, [FetchWeather(request=request, coordinate=state.coordinate)]

    def _retry_or_fail(self, state: FetchState, stage: Stage, error: BaseException):
        """Schedule a backoff retry or surface the failure once attempts run out."""
        kind, retryable = _classify(error)
        if retryable and self.retry_policy.can_retry(state.attempt):
            delay = self.retry_policy.delay(state.attempt)
            logger.warning(
                "Transient provider failure; retrying",
                extra={
                    "stage": stage.value,
                    "attempt": state.attempt,
                    "delay_seconds": round(delay, 3),
                    "error": str(error),
                },
            )
            state = replace(state, pending_request=None, retry_pending=True)
            return state, [ScheduleRetry(generation=state.generation, delay=delay, attempt=state.attempt)]

        failure = Failure(kind=kind, stage=stage, retryable=retryable, detail=str(error))
        failed_phase = Phase.GEOCODE_FAILED if stage == Stage.GEOCODE else Phase.WEATHER_FAILED
        logger.error(
            "Pipeline failed",
            extra={"stage": stage.value, "kind": kind.value, "attempt": state.attempt, "error": str(error)},
        )
        state = replace(
            state,
            phase=failed_phase,
            pending_request=None,
            retry_pending=False,
            error=failure,
            stale=state.reading is not None,
        )
        return state, []

    def _discard(self, state: FetchState, reason: str, **fields):
        logger.debug("Discarding pipeline event", extra={"reason": reason, **fields})
        return state, []

    # --- handlers --------------------------------------------------------------

    def _on_start(self, state: FetchState):
        if state.phase != Phase.IDLE:
            return self._discard(state, "already started", phase=state.phase.value)
        if state.query is None:
            failure = Failure(
                kind=ErrorKind.CONFIGURATION_MISSING,
                stage=Stage.GEOCODE,
                retryable=False,
                detail="no location configured",
            )
            logger.error("No location configured")
            return replace(state, phase=Phase.GEOCODE_FAILED, error=failure), []
        return self._issue_geocode(state, attempt=1)

    def _on_geocode_completed(self, state: FetchState, event: GeocodeCompleted):
        if state.phase != Phase.GEOCODING or event.request != state.pending_request:
            return self._discard(state, "stale geocode completion",
                                 request_generation=event.request.generation, generation=state.generation)
        if event.error is None and event.coordinate is not None:
            state = replace(state, coordinate=event.coordinate, pending_request=None)
            return self._issue_weather(state, attempt=1)
        error = event.error or ProviderError("geocode completion carried no coordinate")
        return self._retry_or_fail(state, Stage.GEOCODE, error)

    def _on_weather_completed(self, state: FetchState, event: WeatherCompleted):
        if state.phase != Phase.WEATHER_FETCHING or event.request != state.pending_request:
            return self._discard(state, "stale weather completion",
                                 request_generation=event.request.generation, generation=state.generation)
        if event.error is None and event.reading is not None:
            state = replace(
                state,
                phase=Phase.READY,
                reading=event.reading,
                pending_request=None,
                retry_pending=False,
                error=None,
                attempt=0,
                stale=False,
            )
            return state, []
        error = event.error or ProviderError("weather completion carried no reading")
        return self._retry_or_fail(state, Stage.WEATHER, error)

    def _on_retry_due(self, state: FetchState, event: RetryDue):
        if event.generation != state.generation or not state.retry_pending:
            return self._discard(state, "stale retry timer",
                                 request_generation=event.generation, generation=state.generation)
        if state.phase == Phase.GEOCODING:
            return self._issue_geocode(state, attempt=state.attempt + 1)
        return self._issue_weather(state, attempt=state.attempt + 1)

    def _on_refresh_tick(self, state: FetchState):
        if state.phase == Phase.READY or (state.phase == Phase.WEATHER_FAILED and state.coordinate is not None):
            return self._issue_weather(state, attempt=1)
        return self._discard(state, "refresh not applicable", phase=state.phase.value)

    def _on_reconfigure(self, state: FetchState, event: Reconfigure):
        logger.info(
            "Reconfiguring location",
            extra={"query": event.query, "generation": state.generation + 1},
        )
        return FetchState(generation=state.generation + 1, query=_clean_query(event.query)), []

    def _on_user_retry(self, state: FetchState):
        if state.phase == Phase.GEOCODE_FAILED and state.query is not None:
            return self._issue_geocode(state, attempt=1)
        if state.phase == Phase.WEATHER_FAILED and state.coordinate is not None:
            return self._issue_weather(state, attempt=1)
        return self._discard(state, "nothing to retry", phase=state.phase.value)
