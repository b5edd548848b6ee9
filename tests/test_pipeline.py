import datetime as dt
import unittest

from weatherpane.backoff import RetryPolicy
from weatherpane.data_sources.geocoding_client import GeoCoordinate
from weatherpane.data_sources.open_meteo_client import WeatherReading
from weatherpane.errors import LocationNotFound, NetworkFailure, ProviderError
from weatherpane.pipeline import (
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
from weatherpane.render_model import FETCHING_TEXT
from weatherpane.state import ErrorKind, Phase

VIENNA = GeoCoordinate(latitude=48.21, longitude=16.37, resolved_name="Vienna, Austria", country="Austria")
PARIS = GeoCoordinate(latitude=48.85, longitude=2.35, resolved_name="Paris, France", country="France")


def _reading(temperature: float = 5.0, code: int = 3) -> WeatherReading:
    return WeatherReading(
        temperature=temperature,
        condition_code=code,
        wind_speed=10.0,
        observed_at=dt.datetime(2025, 1, 1, 12, 0, tzinfo=dt.timezone.utc),
        is_day=True,
    )


def _pipeline(query="vienna", max_attempts=3):
    policy = RetryPolicy(max_attempts=max_attempts, base_delay=1.0, max_delay=30.0, jitter=0.0)
    return FetchPipeline(query, retry_policy=policy)


def _ready(pipeline, coordinate=VIENNA, reading=None):
    [resolve] = pipeline.dispatch(Start())
    [fetch] = pipeline.dispatch(GeocodeCompleted(resolve.request, coordinate=coordinate))
    pipeline.dispatch(WeatherCompleted(fetch.request, reading=reading or _reading()))
    return pipeline


class TestHappyPath(unittest.TestCase):
    def test_start_issues_geocode(self):
        p = _pipeline()
        self.assertEqual(p.render_model.phase, Phase.IDLE)
        commands = p.dispatch(Start())
        self.assertEqual(len(commands), 1)
        self.assertIsInstance(commands[0], ResolveLocation)
        self.assertEqual(commands[0].query, "vienna")
        self.assertEqual(p.state.phase, Phase.GEOCODING)
        self.assertEqual(p.render_model.status_text, FETCHING_TEXT)
        self.assertTrue(p.render_model.busy)

    def test_geocode_then_weather_reaches_ready(self):
        p = _pipeline()
        [resolve] = p.dispatch(Start())
        [fetch] = p.dispatch(GeocodeCompleted(resolve.request, coordinate=VIENNA))
        self.assertIsInstance(fetch, FetchWeather)
        self.assertEqual(fetch.coordinate, VIENNA)
        self.assertEqual(p.state.phase, Phase.WEATHER_FETCHING)

        self.assertEqual(p.dispatch(WeatherCompleted(fetch.request, reading=_reading())), [])
        model = p.render_model
        self.assertEqual(model.phase, Phase.READY)
        self.assertEqual(model.location_name, "Vienna, Austria")
        self.assertEqual(model.description, "Overcast")
        self.assertEqual(model.temperature, 5.0)
        self.assertEqual(model.wind_speed, 10.0)
        self.assertFalse(model.stale)
        self.assertFalse(model.busy)
        self.assertIsNone(model.error)

    def test_second_start_is_ignored(self):
        p = _pipeline()
        p.dispatch(Start())
        before = p.state
        self.assertEqual(p.dispatch(Start()), [])
        self.assertIs(p.state, before)


class TestLocationNotFound(unittest.TestCase):
    def test_not_found_is_terminal_without_weather_fetch(self):
        p = _pipeline("zzz-nonexistent-place")
        [resolve] = p.dispatch(Start())
        commands = p.dispatch(GeocodeCompleted(resolve.request, error=LocationNotFound("zzz-nonexistent-place")))
        self.assertEqual(commands, [])
        self.assertEqual(p.state.phase, Phase.GEOCODE_FAILED)
        self.assertEqual(p.state.error.kind, ErrorKind.LOCATION_NOT_FOUND)
        self.assertEqual(p.render_model.error, "location not found")
        self.assertIsNone(p.render_model.temperature)

    def test_ticks_do_nothing_after_not_found(self):
        p = _pipeline("nowhere")
        [resolve] = p.dispatch(Start())
        p.dispatch(GeocodeCompleted(resolve.request, error=LocationNotFound("nowhere")))
        self.assertEqual(p.dispatch(RefreshTick()), [])

    def test_user_retry_geocodes_again(self):
        p = _pipeline("nowhere")
        [resolve] = p.dispatch(Start())
        p.dispatch(GeocodeCompleted(resolve.request, error=LocationNotFound("nowhere")))
        [again] = p.dispatch(UserRetry())
        self.assertIsInstance(again, ResolveLocation)
        self.assertNotEqual(again.request, resolve.request)
        self.assertIsNone(p.render_model.error)


class TestRetries(unittest.TestCase):
    def test_refresh_failure_keeps_last_reading_and_marks_stale(self):
        p = _ready(_pipeline())

        [fetch] = p.dispatch(RefreshTick())
        self.assertTrue(p.render_model.stale)
        self.assertEqual(p.render_model.temperature, 5.0)

        delays = []
        for attempt in (1, 2):
            [retry] = p.dispatch(WeatherCompleted(fetch.request, error=NetworkFailure("timeout")))
            self.assertIsInstance(retry, ScheduleRetry)
            self.assertEqual(retry.attempt, attempt)
            delays.append(retry.delay)
            # still showing the old reading, no error yet
            self.assertIsNone(p.render_model.error)
            self.assertEqual(p.render_model.temperature, 5.0)
            [fetch] = p.dispatch(RetryDue(retry.generation))
            self.assertIsInstance(fetch, FetchWeather)

        self.assertEqual(delays, [1.0, 2.0])
        self.assertEqual(p.dispatch(WeatherCompleted(fetch.request, error=NetworkFailure("timeout"))), [])

        model = p.render_model
        self.assertEqual(model.phase, Phase.WEATHER_FAILED)
        self.assertEqual(model.temperature, 5.0)
        self.assertEqual(model.description, "Overcast")
        self.assertTrue(model.stale)
        self.assertEqual(model.error, "weather update failed: network unavailable")

    def test_geocode_retries_then_fails(self):
        p = _pipeline(max_attempts=2)
        [resolve] = p.dispatch(Start())
        [retry] = p.dispatch(GeocodeCompleted(resolve.request, error=ProviderError("bad", status_code=502)))
        [resolve] = p.dispatch(RetryDue(retry.generation))
        self.assertIsInstance(resolve, ResolveLocation)
        p.dispatch(GeocodeCompleted(resolve.request, error=ProviderError("bad", status_code=502)))
        self.assertEqual(p.state.phase, Phase.GEOCODE_FAILED)
        self.assertEqual(p.render_model.error, "location lookup failed: provider error")

    def test_unexpected_exception_is_retried_as_provider_error(self):
        p = _pipeline(max_attempts=1)
        [resolve] = p.dispatch(Start())
        p.dispatch(GeocodeCompleted(resolve.request, coordinate=VIENNA))
        fetch = p.state.pending_request
        p.dispatch(WeatherCompleted(fetch, error=KeyError("boom")))
        self.assertEqual(p.state.error.kind, ErrorKind.PROVIDER_ERROR)

    def test_retry_timer_from_old_generation_is_ignored(self):
        p = _pipeline()
        [resolve] = p.dispatch(Start())
        [retry] = p.dispatch(GeocodeCompleted(resolve.request, error=NetworkFailure("down")))
        p.dispatch(Reconfigure("paris"))
        p.dispatch(Start())
        before = p.state
        self.assertEqual(p.dispatch(RetryDue(retry.generation)), [])
        self.assertIs(p.state, before)

    def test_tick_recovers_from_weather_failure(self):
        p = _pipeline(max_attempts=1)
        _ready(p)
        [fetch] = p.dispatch(RefreshTick())
        p.dispatch(WeatherCompleted(fetch.request, error=NetworkFailure("down")))
        self.assertEqual(p.state.phase, Phase.WEATHER_FAILED)

        [fetch] = p.dispatch(RefreshTick())
        p.dispatch(WeatherCompleted(fetch.request, reading=_reading(temperature=7.0)))
        model = p.render_model
        self.assertEqual(model.phase, Phase.READY)
        self.assertEqual(model.temperature, 7.0)
        self.assertFalse(model.stale)
        self.assertIsNone(model.error)


class TestGenerationGuard(unittest.TestCase):
    def test_completion_from_previous_location_is_discarded(self):
        p = _pipeline()
        [old] = p.dispatch(Start())
        p.dispatch(Reconfigure("paris"))
        [new] = p.dispatch(Start())
        self.assertEqual(new.query, "paris")
        self.assertEqual(new.request.generation, old.request.generation + 1)

        before = p.state
        self.assertEqual(p.dispatch(GeocodeCompleted(old.request, coordinate=VIENNA)), [])
        self.assertIs(p.state, before)

        [fetch] = p.dispatch(GeocodeCompleted(new.request, coordinate=PARIS))
        self.assertEqual(fetch.coordinate, PARIS)

    def test_weather_for_previous_location_never_shown(self):
        p = _pipeline()
        [resolve] = p.dispatch(Start())
        [old_fetch] = p.dispatch(GeocodeCompleted(resolve.request, coordinate=VIENNA))
        p.dispatch(Reconfigure("paris"))
        [resolve] = p.dispatch(Start())
        [new_fetch] = p.dispatch(GeocodeCompleted(resolve.request, coordinate=PARIS))

        p.dispatch(WeatherCompleted(old_fetch.request, reading=_reading(temperature=-3.0)))
        self.assertIsNone(p.render_model.temperature)

        p.dispatch(WeatherCompleted(new_fetch.request, reading=_reading(temperature=12.0)))
        self.assertEqual(p.render_model.location_name, "Paris, France")
        self.assertEqual(p.render_model.temperature, 12.0)

    def test_reconfigure_drops_old_reading(self):
        p = _ready(_pipeline())
        p.dispatch(Reconfigure("paris"))
        self.assertEqual(p.state.phase, Phase.IDLE)
        self.assertIsNone(p.render_model.temperature)
        self.assertEqual(p.render_model.location_name, "paris")

    def test_duplicate_completion_is_ignored(self):
        p = _pipeline()
        [resolve] = p.dispatch(Start())
        p.dispatch(GeocodeCompleted(resolve.request, coordinate=VIENNA))
        before = p.state
        self.assertEqual(p.dispatch(GeocodeCompleted(resolve.request, coordinate=PARIS)), [])
        self.assertIs(p.state, before)


class TestRefresh(unittest.TestCase):
    def test_refresh_with_same_data_is_idempotent(self):
        p = _ready(_pipeline())
        first = p.render_model
        [fetch] = p.dispatch(RefreshTick())
        p.dispatch(WeatherCompleted(fetch.request, reading=_reading()))
        self.assertEqual(p.render_model.displayed_content(), first.displayed_content())

    def test_tick_while_busy_is_ignored(self):
        p = _pipeline()
        p.dispatch(Start())
        self.assertEqual(p.dispatch(RefreshTick()), [])

    def test_tick_before_start_is_ignored(self):
        self.assertEqual(_pipeline().dispatch(RefreshTick()), [])


class TestConfigurationMissing(unittest.TestCase):
    def test_start_without_query_fails_visibly(self):
        p = _pipeline(query="   ")
        self.assertEqual(p.dispatch(Start()), [])
        self.assertEqual(p.state.phase, Phase.GEOCODE_FAILED)
        self.assertEqual(p.render_model.error, "no location configured")
        self.assertEqual(p.dispatch(UserRetry()), [])


class TestListeners(unittest.TestCase):
    def test_listener_sees_each_accepted_transition(self):
        p = _pipeline()
        seen = []
        unsubscribe = p.subscribe(lambda model: seen.append(model.phase))
        [resolve] = p.dispatch(Start())
        p.dispatch(GeocodeCompleted(resolve.request, coordinate=VIENNA))
        self.assertEqual(seen, [Phase.GEOCODING, Phase.WEATHER_FETCHING])

        p.dispatch(GeocodeCompleted(resolve.request, coordinate=VIENNA))
        self.assertEqual(len(seen), 2)

        unsubscribe()
        p.dispatch(Reconfigure("paris"))
        self.assertEqual(len(seen), 2)

    def test_failing_listener_does_not_strand_pipeline(self):
        p = _pipeline()
        seen = []

        def broken(model):
            raise RuntimeError("repaint failed")

        p.subscribe(broken)
        p.subscribe(lambda model: seen.append(model.phase))
        with self.assertLogs("weatherpane.pipeline", level="ERROR"):
            [resolve] = p.dispatch(Start())
            commands = p.dispatch(GeocodeCompleted(resolve.request, coordinate=VIENNA))

        self.assertEqual(len(commands), 1)
        self.assertIsInstance(commands[0], FetchWeather)
        self.assertEqual(p.state.pending_request, commands[0].request)
        self.assertEqual(seen, [Phase.GEOCODING, Phase.WEATHER_FETCHING])

        p.dispatch(WeatherCompleted(commands[0].request, reading=_reading()))
        self.assertEqual(p.state.phase, Phase.READY)
        self.assertIsInstance(p.dispatch(RefreshTick())[0], FetchWeather)

    def test_unknown_event_rejected(self):
        with self.assertRaises(TypeError):
            _pipeline().dispatch(object())


if __name__ == "__main__":
    unittest.main()
