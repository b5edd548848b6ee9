import asyncio
import datetime as dt
import threading
import unittest

from weatherpane.backoff import RetryPolicy
from weatherpane.config import Settings
from weatherpane.data_sources import CallableDataSource, GeoCoordinate, GeocodeClient, WeatherReading
from weatherpane.errors import LocationNotFound, NetworkFailure
from weatherpane.host import PanelHost
from weatherpane.pipeline import FetchPipeline
from weatherpane.state import Phase

VIENNA = GeoCoordinate(latitude=48.21, longitude=16.37, resolved_name="Vienna, Austria")
SLOW = GeoCoordinate(latitude=1.0, longitude=1.0, resolved_name="Slowtown")
FAST = GeoCoordinate(latitude=2.0, longitude=2.0, resolved_name="Fastville")


def _reading(temperature: float = 5.0) -> WeatherReading:
    return WeatherReading(
        temperature=temperature,
        condition_code=3,
        wind_speed=10.0,
        observed_at=dt.datetime(2025, 1, 1, 12, tzinfo=dt.timezone.utc),
        is_day=True,
    )


def _host(query, resolve, fetch, *, refresh_interval=3600.0, max_attempts=3):
    policy = RetryPolicy(max_attempts=max_attempts, base_delay=0.0, max_delay=0.0, jitter=0.0)
    pipeline = FetchPipeline(query, retry_policy=policy)
    source = CallableDataSource(resolve_location=resolve, fetch_weather=fetch)
    return PanelHost(pipeline, source, refresh_interval=refresh_interval)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestPanelHost(unittest.TestCase):
    def test_reaches_ready(self):
        async def scenario():
            host = _host("vienna", lambda q: VIENNA, lambda c: _reading())
            await host.start()
            try:
                await _wait_for(lambda: host.render_model.phase == Phase.READY)
                model = host.render_model
                self.assertEqual(model.location_name, "Vienna, Austria")
                self.assertEqual(model.description, "Overcast")
                self.assertTrue(any("Vienna, Austria" in line for line in host.render_text(10, 60)))
            finally:
                await host.stop()

        asyncio.run(scenario())

    def test_transient_failures_are_retried_then_surfaced(self):
        calls = []

        def fetch(coordinate):
            calls.append(coordinate)
            raise NetworkFailure("timeout")

        async def scenario():
            host = _host("vienna", lambda q: VIENNA, fetch)
            await host.start()
            try:
                await _wait_for(lambda: host.render_model.phase == Phase.WEATHER_FAILED)
                self.assertEqual(len(calls), 3)
                self.assertEqual(host.render_model.error, "weather update failed: network unavailable")
                self.assertIsNone(host.render_model.temperature)
            finally:
                await host.stop()

        asyncio.run(scenario())

    def test_change_location_to_unknown_place(self):
        fetched = []

        def resolve(query):
            if query == "nowhere":
                raise LocationNotFound(query)
            return VIENNA

        def fetch(coordinate):
            fetched.append(coordinate)
            return _reading()

        async def scenario():
            host = _host("vienna", resolve, fetch)
            await host.start()
            try:
                await _wait_for(lambda: host.render_model.phase == Phase.READY)
                host.change_location("nowhere")
                await _wait_for(lambda: host.render_model.phase == Phase.GEOCODE_FAILED)
                self.assertEqual(host.render_model.error, "location not found")
                self.assertEqual(host.render_model.generation, 1)
                self.assertEqual(len(fetched), 1)
            finally:
                await host.stop()

        asyncio.run(scenario())

    def test_late_completion_for_old_location_is_dropped(self):
        release = threading.Event()

        def resolve(query):
            if query == "slow":
                release.wait(2.0)
                return SLOW
            return FAST

        async def scenario():
            host = _host("slow", resolve, lambda c: _reading())
            await host.start()
            try:
                await asyncio.sleep(0.05)
                host.change_location("fast")
                await _wait_for(lambda: host.render_model.phase == Phase.READY)
                release.set()
                await _wait_for(lambda: not host._requests)
                self.assertEqual(host.render_model.location_name, "Fastville")
                self.assertEqual(host.render_model.phase, Phase.READY)
            finally:
                release.set()
                await host.stop()

        asyncio.run(scenario())

    def test_refresh_tick_keeps_displayed_content(self):
        fetched = []

        def fetch(coordinate):
            fetched.append(coordinate)
            return _reading()

        async def scenario():
            host = _host("vienna", lambda q: VIENNA, fetch, refresh_interval=0.05)
            await host.start()
            try:
                await _wait_for(lambda: host.render_model.phase == Phase.READY)
                first = host.render_model.displayed_content()
                await _wait_for(lambda: len(fetched) >= 3 and host.render_model.phase == Phase.READY)
                self.assertEqual(host.render_model.displayed_content(), first)
            finally:
                await host.stop()

        asyncio.run(scenario())

    def test_subscribers_are_notified(self):
        seen = []

        async def scenario():
            host = _host("vienna", lambda q: VIENNA, lambda c: _reading())
            host.subscribe(lambda model: seen.append(model.phase))
            await host.start()
            try:
                await _wait_for(lambda: host.render_model.phase == Phase.READY)
            finally:
                await host.stop()

        asyncio.run(scenario())
        self.assertEqual(seen, [Phase.GEOCODING, Phase.WEATHER_FETCHING, Phase.READY])

    def test_from_settings_without_location(self):
        async def scenario():
            settings = Settings(location=None, default_location=None)
            source = CallableDataSource(resolve_location=lambda q: VIENNA, fetch_weather=lambda c: _reading())
            host = PanelHost.from_settings({}, settings, source)
            await host.start()
            try:
                self.assertEqual(host.render_model.phase, Phase.GEOCODE_FAILED)
                self.assertEqual(host.render_model.error, "no location configured")
            finally:
                await host.stop()

        asyncio.run(scenario())

    def test_failing_subscriber_does_not_stall_host(self):
        def broken(model):
            raise RuntimeError("repaint failed")

        async def scenario():
            host = _host("vienna", lambda q: VIENNA, lambda c: _reading())
            host.subscribe(broken)
            await host.start()
            try:
                await _wait_for(lambda: host.render_model.phase == Phase.READY)
                self.assertEqual(host.render_model.location_name, "Vienna, Austria")
            finally:
                await host.stop()

        asyncio.run(scenario())

    def test_separator_only_location_is_not_found_without_retries(self):
        class NoNetworkSession:
            def get(self, *args, **kwargs):
                raise AssertionError("no request expected")

        geocoder = GeocodeClient(NoNetworkSession(), base_url="https://geo.example/v1/search", timeout=1)

        async def scenario():
            host = _host("/", geocoder.resolve, lambda c: _reading())
            await host.start()
            try:
                await _wait_for(lambda: host.render_model.phase == Phase.GEOCODE_FAILED)
                self.assertEqual(host.render_model.error, "location not found")
                self.assertEqual(host.pipeline.state.attempt, 1)
            finally:
                await host.stop()

        asyncio.run(scenario())


if __name__ == "__main__":
    unittest.main()
