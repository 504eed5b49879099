"""
Unit Tests - Realtime Data Manager
"""
import asyncio
from types import SimpleNamespace

import httpx
import pytest

from src.core.exceptions import ConfigurationError, TransportError
from src.ingestion.fetchers import HttpDataFetcher
from src.ingestion.realtime import DataSourceStatus, RealtimeDataManager
from src.serving.cache import LocalCache


class RecordingFetcher:
    def __init__(self, delay: float = 0, error: Exception = None):
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self, source):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return {"value": self.calls}


async def endpoint_value(source):
    return {"value": float(source.endpoint.rsplit("/", 1)[-1])}


@pytest.fixture
async def make_manager():
    managers = []

    def _make(fetcher, cache=None):
        manager = RealtimeDataManager(fetcher, cache=cache, cache_ttl=60)
        managers.append(manager)
        return manager

    yield _make

    for manager in managers:
        await manager.shutdown()


class TestPolling:
    """Tests for the polling loop"""

    async def test_first_tick_notifies(self, make_manager):
        """Test the first fetch runs immediately and reaches subscribers"""
        manager = make_manager(RecordingFetcher())
        received = asyncio.Queue()
        source = manager.register("active_users", "/metrics/active-users", 10)
        manager.subscribe(source.id, received.put_nowait)

        payload = await asyncio.wait_for(received.get(), timeout=1)

        assert payload == {"value": 1}
        assert await manager.get_cached(source.id) == {"value": 1}
        assert source.last_updated is not None
        assert source.status == DataSourceStatus.ACTIVE

    async def test_removed_source_result_discarded(self, make_manager):
        """Test a fetch completing after removal neither caches nor notifies"""
        cache = LocalCache("realtime", default_ttl=60)
        manager = make_manager(RecordingFetcher(delay=0.05), cache=cache)
        received = []
        source = manager.register("grades", "/metrics/grades", 10)
        manager.subscribe(source.id, received.append)
        await asyncio.sleep(0.01)

        await manager.remove(source.id)
        await asyncio.sleep(0.1)

        assert received == []
        assert await cache.get(source.id) is None
        assert manager.get_source(source.id) is None

    async def test_slow_fetch_skips_ticks(self, make_manager):
        """Test ticks never overlap an in-flight fetch"""
        fetcher = RecordingFetcher(delay=0.2)
        manager = make_manager(fetcher)

        manager.register("slow", "/metrics/slow", 0.02)
        await asyncio.sleep(0.1)

        assert fetcher.calls == 1

    async def test_interval_change_refetches(self, make_manager):
        """Test a restarted source drops the stale fetch and polls again at once"""
        fetcher = RecordingFetcher(delay=0.05)
        manager = make_manager(fetcher)
        received = asyncio.Queue()
        source = manager.register("attendance", "/metrics/attendance", 10)
        manager.subscribe(source.id, received.put_nowait)
        await asyncio.sleep(0.02)

        manager.update(source.id, update_interval=20)
        payload = await asyncio.wait_for(received.get(), timeout=1)

        assert payload == {"value": 2}
        assert received.empty()
        assert fetcher.calls == 2
        assert source.update_interval == 20

    async def test_remove_before_first_result(self, make_manager):
        """Test removal mid-fetch delivers nothing and a second removal is a no-op"""
        fetcher = RecordingFetcher(delay=0.05)
        manager = make_manager(fetcher)
        received = []
        source = manager.register("grades", "/metrics/grades", 10)
        manager.subscribe(source.id, received.append)

        await manager.remove(source.id)
        await manager.remove(source.id)
        await asyncio.sleep(0.1)

        assert fetcher.calls == 0
        assert received == []
        assert source.last_updated is None
        assert manager.list_sources() == []

    async def test_remove_drops_cached_payload(self, make_manager):
        """Test the cache entry of a removed source is deleted"""
        cache = LocalCache("realtime", default_ttl=60)
        manager = make_manager(RecordingFetcher(), cache=cache)
        received = asyncio.Queue()
        source = manager.register("grades", "/metrics/grades", 10)
        manager.subscribe(source.id, received.put_nowait)
        await asyncio.wait_for(received.get(), timeout=1)

        await manager.remove(source.id)

        assert await cache.get(source.id) is None

    async def test_fetch_failure_marks_error(self, make_manager):
        """Test failures set status and last_error without notifying"""
        manager = make_manager(RecordingFetcher(error=RuntimeError("upstream down")))
        received = []
        source = manager.register("broken", "/metrics/broken", 10)
        manager.subscribe(source.id, received.append)

        await asyncio.sleep(0.05)

        assert source.status == DataSourceStatus.ERROR
        assert source.last_error == "upstream down"
        assert received == []


class TestSubscriptions:
    """Tests for subscriber delivery"""

    async def test_unsubscribe_during_notify(self, make_manager):
        """Test removing a subscriber mid-delivery keeps the current round intact"""
        manager = make_manager(RecordingFetcher())
        calls = []
        done = asyncio.Event()
        source = manager.register("active_users", "/metrics/active-users", 10)
        handles = {}

        def first(payload):
            calls.append("first")
            handles["second"]()

        def second(payload):
            calls.append("second")
            done.set()

        manager.subscribe(source.id, first)
        handles["second"] = manager.subscribe(source.id, second)

        await asyncio.wait_for(done.wait(), timeout=1)

        assert calls == ["first", "second"]
        assert manager.subscriber_count(source.id) == 1

    async def test_failing_subscriber_is_isolated(self, make_manager):
        """Test one subscriber raising does not block the others"""
        manager = make_manager(RecordingFetcher())
        received = asyncio.Queue()
        source = manager.register("grades", "/metrics/grades", 10)

        def broken(payload):
            raise ValueError("bad widget")

        manager.subscribe(source.id, broken)
        manager.subscribe(source.id, received.put_nowait)

        assert await asyncio.wait_for(received.get(), timeout=1) == {"value": 1}

    async def test_async_subscriber(self, make_manager):
        """Test coroutine subscribers are awaited"""
        manager = make_manager(RecordingFetcher())
        received = asyncio.Queue()
        source = manager.register("grades", "/metrics/grades", 10)

        async def on_update(payload):
            await received.put(payload)

        manager.subscribe(source.id, on_update)

        assert await asyncio.wait_for(received.get(), timeout=1) == {"value": 1}

    async def test_subscribe_unknown_source(self, make_manager):
        """Test subscribing requires a registered source"""
        manager = make_manager(RecordingFetcher())

        with pytest.raises(ConfigurationError):
            manager.subscribe("source_missing", print)


class TestRegistry:
    """Tests for registration, updates and aggregation"""

    async def test_update_validation(self, make_manager):
        """Test patch fields and interval are validated"""
        manager = make_manager(RecordingFetcher())
        source = manager.register("grades", "/metrics/grades", 10)

        with pytest.raises(ConfigurationError):
            manager.update(source.id, status="error")
        with pytest.raises(ValueError):
            manager.update(source.id, update_interval=0)
        with pytest.raises(ConfigurationError):
            manager.update("source_missing", name="x")

    async def test_register_rejects_bad_interval(self, make_manager):
        """Test intervals must be positive"""
        manager = make_manager(RecordingFetcher())

        with pytest.raises(ValueError):
            manager.register("grades", "/metrics/grades", 0)

    async def test_rename_keeps_polling(self, make_manager):
        """Test non-interval updates apply in place"""
        manager = make_manager(RecordingFetcher())
        source = manager.register("grades", "/metrics/grades", 10)

        updated = manager.update(source.id, name="Grades", endpoint="/metrics/v2/grades")

        assert updated.name == "Grades"
        assert updated.endpoint == "/metrics/v2/grades"
        assert manager.list_sources() == [source]

    async def test_aggregate(self, make_manager):
        """Test combining the latest values of several sources"""
        manager = make_manager(endpoint_value)
        a = manager.register("a", "/metrics/3", 10)
        b = manager.register("b", "/metrics/4", 10)

        assert await manager.aggregate([a.id, b.id], "sum") == 7.0
        assert await manager.aggregate([a.id, b.id], "avg") == 3.5
        assert await manager.aggregate([a.id, b.id], "count") == 2.0
        with pytest.raises(ValueError):
            await manager.aggregate([a.id], "median")

    async def test_get_cached_unknown(self, make_manager):
        """Test unknown sources have no cached payload"""
        manager = make_manager(RecordingFetcher())

        assert await manager.get_cached("source_missing") is None

    async def test_shutdown_forgets_sources(self, make_manager):
        """Test shutdown cancels polling and clears the registry"""
        manager = make_manager(RecordingFetcher())
        manager.register("grades", "/metrics/grades", 0.01)

        await manager.shutdown()

        assert manager.list_sources() == []


class TestHttpDataFetcher:
    """Tests for the HTTP fetcher"""

    @staticmethod
    def fetcher(handler):
        client = httpx.AsyncClient(base_url="http://metrics.test", transport=httpx.MockTransport(handler))
        return HttpDataFetcher(client=client)

    async def test_returns_json(self):
        """Test the endpoint body is decoded"""
        fetcher = self.fetcher(lambda request: httpx.Response(200, json={"path": request.url.path}))

        payload = await fetcher(SimpleNamespace(name="grades", endpoint="/metrics/grades"))

        assert payload == {"path": "/metrics/grades"}

    async def test_http_error(self):
        """Test error statuses surface as TransportError"""
        fetcher = self.fetcher(lambda request: httpx.Response(503))

        with pytest.raises(TransportError) as exc:
            await fetcher(SimpleNamespace(name="grades", endpoint="/metrics/grades"))

        assert exc.value.status_code == 503
        assert exc.value.message == "grades: HTTP 503"

    async def test_non_json_body(self):
        """Test undecodable bodies are transport failures"""
        fetcher = self.fetcher(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(TransportError):
            await fetcher(SimpleNamespace(name="grades", endpoint="/metrics/grades"))
