"""
Realtime Data Manager

Polls registered data sources on fixed intervals and pushes fresh payloads to
subscribers:
- One timer task per source; each tick runs as its own task
- Per-source in-flight guard so a slow fetch never overlaps the next tick
- Results from removed or restarted sources are discarded
- Subscriber set is snapshotted before every notification
- Short-TTL cache of the latest payload per source

Polling continues while a source has no subscribers, which keeps the cache
warm for widgets that read it directly.
"""

import asyncio
import inspect
import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

import structlog
from prometheus_client import Counter

from src.config import get_settings
from src.core.exceptions import ConfigurationError
from src.core.records import to_number, utcnow
from src.serving.cache import LocalCache

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

REALTIME_POLLS = Counter(
    "reporting_realtime_polls_total",
    "Realtime data source poll outcomes",
    ["source", "status"],
)

REALTIME_TICKS_SKIPPED = Counter(
    "reporting_realtime_ticks_skipped_total",
    "Ticks skipped because the previous fetch was still running",
    ["source"],
)


# =============================================================================
# MODELS
# =============================================================================

class DataSourceStatus(str, Enum):
    ACTIVE = "active"
    ERROR = "error"


@dataclass
class RealtimeDataSource:
    id: str
    name: str
    endpoint: str
    update_interval: float
    last_updated: Optional[datetime] = None
    status: DataSourceStatus = DataSourceStatus.ACTIVE
    last_error: Optional[str] = None


@dataclass
class _PollState:
    generation: int = 0
    in_flight: bool = False
    timer: Optional[asyncio.Task] = None
    ticks: Set[asyncio.Task] = field(default_factory=set)

    def cancel(self) -> None:
        if self.timer:
            self.timer.cancel()
        for task in list(self.ticks):
            task.cancel()


Fetcher = Callable[[RealtimeDataSource], Awaitable[Any]]
Subscriber = Callable[[Any], Any]


class RealtimeDataManager:
    """
    Registry of polled data sources.

    Must be used from inside a running event loop.

    Example:
        manager = RealtimeDataManager(HttpDataFetcher())
        source = manager.register("active_users", "/metrics/active-users", 30)
        unsubscribe = manager.subscribe(source.id, on_update)
    """

    def __init__(
        self,
        fetcher: Fetcher,
        cache: Optional[Any] = None,
        cache_ttl: Optional[float] = None,
    ):
        if cache_ttl is None:
            cache_ttl = get_settings().reporting.realtime_cache_ttl_seconds
        self._fetcher = fetcher
        self._cache = cache or LocalCache("realtime", default_ttl=cache_ttl)
        self._sources: Dict[str, RealtimeDataSource] = {}
        self._subscribers: Dict[str, Dict[int, Subscriber]] = {}
        self._state: Dict[str, _PollState] = {}
        self._tokens = itertools.count()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, name: str, endpoint: str, update_interval: float) -> RealtimeDataSource:
        """Create a source and start polling it."""
        if update_interval <= 0:
            raise ValueError("update_interval must be positive")
        source = RealtimeDataSource(
            id=f"source_{uuid.uuid4().hex[:12]}",
            name=name,
            endpoint=endpoint,
            update_interval=update_interval,
        )
        self._sources[source.id] = source
        self._subscribers[source.id] = {}
        self._state[source.id] = _PollState()
        self._start_timer(source.id)
        logger.info("Realtime source registered", source_id=source.id, name=name, interval=update_interval)
        return source

    def update(self, source_id: str, **patch: Any) -> RealtimeDataSource:
        """Patch name, endpoint or update_interval; an interval change restarts the timer."""
        source = self._require(source_id)
        allowed = {"name", "endpoint", "update_interval"}
        unknown = set(patch) - allowed
        if unknown:
            raise ConfigurationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        interval = patch.get("update_interval")
        if interval is not None and interval <= 0:
            raise ValueError("update_interval must be positive")
        restart = interval is not None and interval != source.update_interval
        for key, value in patch.items():
            setattr(source, key, value)

        if restart:
            # stale ticks are cancelled, so the new timer fetches immediately
            state = self._state[source_id]
            state.cancel()
            state.in_flight = False
            self._start_timer(source_id)
            logger.info("Realtime source interval changed", source_id=source_id, interval=interval)
        return source

    async def remove(self, source_id: str) -> None:
        """Stop polling and drop the source and its cached payload. Unknown ids are ignored."""
        state = self._state.pop(source_id, None)
        if state:
            state.cancel()
        self._subscribers.pop(source_id, None)
        if self._sources.pop(source_id, None) is not None:
            await self._cache.delete(source_id)
            logger.info("Realtime source removed", source_id=source_id)

    def get_source(self, source_id: str) -> Optional[RealtimeDataSource]:
        return self._sources.get(source_id)

    def list_sources(self) -> List[RealtimeDataSource]:
        return list(self._sources.values())

    def _require(self, source_id: str) -> RealtimeDataSource:
        source = self._sources.get(source_id)
        if source is None:
            raise ConfigurationError(f"Realtime data source not found: {source_id}")
        return source

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, source_id: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for payloads of ``source_id``; returns an unsubscribe function."""
        self._require(source_id)
        token = next(self._tokens)
        self._subscribers[source_id][token] = callback

        def unsubscribe() -> None:
            subscribers = self._subscribers.get(source_id)
            if subscribers is not None:
                subscribers.pop(token, None)

        return unsubscribe

    def subscriber_count(self, source_id: str) -> int:
        return len(self._subscribers.get(source_id, {}))

    async def _notify(self, source_id: str, payload: Any) -> None:
        for callback in list(self._subscribers.get(source_id, {}).values()):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Realtime subscriber failed", source_id=source_id, error=str(e))

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _start_timer(self, source_id: str) -> None:
        state = self._state[source_id]
        state.generation += 1
        state.timer = asyncio.get_running_loop().create_task(
            self._run_timer(source_id, state.generation),
            name=f"realtime-timer-{source_id}",
        )

    def _is_current(self, source_id: str, generation: int) -> bool:
        state = self._state.get(source_id)
        return state is not None and state.generation == generation

    async def _run_timer(self, source_id: str, generation: int) -> None:
        while self._is_current(source_id, generation):
            self._spawn_tick(source_id, generation)
            await asyncio.sleep(self._sources[source_id].update_interval)

    def _spawn_tick(self, source_id: str, generation: int) -> None:
        state = self._state[source_id]
        source = self._sources[source_id]
        if state.in_flight:
            REALTIME_TICKS_SKIPPED.labels(source=source.name).inc()
            logger.debug("Skipping tick, previous fetch still running", source_id=source_id)
            return
        state.in_flight = True
        task = asyncio.get_running_loop().create_task(self._tick(source_id, generation, state))
        state.ticks.add(task)
        task.add_done_callback(state.ticks.discard)

    async def _tick(self, source_id: str, generation: int, state: _PollState) -> None:
        try:
            source = self._sources.get(source_id)
            if source is None:
                return
            try:
                payload = await self._fetcher(source)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._is_current(source_id, generation):
                    source.status = DataSourceStatus.ERROR
                    source.last_error = str(e)
                    REALTIME_POLLS.labels(source=source.name, status="error").inc()
                    logger.warning("Realtime fetch failed", source_id=source_id, error=str(e))
                return

            if not self._is_current(source_id, generation):
                logger.debug("Discarding result for stale source", source_id=source_id)
                return

            source.last_updated = utcnow()
            source.status = DataSourceStatus.ACTIVE
            source.last_error = None
            REALTIME_POLLS.labels(source=source.name, status="success").inc()
            await self._cache.set(source_id, payload)
            await self._notify(source_id, payload)
        finally:
            if state.generation == generation:
                state.in_flight = False

    # ------------------------------------------------------------------
    # Cache and aggregation
    # ------------------------------------------------------------------

    async def get_cached(self, source_id: str) -> Optional[Any]:
        """Latest payload if it is younger than the cache TTL."""
        if source_id not in self._sources:
            return None
        return await self._cache.get(source_id)

    async def clear_cache(self, source_id: Optional[str] = None) -> None:
        if source_id is None:
            await self._cache.invalidate_all()
        else:
            await self._cache.delete(source_id)

    async def aggregate(self, source_ids: Sequence[str], operation: str = "sum") -> float:
        """
        Combine the numeric ``value`` of several sources' latest payloads.
        Sources without a cached payload are fetched once.
        """
        values = []
        for source_id in source_ids:
            source = self._require(source_id)
            payload = await self.get_cached(source_id)
            if payload is None:
                payload = await self._fetcher(source)
                await self._cache.set(source_id, payload)
            number = to_number(payload.get("value") if isinstance(payload, dict) else payload)
            if number is not None:
                values.append(number)

        if operation == "count":
            return float(len(values))
        if not values:
            return 0.0
        if operation == "sum":
            return sum(values)
        if operation == "avg":
            return sum(values) / len(values)
        if operation == "min":
            return min(values)
        if operation == "max":
            return max(values)
        raise ValueError(f"Unknown aggregation: {operation}")

    async def shutdown(self) -> None:
        """Cancel every timer and tick and forget all sources."""
        tasks = []
        for state in self._state.values():
            state.cancel()
            tasks.extend(t for t in [state.timer, *state.ticks] if t)
        self._state.clear()
        self._sources.clear()
        self._subscribers.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Realtime manager stopped", tasks=len(tasks))
