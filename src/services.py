"""
Service container.

Every manager is constructed once at process start and handed to its
consumers; nothing in the engine reaches for a global instance.
"""

import json
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

import structlog

from src.analytics import AnalyticsEngine, BaselineProvider, ComparativeAnalysisEngine, InMemoryBaselineProvider
from src.config import Settings, get_settings
from src.core.records import Dataset
from src.dashboard import DashboardManager
from src.export import ArtifactStore, ExportManager, MemoryArtifactStore, RedisArtifactStore
from src.ingestion import HttpDataFetcher, RealtimeDataManager
from src.integrations import ExternalAPIManager
from src.reporting import ReportGenerator
from src.serving.cache import CacheManager, LocalCache, close_redis, init_redis
from src.transformation import DataProcessor

logger = structlog.get_logger(__name__)


@dataclass
class ReportingServices:
    processor: DataProcessor
    analytics: AnalyticsEngine
    comparative: ComparativeAnalysisEngine
    reports: ReportGenerator
    dashboards: DashboardManager
    realtime: RealtimeDataManager
    exports: ExportManager
    external: ExternalAPIManager
    fetcher: Optional[HttpDataFetcher] = None
    dataset: Dataset = field(default_factory=Dataset)
    uses_redis: bool = False

    async def close(self) -> None:
        await self.realtime.shutdown()
        await self.external.aclose()
        if self.fetcher is not None:
            await self.fetcher.aclose()
        if self.uses_redis:
            await close_redis()
        logger.info("Reporting services stopped")


def load_dataset(path: Optional[str]) -> Dataset:
    """Read a JSON dataset document; no path means an empty dataset."""
    if not path:
        return Dataset()
    payload = json.loads(Path(path).read_text())
    dataset = Dataset.from_dict(payload)
    logger.info("Dataset loaded", path=path, **{name: len(rows) for name, rows in dataset.to_dict().items()})
    return dataset


async def create_services(
    settings: Optional[Settings] = None,
    dataset: Optional[Dataset] = None,
    baselines: Optional[BaselineProvider] = None,
) -> ReportingServices:
    """
    Build the full object graph.

    Must be awaited inside the event loop that will run the realtime timers.
    """
    settings = settings or get_settings()
    reporting = settings.reporting

    redis_client = None
    if settings.redis.enabled:
        redis_client = await init_redis()

    store: ArtifactStore
    if reporting.artifact_store == "redis" and redis_client is not None:
        store = RedisArtifactStore(redis_client)
    else:
        store = MemoryArtifactStore()

    if redis_client is not None:
        realtime_cache = CacheManager("realtime", default_ttl=reporting.realtime_cache_ttl_seconds)
    else:
        realtime_cache = LocalCache("realtime", default_ttl=reporting.realtime_cache_ttl_seconds)

    processor = DataProcessor()
    comparative = ComparativeAnalysisEngine()
    fetcher = HttpDataFetcher(base_url=reporting.realtime_base_url, timeout=reporting.external_api_timeout)

    dashboards = DashboardManager()
    dashboards.create_default_dashboards()

    services = ReportingServices(
        processor=processor,
        analytics=AnalyticsEngine(
            baselines=baselines or InMemoryBaselineProvider(),
            processor=processor,
            stability_band=reporting.stability_band,
        ),
        comparative=comparative,
        reports=ReportGenerator(processor=processor, comparative=comparative),
        dashboards=dashboards,
        realtime=RealtimeDataManager(fetcher, cache=realtime_cache),
        exports=ExportManager(
            store=store,
            ttl=timedelta(hours=reporting.export_ttl_hours),
            batch_size=reporting.batch_size,
            batch_delay=reporting.batch_delay_seconds,
        ),
        external=ExternalAPIManager(
            timeout=reporting.external_api_timeout,
            batch_size=reporting.batch_size,
            batch_delay=reporting.batch_delay_seconds,
        ),
        fetcher=fetcher,
        dataset=dataset if dataset is not None else load_dataset(reporting.dataset_path),
        uses_redis=redis_client is not None,
    )
    logger.info(
        "Reporting services started",
        artifact_store=type(store).__name__,
        realtime_cache=type(realtime_cache).__name__,
    )
    return services
