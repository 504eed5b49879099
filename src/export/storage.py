"""
Artifact stores.

Exported bytes live outside the export registry; the store hands back an
opaque download reference and keeps each artifact until its TTL elapses.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

import structlog
from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

DOWNLOAD_PATH = "/api/v1/exports/{export_id}/download"


@dataclass(frozen=True)
class StoredArtifact:
    content: bytes
    content_type: str
    filename: str


class ArtifactStore(ABC):
    """Keeps export artifacts for a limited time."""

    @abstractmethod
    async def put(self, export_id: str, artifact: StoredArtifact, ttl: timedelta) -> str:
        """Store ``artifact`` and return its download reference."""

    @abstractmethod
    async def get(self, export_id: str) -> Optional[StoredArtifact]:
        ...

    @abstractmethod
    async def delete(self, export_id: str) -> bool:
        ...

    @staticmethod
    def download_url(export_id: str) -> str:
        return DOWNLOAD_PATH.format(export_id=export_id)


class MemoryArtifactStore(ArtifactStore):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._artifacts: Dict[str, Tuple[StoredArtifact, float]] = {}

    async def put(self, export_id: str, artifact: StoredArtifact, ttl: timedelta) -> str:
        self._artifacts[export_id] = (artifact, self._clock() + ttl.total_seconds())
        return self.download_url(export_id)

    async def get(self, export_id: str) -> Optional[StoredArtifact]:
        entry = self._artifacts.get(export_id)
        if entry is None:
            return None
        artifact, expires_at = entry
        if self._clock() >= expires_at:
            del self._artifacts[export_id]
            return None
        return artifact

    async def delete(self, export_id: str) -> bool:
        return self._artifacts.pop(export_id, None) is not None

    def __len__(self) -> int:
        return len(self._artifacts)


class RedisArtifactStore(ArtifactStore):
    """
    Artifacts as Redis hashes under ``{namespace}:{export_id}``, expired by
    Redis itself.
    """

    def __init__(self, client: Redis, namespace: str = "exports"):
        self._client = client
        self.namespace = namespace

    def _key(self, export_id: str) -> str:
        return f"{self.namespace}:{export_id}"

    async def put(self, export_id: str, artifact: StoredArtifact, ttl: timedelta) -> str:
        key = self._key(export_id)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping={
                "content": artifact.content,
                "content_type": artifact.content_type,
                "filename": artifact.filename,
            })
            pipe.pexpire(key, int(ttl.total_seconds() * 1000))
            await pipe.execute()
        logger.debug("Artifact stored", export_id=export_id, size=len(artifact.content))
        return self.download_url(export_id)

    async def get(self, export_id: str) -> Optional[StoredArtifact]:
        data = await self._client.hgetall(self._key(export_id))
        if not data:
            return None
        return StoredArtifact(
            content=data[b"content"],
            content_type=data[b"content_type"].decode(),
            filename=data[b"filename"].decode(),
        )

    async def delete(self, export_id: str) -> bool:
        return await self._client.delete(self._key(export_id)) > 0
