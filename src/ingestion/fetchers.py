"""
Realtime data fetchers.

A fetcher is any async callable taking a RealtimeDataSource and returning the
fresh payload. Failures surface as TransportError.
"""

from typing import Any, Optional

import httpx
import structlog

from src.config import get_settings
from src.core.exceptions import TransportError

logger = structlog.get_logger(__name__)


class HttpDataFetcher:
    """
    Fetches a data source's endpoint as JSON over HTTP.

    Example:
        fetcher = HttpDataFetcher(base_url="http://metrics.internal")
        manager = RealtimeDataManager(fetcher)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = "",
        timeout: Optional[float] = None,
    ):
        if timeout is None:
            timeout = get_settings().reporting.external_api_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __call__(self, source: Any) -> Any:
        try:
            response = await self._client.get(source.endpoint)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{source.name}: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{source.name}: {e.__class__.__name__}: {e}") from e
        except ValueError as e:
            raise TransportError(f"{source.name}: response is not JSON") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
