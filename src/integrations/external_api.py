"""
External system integration.

Pushes report rows to, and pulls rows from, registered third-party APIs:
- Named API configurations with api-key, basic or bearer-token auth
- Report export as JSON, CSV or XML request bodies
- Throttled batch export
- Import with JSON, CSV or XML response parsing
- Health checks with response timing

Network and HTTP failures never raise; they come back as
``ExternalCallResult(success=False, error=...)``.
"""

import asyncio
import csv
import io
import json
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
import structlog
from prometheus_client import Counter, Histogram

from src.config import get_settings
from src.core.exceptions import ConfigurationError
from src.core.records import Row, jsonable
from src.export.serializers import cell_value, columns_of
from src.reporting.models import ReportData

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

EXTERNAL_CALLS = Counter(
    "reporting_external_calls_total",
    "External API calls by api, operation and outcome",
    ["api", "operation", "status"],
)

EXTERNAL_LATENCY = Histogram(
    "reporting_external_call_seconds",
    "External API call latency",
    ["api", "operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


# =============================================================================
# MODELS
# =============================================================================

class AuthMode(str, Enum):
    NONE = "none"
    API_KEY = "api-key"
    BASIC = "basic"
    TOKEN = "token"


class PayloadFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    XML = "xml"
    TEXT = "text"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


REQUIRED_PARAMETERS = {
    AuthMode.NONE: (),
    AuthMode.API_KEY: ("api_key",),
    AuthMode.BASIC: ("username", "password"),
    AuthMode.TOKEN: ("token",),
}


@dataclass
class ExternalAPIConfig:
    """
    Connection settings for one external system.

    ``parameters`` carries the credentials for ``authentication``:
    api_key (and optionally header_name), username/password, or token.
    """
    endpoint: str
    method: str = "POST"
    authentication: AuthMode = AuthMode.NONE
    parameters: Dict[str, str] = field(default_factory=dict)
    response_format: PayloadFormat = PayloadFormat.JSON
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.method = self.method.upper()
        self.authentication = AuthMode(self.authentication)
        self.response_format = PayloadFormat(self.response_format)
        missing = [p for p in REQUIRED_PARAMETERS[self.authentication] if not self.parameters.get(p)]
        if missing:
            raise ConfigurationError(
                f"{self.authentication.value} authentication requires: {', '.join(missing)}"
            )


@dataclass
class ExternalCallResult:
    success: bool
    response: Any = None
    data: Optional[List[Any]] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


@dataclass
class BatchCallItem:
    report_id: str
    result: ExternalCallResult


@dataclass
class BatchCallResult:
    success: bool
    results: List[BatchCallItem]

    @property
    def failed(self) -> List[BatchCallItem]:
        return [item for item in self.results if not item.result.success]


@dataclass
class APIHealth:
    status: HealthStatus
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


# =============================================================================
# BODY ENCODING AND RESPONSE PARSING
# =============================================================================

def rows_to_csv(rows: Sequence[Row]) -> str:
    buffer = io.StringIO(newline="")
    columns = columns_of(rows)
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([cell_value(row.get(col)) for col in columns])
    return buffer.getvalue()


def rows_to_xml(rows: Sequence[Row], root_tag: str = "data", item_tag: str = "item") -> str:
    root = ET.Element(root_tag)
    for row in rows:
        item = ET.SubElement(root, item_tag)
        for key, value in row.items():
            ET.SubElement(item, str(key)).text = str(cell_value(value))
    return ET.tostring(root, encoding="unicode", xml_declaration=True)


def parse_csv(text: str) -> List[Row]:
    reader = csv.DictReader(io.StringIO(text))
    return [
        {key.strip(): (value or "").strip() for key, value in row.items() if key is not None}
        for row in reader
        if any((value or "").strip() for value in row.values() if isinstance(value, str))
    ]


def _element_to_value(element: ET.Element) -> Any:
    children = list(element)
    if not children:
        return (element.text or "").strip()
    result: Dict[str, Any] = {}
    for child in children:
        value = _element_to_value(child)
        if child.tag in result:
            existing = result[child.tag]
            result[child.tag] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            result[child.tag] = value
    return result


def parse_xml(text: str) -> List[Any]:
    """Each child of the document root becomes one row."""
    root = ET.fromstring(text)
    children = list(root)
    if not children:
        return [_element_to_value(root)]
    return [_element_to_value(child) for child in children]


def _as_list(payload: Any) -> List[Any]:
    if payload is None:
        return []
    return payload if isinstance(payload, list) else [payload]


# =============================================================================
# MANAGER
# =============================================================================

class ExternalAPIManager:
    """
    Registry of external systems and the calls made to them.

    Example:
        apis = ExternalAPIManager()
        apis.register_api("sis", ExternalAPIConfig(
            endpoint="https://sis.example.edu/api/grades",
            authentication=AuthMode.TOKEN,
            parameters={"token": "..."},
        ))
        result = await apis.export_to_external_system("sis", report)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        settings = get_settings().reporting
        self.timeout = timeout or settings.external_api_timeout
        self.batch_size = batch_size or settings.batch_size
        self.batch_delay = settings.batch_delay_seconds if batch_delay is None else batch_delay
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)
        self._apis: Dict[str, ExternalAPIConfig] = {}

    # ------------------------------------------------------------------
    # Configuration registry
    # ------------------------------------------------------------------

    def register_api(self, name: str, config: ExternalAPIConfig) -> ExternalAPIConfig:
        self._apis[name] = config
        logger.info("External API registered", api=name, endpoint=config.endpoint, auth=config.authentication.value)
        return config

    def update_api(self, name: str, **changes: Any) -> ExternalAPIConfig:
        config = self._require(name)
        try:
            updated = replace(config, **changes)
        except TypeError as e:
            raise ConfigurationError(f"Invalid API configuration update: {e}") from e
        self._apis[name] = updated
        return updated

    def remove_api(self, name: str) -> bool:
        return self._apis.pop(name, None) is not None

    def get_api(self, name: str) -> Optional[ExternalAPIConfig]:
        return self._apis.get(name)

    def list_apis(self) -> Dict[str, ExternalAPIConfig]:
        return dict(self._apis)

    def _require(self, name: str) -> ExternalAPIConfig:
        config = self._apis.get(name)
        if config is None:
            raise ConfigurationError(f"API configuration {name} not found")
        return config

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _request_args(self, config: ExternalAPIConfig) -> Dict[str, Any]:
        headers = {"Accept": "application/json", **config.headers}
        auth = None
        if config.authentication == AuthMode.API_KEY:
            headers[config.parameters.get("header_name", "X-API-Key")] = config.parameters["api_key"]
        elif config.authentication == AuthMode.TOKEN:
            headers["Authorization"] = f"Bearer {config.parameters['token']}"
        elif config.authentication == AuthMode.BASIC:
            auth = httpx.BasicAuth(config.parameters["username"], config.parameters["password"])
        return {"headers": headers, "auth": auth}

    async def _send(self, name: str, operation: str, config: ExternalAPIConfig, **kwargs: Any) -> httpx.Response:
        args = self._request_args(config)
        args["headers"].update(kwargs.pop("headers", {}))
        with EXTERNAL_LATENCY.labels(api=name, operation=operation).time():
            response = await self._client.request(config.method, config.endpoint, **args, **kwargs)
        response.raise_for_status()
        return response

    @staticmethod
    def _failure(name: str, operation: str, error: Exception) -> ExternalCallResult:
        status_code = None
        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            message = f"API request failed: {status_code} {error.response.reason_phrase}"
        elif isinstance(error, httpx.HTTPError):
            message = f"{error.__class__.__name__}: {error}" if str(error) else error.__class__.__name__
        else:
            message = f"Invalid response: {error}"
        EXTERNAL_CALLS.labels(api=name, operation=operation, status="error").inc()
        logger.warning("External API call failed", api=name, operation=operation, error=message)
        return ExternalCallResult(success=False, error=message, status_code=status_code)

    def _decode(self, config: ExternalAPIConfig, response: httpx.Response) -> Any:
        fmt = config.response_format
        if not response.content:
            return None
        if fmt == PayloadFormat.JSON:
            return response.json()
        if fmt == PayloadFormat.CSV:
            return parse_csv(response.text)
        if fmt == PayloadFormat.XML:
            return parse_xml(response.text)
        return response.text

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_to_external_system(
        self,
        name: str,
        report: ReportData,
        fmt: PayloadFormat = PayloadFormat.JSON,
        transform: Optional[Callable[[List[Row]], List[Row]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ExternalCallResult:
        """Send a report's rows to the named API."""
        config = self._require(name)
        rows = transform(list(report.data)) if transform else list(report.data)
        fmt = PayloadFormat(fmt)

        headers = {"X-Report-Id": report.report_id}
        if fmt == PayloadFormat.CSV:
            kwargs: Dict[str, Any] = {"content": rows_to_csv(rows), "headers": {**headers, "Content-Type": "text/csv"}}
        elif fmt == PayloadFormat.XML:
            kwargs = {"content": rows_to_xml(rows), "headers": {**headers, "Content-Type": "application/xml"}}
        else:
            body = {"report_id": report.report_id, "metadata": metadata or {}, "data": rows}
            kwargs = {"json": jsonable(body), "headers": headers}
        if config.method == "GET":
            kwargs = {"headers": kwargs["headers"]}

        try:
            response = await self._send(name, "export", config, **kwargs)
            payload = self._decode(config, response)
        except (httpx.HTTPError, ValueError, ET.ParseError) as e:
            return self._failure(name, "export", e)

        EXTERNAL_CALLS.labels(api=name, operation="export", status="success").inc()
        logger.info("Report exported to external system", api=name, report_id=report.report_id, rows=len(rows))
        return ExternalCallResult(success=True, response=payload, status_code=response.status_code)

    async def batch_export_to_external_system(
        self,
        name: str,
        reports: Sequence[ReportData],
        fmt: PayloadFormat = PayloadFormat.JSON,
        transform: Optional[Callable[[List[Row]], List[Row]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        batch_size: Optional[int] = None,
    ) -> BatchCallResult:
        """
        Export reports in concurrent chunks, pausing ``batch_delay`` seconds
        between chunks. ``success`` is True only when every report succeeded.
        """
        self._require(name)
        size = batch_size or self.batch_size
        results: List[BatchCallItem] = []

        for start in range(0, len(reports), size):
            if start:
                await asyncio.sleep(self.batch_delay)
            chunk = reports[start:start + size]
            outcomes = await asyncio.gather(*[
                self.export_to_external_system(name, report, fmt, transform, metadata) for report in chunk
            ])
            results.extend(BatchCallItem(report.report_id, outcome) for report, outcome in zip(chunk, outcomes))

        batch = BatchCallResult(success=all(item.result.success for item in results), results=results)
        logger.info("Batch export to external system finished", api=name, total=len(results), failed=len(batch.failed))
        return batch

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    async def import_from_external_system(
        self,
        name: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> ExternalCallResult:
        """
        Pull rows from the named API. GET requests carry ``parameters`` as
        the query string, other methods as a JSON body.
        """
        config = self._require(name)
        if config.method == "GET":
            kwargs: Dict[str, Any] = {"params": parameters or {}}
        else:
            kwargs = {"json": jsonable(parameters or {})}

        try:
            response = await self._send(name, "import", config, **kwargs)
            payload = self._decode(config, response)
        except (httpx.HTTPError, ValueError, ET.ParseError) as e:
            return self._failure(name, "import", e)

        data = _as_list(payload)
        EXTERNAL_CALLS.labels(api=name, operation="import", status="success").inc()
        logger.info("Imported rows from external system", api=name, rows=len(data))
        return ExternalCallResult(success=True, data=data, status_code=response.status_code)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_api_health(self, name: str) -> APIHealth:
        """HEAD the endpoint; unknown names report UNKNOWN instead of raising."""
        config = self._apis.get(name)
        if config is None:
            return APIHealth(status=HealthStatus.UNKNOWN, error=f"API configuration {name} not found")

        args = self._request_args(config)
        start = time.perf_counter()
        try:
            response = await self._client.head(config.endpoint, timeout=self.timeout, **args)
        except httpx.HTTPError as e:
            elapsed = (time.perf_counter() - start) * 1000
            return APIHealth(status=HealthStatus.UNHEALTHY, response_time_ms=round(elapsed, 2), error=str(e) or e.__class__.__name__)

        elapsed = round((time.perf_counter() - start) * 1000, 2)
        if response.is_success:
            return APIHealth(status=HealthStatus.HEALTHY, response_time_ms=elapsed)
        return APIHealth(
            status=HealthStatus.UNHEALTHY,
            response_time_ms=elapsed,
            error=f"HTTP {response.status_code}",
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
