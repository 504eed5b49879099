"""
Unit Tests - External API Integration
"""
import base64
import json

import httpx
import pytest

from src.core.exceptions import ConfigurationError
from src.integrations import (
    AuthMode,
    ExternalAPIConfig,
    ExternalAPIManager,
    HealthStatus,
    PayloadFormat,
    parse_xml,
)


class Recorder:
    """MockTransport handler that records requests and replies from a callable"""

    def __init__(self, reply=None):
        self.requests = []
        self.reply = reply or (lambda request: httpx.Response(200, json={"ok": True}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.reply(request)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
async def apis(recorder):
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    manager = ExternalAPIManager(client=client, timeout=5, batch_size=2, batch_delay=0)
    yield manager
    await client.aclose()


@pytest.fixture
def report(make_report):
    return make_report("grade-distribution", report_id="grades")


class TestConfiguration:
    """Tests for API configuration"""

    def test_missing_credentials(self):
        """Test auth modes require their parameters"""
        with pytest.raises(ConfigurationError):
            ExternalAPIConfig(endpoint="https://sis.example.edu", authentication="token")
        with pytest.raises(ConfigurationError):
            ExternalAPIConfig(
                endpoint="https://sis.example.edu",
                authentication="basic",
                parameters={"username": "u"},
            )

    def test_unknown_auth_mode(self):
        """Test auth mode is validated"""
        with pytest.raises(ValueError):
            ExternalAPIConfig(endpoint="https://sis.example.edu", authentication="oauth")

    def test_registry(self, apis):
        """Test register, update and remove"""
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/a"))

        updated = apis.update_api("sis", endpoint="https://sis.example.edu/b")

        assert apis.get_api("sis").endpoint == updated.endpoint == "https://sis.example.edu/b"
        assert list(apis.list_apis()) == ["sis"]
        assert apis.remove_api("sis") is True
        assert apis.get_api("sis") is None

    def test_update_unknown_field(self, apis):
        """Test updates reject unknown fields"""
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/a"))

        with pytest.raises(ConfigurationError):
            apis.update_api("sis", retries=3)

    async def test_unknown_api(self, apis, report):
        """Test calls against unregistered names"""
        with pytest.raises(ConfigurationError):
            await apis.export_to_external_system("missing", report)
        with pytest.raises(ConfigurationError):
            await apis.import_from_external_system("missing")


class TestAuthentication:
    """Tests for request authentication"""

    async def test_api_key_header(self, apis, recorder, report):
        """Test api-key uses the configured header"""
        apis.register_api("lms", ExternalAPIConfig(
            endpoint="https://lms.example.edu/ingest",
            authentication=AuthMode.API_KEY,
            parameters={"api_key": "k-123", "header_name": "X-LMS-Key"},
        ))

        await apis.export_to_external_system("lms", report)

        assert recorder.requests[0].headers["X-LMS-Key"] == "k-123"

    async def test_default_api_key_header(self, apis, recorder, report):
        """Test the default api-key header name"""
        apis.register_api("lms", ExternalAPIConfig(
            endpoint="https://lms.example.edu/ingest",
            authentication="api-key",
            parameters={"api_key": "k-123"},
        ))

        await apis.export_to_external_system("lms", report)

        assert recorder.requests[0].headers["X-API-Key"] == "k-123"

    async def test_bearer_token(self, apis, recorder, report):
        """Test token auth sends a bearer header"""
        apis.register_api("sis", ExternalAPIConfig(
            endpoint="https://sis.example.edu/grades",
            authentication="token",
            parameters={"token": "t-456"},
        ))

        await apis.export_to_external_system("sis", report)

        assert recorder.requests[0].headers["Authorization"] == "Bearer t-456"

    async def test_basic_auth(self, apis, recorder, report):
        """Test basic auth credentials"""
        apis.register_api("sis", ExternalAPIConfig(
            endpoint="https://sis.example.edu/grades",
            authentication="basic",
            parameters={"username": "registrar", "password": "secret"},
        ))

        await apis.export_to_external_system("sis", report)

        expected = base64.b64encode(b"registrar:secret").decode()
        assert recorder.requests[0].headers["Authorization"] == f"Basic {expected}"


class TestExport:
    """Tests for pushing reports"""

    async def test_json_body(self, apis, recorder, report):
        """Test the JSON envelope"""
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/grades"))

        result = await apis.export_to_external_system("sis", report, metadata={"term": "2024-S1"})

        body = json.loads(recorder.requests[0].content)
        assert result.success is True
        assert result.response == {"ok": True}
        assert body["report_id"] == "grades"
        assert body["metadata"] == {"term": "2024-S1"}
        assert len(body["data"]) == 5
        assert recorder.requests[0].method == "POST"

    async def test_csv_body(self, apis, recorder, report):
        """Test CSV bodies carry the text/csv content type"""
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/grades"))

        await apis.export_to_external_system("sis", report, fmt="csv")

        request = recorder.requests[0]
        assert request.headers["Content-Type"] == "text/csv"
        assert request.content.decode().splitlines()[0] == "grade,range,count,percentage"

    async def test_xml_body(self, apis, recorder, report):
        """Test XML bodies round-trip through the parser"""
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/grades"))

        await apis.export_to_external_system("sis", report, fmt=PayloadFormat.XML)

        rows = parse_xml(recorder.requests[0].content.decode())
        assert [row["grade"] for row in rows] == ["A", "B", "C", "D", "F"]

    async def test_transform_applied(self, apis, recorder, report):
        """Test rows pass through the transform before sending"""
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/grades"))

        await apis.export_to_external_system("sis", report, transform=lambda rows: rows[:1])

        assert len(json.loads(recorder.requests[0].content)["data"]) == 1

    async def test_http_error(self, apis, recorder, report):
        """Test non-2xx responses become failure results"""
        recorder.reply = lambda request: httpx.Response(500)
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/grades"))

        result = await apis.export_to_external_system("sis", report)

        assert result.success is False
        assert result.status_code == 500
        assert result.error == "API request failed: 500 Internal Server Error"

    async def test_network_error(self, apis, recorder, report):
        """Test transport errors become failure results"""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        recorder.reply = refuse
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/grades"))

        result = await apis.export_to_external_system("sis", report)

        assert result.success is False
        assert result.error == "ConnectError: connection refused"

    async def test_batch_with_one_failure(self, apis, recorder, make_report):
        """Test per-report outcomes across chunks"""
        def reply(request):
            if request.headers["X-Report-Id"] == "r2":
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        recorder.reply = reply
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/grades"))
        reports = [make_report("grade-distribution", report_id=name) for name in ("r1", "r2", "r3")]

        batch = await apis.batch_export_to_external_system("sis", reports)

        assert batch.success is False
        assert [item.report_id for item in batch.results] == ["r1", "r2", "r3"]
        assert [item.report_id for item in batch.failed] == ["r2"]
        assert len(recorder.requests) == 3


class TestImport:
    """Tests for pulling rows"""

    async def test_get_with_query_params(self, apis, recorder):
        """Test GET imports send parameters as the query string"""
        recorder.reply = lambda request: httpx.Response(200, json=[{"id": "s1"}, {"id": "s2"}])
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/students", method="get"))

        result = await apis.import_from_external_system("sis", {"cohort": "2024"})

        assert result.success is True
        assert result.data == [{"id": "s1"}, {"id": "s2"}]
        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.params["cohort"] == "2024"

    async def test_csv_response(self, apis, recorder):
        """Test CSV responses are parsed into rows"""
        recorder.reply = lambda request: httpx.Response(200, text="id,grade\ns1,95\ns2,72\n")
        apis.register_api("sis", ExternalAPIConfig(
            endpoint="https://sis.example.edu/grades", response_format="csv",
        ))

        result = await apis.import_from_external_system("sis")

        assert result.data == [{"id": "s1", "grade": "95"}, {"id": "s2", "grade": "72"}]

    async def test_xml_response(self, apis, recorder):
        """Test XML responses become one row per root child"""
        xml = "<students><student><id>s1</id></student><student><id>s2</id></student></students>"
        recorder.reply = lambda request: httpx.Response(200, text=xml)
        apis.register_api("sis", ExternalAPIConfig(
            endpoint="https://sis.example.edu/students", response_format="xml",
        ))

        result = await apis.import_from_external_system("sis")

        assert result.data == [{"id": "s1"}, {"id": "s2"}]

    async def test_single_object_wrapped(self, apis, recorder):
        """Test a single JSON object is wrapped in a list"""
        recorder.reply = lambda request: httpx.Response(200, json={"id": "s1"})
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/students/s1"))

        result = await apis.import_from_external_system("sis")

        assert result.data == [{"id": "s1"}]

    async def test_malformed_json(self, apis, recorder):
        """Test undecodable bodies are failures"""
        recorder.reply = lambda request: httpx.Response(200, text="not json")
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu/students"))

        result = await apis.import_from_external_system("sis")

        assert result.success is False
        assert result.error.startswith("Invalid response")


class TestHealth:
    """Tests for health checks"""

    async def test_healthy(self, apis, recorder):
        """Test 2xx HEAD responses"""
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu"))

        health = await apis.check_api_health("sis")

        assert health.status == HealthStatus.HEALTHY
        assert health.response_time_ms >= 0
        assert recorder.requests[0].method == "HEAD"

    async def test_unhealthy(self, apis, recorder):
        """Test error responses"""
        recorder.reply = lambda request: httpx.Response(503)
        apis.register_api("sis", ExternalAPIConfig(endpoint="https://sis.example.edu"))

        health = await apis.check_api_health("sis")

        assert health.status == HealthStatus.UNHEALTHY
        assert health.error == "HTTP 503"

    async def test_unknown(self, apis):
        """Test unknown names report UNKNOWN"""
        health = await apis.check_api_health("missing")

        assert health.status == HealthStatus.UNKNOWN
