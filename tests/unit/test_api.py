"""
Unit Tests - REST API
"""
import pytest
from fastapi.testclient import TestClient

from src.serving.api.main import create_api_app


@pytest.fixture
def client(test_settings, services):
    app = create_api_app(test_settings, services=services)
    with TestClient(app) as client:
        yield client


def export_body(report_type="student-performance", fmt="csv", report_id="weekly"):
    return {"report": {"report_type": report_type, "report_id": report_id}, "format": fmt}


class TestHealth:
    """Tests for health endpoints"""

    def test_health(self, client):
        """Test the service container is reported healthy"""
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["realtime"]["sources"] == 0

    def test_liveness_and_readiness(self, client):
        """Test probe endpoints"""
        assert client.get("/api/v1/health/live").json() == {"status": "alive"}
        assert client.get("/api/v1/health/ready").json() == {"status": "ready"}

    def test_response_headers(self, client):
        """Test security and request id headers"""
        response = client.get("/api/v1/health/live", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestReportEndpoints:
    """Tests for report generation"""

    def test_report_types(self, client):
        """Test every routine is listed"""
        types = client.get("/api/v1/reports/types").json()

        assert "student-performance" in types
        assert len(types) == 7

    def test_generate(self, client):
        """Test generation over the served dataset"""
        response = client.post(
            "/api/v1/reports/generate",
            json={"report_type": "grade-distribution", "report_id": "grades"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["report_id"] == "grades"
        assert [row["count"] for row in body["data"]] == [2, 1, 1, 1, 1]
        assert body["metadata"]["total_records"] == 5

    def test_generate_inline_dataset(self, client):
        """Test an inline dataset replaces the served one"""
        response = client.post(
            "/api/v1/reports/generate",
            json={"report_type": "student-performance", "dataset": {"users": []}},
        )

        assert response.status_code == 200
        assert response.json()["data"] == []

    def test_unknown_type(self, client):
        """Test unknown report types are 400"""
        response = client.post("/api/v1/reports/generate", json={"report_type": "weather"})

        assert response.status_code == 400
        assert response.json()["error"] == "ConfigurationError"


class TestExportEndpoints:
    """Tests for export endpoints"""

    def test_export_and_download(self, client):
        """Test export creation and artifact download"""
        created = client.post("/api/v1/exports", json=export_body())

        assert created.status_code == 201
        record = created.json()
        assert record["status"] == "completed"
        download = client.get(record["download_url"])
        assert download.status_code == 200
        assert download.headers["content-type"].startswith("text/csv")
        assert download.headers["content-disposition"] == 'attachment; filename="weekly.csv"'
        assert download.text.startswith("student_id,")

    def test_get_and_list(self, client):
        """Test export lookup"""
        record = client.post("/api/v1/exports", json=export_body(fmt="json")).json()

        assert client.get(f"/api/v1/exports/{record['id']}").json()["format"] == "json"
        assert [e["id"] for e in client.get("/api/v1/exports", params={"report_id": "weekly"}).json()] == [record["id"]]

    def test_unknown_export(self, client):
        """Test unknown ids are 404"""
        assert client.get("/api/v1/exports/export_missing").status_code == 404
        assert client.get("/api/v1/exports/export_missing/download").status_code == 404

    def test_batch_export(self, client):
        """Test a zip bundle is produced"""
        response = client.post("/api/v1/exports/batch", json={
            "reports": [{"report_type": "grade-distribution"}, {"report_type": "financial-summary"}],
            "format": "csv",
        })

        assert response.status_code == 201
        record = response.json()
        assert record["report_id"] == "batch"
        assert len(record["items"]) == 2
        download = client.get(record["download_url"])
        assert download.headers["content-type"] == "application/zip"

    def test_schedules(self, client):
        """Test scheduling, listing and cancelling"""
        created = client.post("/api/v1/exports/schedules", json={
            "report_id": "weekly", "frequency": "weekly", "time": "07:30", "recipients": ["head@example.edu"],
        })

        assert created.status_code == 201
        schedule_id = created.json()["id"]
        assert [s["id"] for s in client.get("/api/v1/exports/schedules").json()] == [schedule_id]
        assert client.delete(f"/api/v1/exports/schedules/{schedule_id}").status_code == 204

    def test_schedule_bad_time(self, client):
        """Test malformed times are 422"""
        response = client.post("/api/v1/exports/schedules", json={
            "report_id": "weekly", "frequency": "daily", "time": "25:00",
        })

        assert response.status_code == 422

    def test_cancel_unknown_schedule(self, client):
        """Test cancelling an unknown schedule is a configuration error"""
        assert client.delete("/api/v1/exports/schedules/schedule_missing").status_code == 400


class TestDashboardEndpoints:
    """Tests for dashboard endpoints"""

    def test_default_layout(self, client):
        """Test role defaults exist at startup"""
        response = client.get("/api/v1/dashboards/default/Teacher")

        assert response.status_code == 200
        assert response.json()["name"] == "Teaching Dashboard"

    def test_create_widget_and_shape(self, client):
        """Test a widget shapes rows into its view-model"""
        widget = client.post("/api/v1/dashboards/widgets", json={
            "type": "progress-bar", "title": "Course progress",
        }).json()

        response = client.post(
            f"/api/v1/dashboards/widgets/{widget['id']}/shape",
            json={"rows": [{"label": "Algebra I", "value": 30, "max": 40}]},
        )

        assert widget["position"] == {"x": 0, "y": 0, "w": 3, "h": 2}
        assert response.json()[0]["percentage"] == 75.0

    def test_layout_with_unknown_widget(self, client):
        """Test layouts referencing unknown widgets are 404"""
        response = client.post("/api/v1/dashboards", json={
            "name": "Mine", "role": "Student", "widget_ids": ["widget_missing"],
        })

        assert response.status_code == 404

    def test_invalid_widget_type(self, client):
        """Test widget types are validated"""
        response = client.post("/api/v1/dashboards/widgets", json={"type": "sparkline", "title": "x"})

        assert response.status_code == 422


class TestAnalyticsEndpoints:
    """Tests for analytics endpoints"""

    def test_engagement_metrics(self, client):
        """Test the metric set over a window"""
        response = client.post("/api/v1/analytics/metrics/engagement", json={
            "start": "2024-03-01T00:00:00Z", "end": "2024-04-01T00:00:00Z",
        })

        metrics = {m["id"]: m for m in response.json()}
        assert metrics["active_users"]["value"] == 3
        assert metrics["active_users"]["trend"]["direction"] == "stable"

    def test_prediction(self, client):
        """Test risk prediction for a student"""
        response = client.post("/api/v1/analytics/students/s3/prediction")

        assert response.json()["risk_level"] == "high"

    def test_trend(self, client):
        """Test series regression"""
        body = client.post("/api/v1/analytics/trend", json={"series": [10, 20, 30, 40]}).json()

        assert body["trend"] == "increasing"
        assert body["forecast"] == pytest.approx([50.0, 60.0, 70.0])

    def test_compare(self, client):
        """Test course comparison"""
        response = client.post("/api/v1/analytics/compare", json={
            "dimension": "course", "baseline_id": "c1", "comparison_ids": ["c2"],
        })

        assert response.status_code == 200
        assert response.json()["comparisons"][0]["name"] == "Biology"

    def test_compare_unknown_course(self, client):
        """Test unknown entities are 400"""
        response = client.post("/api/v1/analytics/compare", json={
            "dimension": "course", "baseline_id": "c1", "comparison_ids": ["c9"],
        })

        assert response.status_code == 400

    def test_significance(self, client):
        """Test the two-sample test"""
        body = client.post("/api/v1/analytics/significance", json={
            "sample_a": [1, 2, 3, 4, 5], "sample_b": [11, 12, 13, 14, 15], "method": "welch",
        }).json()

        assert body["is_significant"] is True
        assert body["t_statistic"] == pytest.approx(10.0)


class TestRealtimeEndpoints:
    """Tests for realtime endpoints that start no polling"""

    def test_unknown_source(self, client):
        """Test unknown sources are 404 and removal is idempotent"""
        assert client.get("/api/v1/realtime/sources/source_missing").status_code == 404
        assert client.delete("/api/v1/realtime/sources/source_missing").status_code == 204

    def test_invalid_interval(self, client):
        """Test non-positive intervals are rejected before registration"""
        response = client.post("/api/v1/realtime/sources", json={
            "name": "x", "endpoint": "/metrics/x", "update_interval": 0,
        })

        assert response.status_code == 422
        assert client.get("/api/v1/realtime/sources").json() == []
