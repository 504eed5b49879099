"""
Unit Tests - Dashboards and Widgets
"""
import pytest

from src.core.exceptions import ConfigurationError
from src.core.records import UserRole
from src.dashboard import (
    PALETTE,
    DashboardManager,
    WidgetConfig,
    WidgetPosition,
    WidgetType,
    shape_widget_data,
)


@pytest.fixture
def manager() -> DashboardManager:
    return DashboardManager()


def widget(type_, **config) -> WidgetConfig:
    return WidgetConfig(id="w", type=type_, title="Widget", config=config)


class TestDashboardManager:
    """Tests for layout and widget management"""

    def test_default_dashboards(self, manager):
        """Test one default layout per role"""
        layouts = manager.create_default_dashboards()

        assert {layout.role for layout in layouts} == set(UserRole)
        teacher = manager.get_default_for_role("Teacher")
        assert teacher.name == "Teaching Dashboard"
        assert teacher.is_default is True
        assert all(w.role == UserRole.TEACHER for w in teacher.widgets)

    def test_no_default_for_role(self, manager):
        """Test roles without a default layout"""
        assert manager.get_default_for_role("Student") is None

    def test_create_and_update_widget(self, manager):
        """Test partial updates re-validate fields"""
        created = manager.create_widget("chart", "Grades", position=WidgetPosition(0, 0, 6, 4))

        updated = manager.update_widget(created.id, title="Grade Trend", position={"x": 6, "y": 0, "w": 6, "h": 4})

        assert updated.title == "Grade Trend"
        assert updated.position == WidgetPosition(6, 0, 6, 4)
        assert updated.type == WidgetType.CHART

    def test_widget_id_is_immutable(self, manager):
        """Test ids cannot be changed"""
        created = manager.create_widget("gauge", "Load")

        with pytest.raises(ConfigurationError):
            manager.update_widget(created.id, id="other")

    def test_invalid_widget_type(self, manager):
        """Test unknown widget types are rejected"""
        with pytest.raises(ValueError):
            manager.create_widget("sparkline", "Nope")

    def test_layout_lifecycle(self, manager):
        """Test create, update, list by role and delete"""
        layout = manager.create_layout("Mine", "Student")

        manager.update_layout(layout.id, name="Renamed")

        assert manager.get_layout(layout.id).name == "Renamed"
        assert manager.get_layout(layout.id).updated_at >= layout.created_at
        assert [item.id for item in manager.list_layouts("Student")] == [layout.id]
        manager.delete_layout(layout.id)
        assert manager.get_layout(layout.id) is None

    def test_unknown_layout(self, manager):
        """Test operations on unknown layouts"""
        with pytest.raises(ConfigurationError):
            manager.update_layout("layout_missing", name="x")
        with pytest.raises(ConfigurationError):
            manager.delete_layout("layout_missing")

    def test_invalid_role(self, manager):
        """Test roles are validated"""
        with pytest.raises(ValueError):
            manager.create_layout("Guests", "Guest")


class TestWidgetShaping:
    """Tests for widget view-models"""

    def test_metric_card_count(self):
        """Test count needs no field"""
        assert shape_widget_data(widget("metric-card"), [{}, {}, {}]) == {"value": 3}

    def test_metric_card_average(self):
        """Test numeric strings are parsed and missing values count as zero"""
        rows = [{"grade": 90}, {"grade": "80"}, {"grade": None}, {}]

        result = shape_widget_data(widget("metric-card", aggregation="avg", field="grade"), rows)

        assert result == {"value": 42.5}

    def test_metric_card_default_field(self):
        """Test the value field is used when none is configured"""
        rows = [{"value": 10}, {"value": None}]

        assert shape_widget_data(widget("metric-card", aggregation="avg"), rows) == {"value": 5.0}
        assert shape_widget_data(widget("metric-card", aggregation="min"), rows) == {"value": 0}

    def test_metric_card_empty(self):
        """Test empty input"""
        assert shape_widget_data(widget("metric-card", aggregation="sum", field="x"), []) == {"value": 0}

    def test_chart_group_by_cycles_palette(self):
        """Test grouped counts and color cycling"""
        rows = [{"category": str(i)} for i in range(len(PALETTE) + 1)]

        result = shape_widget_data(widget("chart", group_by="category", chart_type="pie"), rows)

        assert result["chart_type"] == "pie"
        assert [p["value"] for p in result["points"]] == [1] * (len(PALETTE) + 1)
        assert result["points"][-1]["color"] == PALETTE[0]

    def test_chart_label_value_rows(self):
        """Test label/value rows without grouping"""
        rows = [{"label": "A", "value": 4}, {"name": "B", "value": "2"}]

        result = shape_widget_data(widget("chart"), rows)

        assert [(p["label"], p["value"]) for p in result["points"]] == [("A", 4.0), ("B", 2.0)]

    def test_table(self):
        """Test columns come from the first row"""
        rows = [{"a": 1, "b": 2}]

        assert shape_widget_data(widget("table"), rows) == {"columns": ["a", "b"], "rows": rows}

    def test_progress_bar(self):
        """Test percentage against row or configured maximum"""
        rows = [{"label": "Quiz", "value": 30, "max": 40}, {"label": "Lab", "value": 50}]

        result = shape_widget_data(widget("progress-bar"), rows)

        assert [item["percentage"] for item in result] == [75.0, 50.0]

    def test_gauge_default_max(self):
        """Test the configured maximum applies when rows carry none"""
        result = shape_widget_data(widget("gauge", max=50), [{"value": 20}])

        assert result == {"value": 20.0, "max": 50, "percentage": 40.0}

    def test_gauge_empty(self):
        """Test empty input"""
        assert shape_widget_data(widget("gauge"), [])["percentage"] == 0.0

    def test_list_limit(self):
        """Test list truncation"""
        rows = [{"i": i} for i in range(20)]

        assert len(shape_widget_data(widget("list", limit=5), rows)) == 5
        assert len(shape_widget_data(widget("list"), rows)) == 10

    def test_heatmap_fallback_keys(self):
        """Test x/y/value fall back to date/category/count"""
        rows = [{"date": "2024-03-04", "category": "c1", "count": 3}]

        assert shape_widget_data(widget("heatmap"), rows) == [{"x": "2024-03-04", "y": "c1", "value": 3}]

    def test_inputs_not_mutated(self):
        """Test shaping leaves rows untouched"""
        rows = [{"label": "A", "value": 1}]
        snapshot = [dict(r) for r in rows]

        shape_widget_data(widget("progress-bar"), rows)

        assert rows == snapshot
