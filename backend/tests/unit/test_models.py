"""
数据模型单元测试
"""

import pytest

from orgchart_export.models import (
    NO_COVER,
    ChartDocument,
    ContentBounds,
    ExportSession,
    ExportStatus,
    LayoutDirection,
)


class TestChartDocument:
    """图表文档测试"""

    def test_from_api_merges_data(self, chart_payload):
        """data 字段合并到顶层"""
        chart = ChartDocument.from_api(chart_payload("c1", name="Ops", cover_id="ops", index=3))
        assert chart.id == "c1"
        assert chart.name == "Ops"
        assert chart.layout == LayoutDirection.TOP
        assert chart.cover_order_index == 3
        assert len(chart.nodes) == 3
        assert chart.people_count == 3

    def test_group_key_defaults_to_no_cover(self, make_chart):
        assert make_chart("a", cover_id=None).group_key == NO_COVER
        assert make_chart("b", cover_id="").group_key == NO_COVER
        assert make_chart("c", cover_id="eng").group_key == "eng"

    def test_null_fields_tolerated(self):
        chart = ChartDocument.model_validate({
            "chartId": 42, "chartName": None, "departmentTag": None,
            "layout": None, "viewState": None, "nodes": [{"id": 1, "parentId": ""}],
        })
        assert chart.id == "42"
        assert chart.name == ""
        assert chart.layout == LayoutDirection.TOP
        assert chart.nodes[0].id == "1"
        assert chart.nodes[0].parent_id is None

    def test_expanded_override(self):
        chart = ChartDocument.model_validate({
            "chartId": "x", "nodes": [{"id": "a", "_expanded": False}],
        })
        assert chart.nodes[0].expanded is False


class TestContentBounds:
    """内容边界测试"""

    def test_full_surface(self):
        bounds = ContentBounds.full_surface(2000, 1128)
        assert bounds.as_region() == (0, 0, 2000, 1128)
        assert bounds.degraded
        assert bounds.right == 2000

    def test_is_empty(self):
        bounds = ContentBounds(x=0, y=0, width=0, height=5, original_width=1, original_height=1)
        assert bounds.is_empty


class TestExportSession:
    """会话状态机测试"""

    def _session(self) -> ExportSession:
        return ExportSession(session_id="s1")

    def test_happy_path(self):
        session = self._session()
        for status in (ExportStatus.FETCHING, ExportStatus.RENDERING,
                       ExportStatus.ASSEMBLING, ExportStatus.DOWNLOADING):
            session.transition(status)
        session.mark_complete()
        assert session.status == ExportStatus.COMPLETE
        assert session.progress.percent == 100
        assert session.started_at is not None
        assert session.finished_at is not None
        assert session.is_terminal

    def test_illegal_transition(self):
        session = self._session()
        with pytest.raises(ValueError):
            session.transition(ExportStatus.ASSEMBLING)

    def test_cancel_only_during_fetch_or_render(self):
        session = self._session()
        session.transition(ExportStatus.FETCHING)
        session.transition(ExportStatus.RENDERING)
        session.transition(ExportStatus.ASSEMBLING)
        with pytest.raises(ValueError):
            session.mark_cancelled()

    def test_mark_failed(self):
        """测试标记失败"""
        session = self._session()
        session.transition(ExportStatus.FETCHING)
        session.mark_failed("Test error")
        assert session.status == ExportStatus.FAILED
        assert session.errors == ["Test error"]

    def test_request_cancel_after_terminal(self):
        session = self._session()
        session.mark_failed("x")
        assert session.request_cancel() is False
        assert not session.cancel_requested

    def test_flags_deduplicated(self):
        session = self._session()
        session.add_flag("跳过图表: A")
        session.add_flag("跳过图表: A")
        assert session.flags == ["跳过图表: A"]
