"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(sample_chart, local_assets):
        assert sample_chart.group_key == "engineering"
"""

from __future__ import annotations

import io
import json
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Generator

import pytest
from PIL import Image

from orgchart_export.config import RuntimeConfig
from orgchart_export.models import (
    CapturedChart,
    ChartDocument,
    ChartSnapshot,
    ContentBounds,
    RasterImage,
    ScaleInfo,
)
from orgchart_export.pipeline import LocalAssetSource


# ============================================================================
# 辅助
# ============================================================================

def png_bytes(width: int = 40, height: int = 30, color: str = "#3366cc", mode: str = "RGB") -> bytes:
    """生成纯色PNG"""
    buf = io.BytesIO()
    Image.new(mode, (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def build_chart_payload(
    chart_id: str,
    name: str | None = None,
    cover_id: str | None = None,
    index: int | None = None,
    created: str | None = None,
    department: str = "",
    node_count: int = 3,
    role: str = "owner",
) -> dict[str, Any]:
    """REST条目格式的图表（根节点 + node_count-1 个子节点）"""
    nodes: list[dict[str, Any]] = [
        {
            "id": f"{chart_id}-n0",
            "parentId": None,
            "members": [
                {"roleLabel": "Director", "entries": [{"name": "Alex Root"}]},
            ],
            "meta": {"department": department or "Engineering"},
        }
    ]
    for i in range(1, node_count):
        nodes.append({
            "id": f"{chart_id}-n{i}",
            "parentId": f"{chart_id}-n0",
            "members": [
                {"roleLabel": "Manager", "entries": [{"name": f"Person {i}"}]},
            ],
        })
    return {
        "chartId": chart_id,
        "chartName": name or f"Chart {chart_id}",
        "departmentTag": department,
        "coverId": cover_id,
        "coverOrderIndex": index,
        "createdAt": created,
        "userRole": role,
        "data": {"nodes": nodes, "layout": "top"},
    }


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """运行期配置（内置默认值）"""
    return RuntimeConfig()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# 数据模型 Fixtures
# ============================================================================

@pytest.fixture
def make_chart() -> Callable[..., ChartDocument]:
    """图表工厂"""

    def _make(chart_id: str = "c1", **kwargs: Any) -> ChartDocument:
        return ChartDocument.from_api(build_chart_payload(chart_id, **kwargs))

    return _make


@pytest.fixture
def sample_chart(make_chart) -> ChartDocument:
    """示例图表（4个节点，engineering 分组）"""
    return make_chart("c1", name="Engineering Org", cover_id="engineering",
                      department="Engineering", node_count=4)


@pytest.fixture
def make_captured(make_chart) -> Callable[..., CapturedChart]:
    """已捕获图表工厂（不经过渲染，快照为小尺寸JPEG）"""

    def _make(chart_id: str = "c1", **kwargs: Any) -> CapturedChart:
        chart = make_chart(chart_id, **kwargs)
        buf = io.BytesIO()
        Image.new("RGB", (120, 80), "#ffffff").save(buf, format="JPEG")
        bounds = ContentBounds(x=0, y=0, width=120, height=80,
                               original_width=2000, original_height=1128)
        snapshot = ChartSnapshot(
            primary=RasterImage(data=buf.getvalue(), format="JPEG", width=120, height=80),
            bounds=bounds,
            scale=ScaleInfo(scale=1.0, final_width=120, final_height=80),
        )
        return CapturedChart(chart=chart, snapshot=snapshot)

    return _make


# ============================================================================
# 资源 Fixtures
# ============================================================================

@pytest.fixture
def assets_dir(temp_dir: Path) -> Path:
    """本地资源目录（模板/封面映射/封面图/样式表）"""
    root = temp_dir / "assets"
    (root / "export" / "covers").mkdir(parents=True)
    (root / "css").mkdir()

    template = {
        "page": {"widthPt": 1191, "heightPt": 842},
        "palette": {"background": "#ffffff", "text": "#1e293b", "footer": "#0066bd"},
        "footer": {"heightPt": 36, "textPt": 10},
        "images": {"captureWidthPx": 2000, "captureHeightPx": 1128},
    }
    (root / "export" / "export-template-config.json").write_text(json.dumps(template), encoding="utf-8")

    mapping = {
        "covers": {
            "corporate": "export/covers/corporate.png",
            "engineering": "export/covers/engineering.png",
        },
        "coverOrder": ["corporate", "engineering"],
        "documentCover": "export/covers/corporate.png",
    }
    (root / "export" / "cover-mapping.json").write_text(json.dumps(mapping), encoding="utf-8")

    (root / "export" / "covers" / "corporate.png").write_bytes(png_bytes(60, 40, "#0066bd"))
    (root / "export" / "covers" / "engineering.png").write_bytes(png_bytes(60, 40, "#10b981"))
    (root / "css" / "styles.css").write_text(
        ".org-chart-node { fill: #ffffff; stroke: var(--border-color); stroke-width: 2; }\n"
        ".toolbar { display: flex; }\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture
def local_assets(assets_dir: Path) -> LocalAssetSource:
    return LocalAssetSource(assets_dir)


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    return png_bytes


@pytest.fixture
def chart_payload() -> Callable[..., dict[str, Any]]:
    """REST条目工厂"""
    return build_chart_payload


# ============================================================================
# 渲染 Fixtures
# ============================================================================

class FakeScheduler:
    """模拟帧调度器（不真实等待，每帧推进固定毫秒）"""

    def __init__(self, frame_ms: float = 16.0) -> None:
        self.frame_ms = frame_ms
        self.clock = 0.0
        self.frames = 0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.clock

    async def next_frame(self) -> None:
        self.frames += 1
        self.clock += self.frame_ms

    async def sleep(self, ms: float) -> None:
        self.sleeps.append(ms)
        self.clock += ms


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def fixed_today() -> datetime:
    return datetime(2024, 3, 15)
