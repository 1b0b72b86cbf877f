"""
模板加载器单元测试
"""

from __future__ import annotations

import asyncio

import pytest

from orgchart_export.config import CoverMapping, TemplateConfig, TemplateLoader
from orgchart_export.interfaces import AssetLoadError
from orgchart_export.pipeline import LocalAssetSource


class CountingAssets(LocalAssetSource):
    """记录请求次数的本地资源"""

    def __init__(self, base_dir) -> None:
        super().__init__(base_dir)
        self.requests: list[str] = []

    async def get_bytes(self, path: str) -> bytes:
        self.requests.append(path)
        return await super().get_bytes(path)


class TestTemplateConfig:
    """模板模型测试"""

    def test_defaults(self):
        template = TemplateConfig()
        assert template.page.width_pt == 1191
        assert template.page.height_pt == 842
        assert template.footer.height_pt == 36
        assert template.heading_family == "Helvetica"

    def test_camel_case_fields(self):
        template = TemplateConfig.model_validate({
            "page": {"widthPt": 800, "marginsPt": {"left": 20}},
            "fonts": {"primary": {"family": "Inter", "scalePt": {"h1": 28}},
                      "heading": {"family": "Manrope"}},
            "images": {"captureWidthPx": 2400},
        })
        assert template.page.width_pt == 800
        assert template.page.margins_pt.left == 20
        assert template.fonts.primary.scale_pt.h1 == 28
        assert template.heading_family == "Manrope"
        assert template.images.capture_width_px == 2400


class TestCoverMapping:
    """封面映射测试"""

    def test_image_for_with_fallback(self):
        mapping = CoverMapping(covers={"eng": "eng.png"}, fallback="default.png")
        assert mapping.image_for("eng") == "eng.png"
        assert mapping.image_for("ops") == "default.png"

    def test_document_cover_defaults_to_fallback(self):
        assert CoverMapping(fallback="default.png").document_cover_image == "default.png"
        assert CoverMapping(documentCover="doc.png").document_cover_image == "doc.png"

    def test_cover_images_list(self):
        """列表写法折叠为映射与顺序"""
        mapping = CoverMapping.model_validate({
            "coverImages": [
                {"id": "ops", "label": "Operations", "path": "ops.png"},
                {"id": "eng", "label": "Engineering", "image": "eng.png"},
                {"label": "no id"},
            ],
        })
        assert mapping.covers == {"ops": "ops.png", "eng": "eng.png"}
        assert mapping.cover_order == ["ops", "eng"]


class TestTemplateLoader:
    """加载与缓存测试"""

    def test_load_from_assets(self, local_assets):
        loader = TemplateLoader(local_assets)
        template = asyncio.run(loader.load_template())
        mapping = asyncio.run(loader.load_cover_mapping())
        assert template.images.capture_width_px == 2000
        assert mapping.cover_order == ["corporate", "engineering"]
        assert mapping.document_cover_image == "export/covers/corporate.png"

    def test_template_cached_per_session(self, assets_dir):
        """同一加载器只请求一次，clear() 后重新请求"""
        assets = CountingAssets(assets_dir)
        loader = TemplateLoader(assets)

        async def run():
            await loader.load_template()
            await loader.load_template()
            await loader.load_cover_mapping()
            await loader.load_cover_mapping()

        asyncio.run(run())
        assert len(assets.requests) == 2
        loader.clear()
        asyncio.run(loader.load_template())
        assert len(assets.requests) == 3

    def test_missing_cover_mapping_degrades(self, temp_dir):
        """映射缺失时全部分组使用兜底图片"""
        loader = TemplateLoader(LocalAssetSource(temp_dir), fallback_image="fallback.png")
        mapping = asyncio.run(loader.load_cover_mapping())
        assert mapping.image_for("anything") == "fallback.png"
        assert mapping.cover_order == []

    def test_missing_template_uses_defaults(self, temp_dir):
        template = asyncio.run(TemplateLoader(LocalAssetSource(temp_dir)).load_template())
        assert template == TemplateConfig()

    def test_invalid_json_degrades(self, temp_dir):
        (temp_dir / "export").mkdir()
        (temp_dir / "export" / "cover-mapping.json").write_text("{not json", encoding="utf-8")
        mapping = asyncio.run(TemplateLoader(LocalAssetSource(temp_dir)).load_cover_mapping())
        assert mapping.covers == {}

    def test_invalid_template_schema_uses_defaults(self, temp_dir):
        """模板字段类型错误时回落默认模板"""
        (temp_dir / "export").mkdir()
        (temp_dir / "export" / "export-template-config.json").write_text(
            '{"page": {"widthPt": "A4"}}', encoding="utf-8"
        )
        template = asyncio.run(TemplateLoader(LocalAssetSource(temp_dir)).load_template())
        assert template == TemplateConfig()

    def test_invalid_mapping_schema_degrades(self, temp_dir):
        """映射字段类型错误时全部分组使用兜底图片"""
        (temp_dir / "export").mkdir()
        (temp_dir / "export" / "cover-mapping.json").write_text(
            '{"covers": ["eng.png"], "coverImages": [1, {"id": "ops"}]}', encoding="utf-8"
        )
        loader = TemplateLoader(LocalAssetSource(temp_dir), fallback_image="fallback.png")
        mapping = asyncio.run(loader.load_cover_mapping())
        assert mapping.covers == {}
        assert mapping.image_for("eng") == "fallback.png"

    def test_cover_images_skips_malformed_entries(self):
        mapping = CoverMapping.model_validate(
            {"coverImages": ["bad", {"label": "no id"}, {"id": "eng", "path": "eng.png"}]}
        )
        assert mapping.covers == {"eng": "eng.png"}
        assert mapping.cover_order == ["eng"]

    def test_non_utf8_text_raises_asset_error(self, temp_dir):
        (temp_dir / "styles.css").write_bytes(b".node { color: red; }\xff")
        with pytest.raises(AssetLoadError):
            asyncio.run(LocalAssetSource(temp_dir).get_text("styles.css"))
