"""
模板加载器 - 读取 export-template-config.json 与 cover-mapping.json

职责：
- 解析页面几何/字体/配色/页脚/Logo等模板描述并提供类型安全访问
- 解析封面映射（coverId -> 图片、分组顺序、兜底图片、文档封面）
- 会话内缓存加载结果（同一会话只请求一次）

使用方式：
    loader = TemplateLoader(asset_source)
    template = await loader.load_template()
    mapping = await loader.load_cover_mapping()
    image = mapping.image_for("eng")

测试要点：
- test_template_cached_per_session: 同一加载器只请求一次
- test_missing_cover_mapping_degrades: 映射缺失时全部分组使用兜底图片
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..interfaces import AssetLoadError

if TYPE_CHECKING:
    from ..interfaces import IAssetSource

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = "export/export-template-config.json"
DEFAULT_COVER_MAPPING_PATH = "export/cover-mapping.json"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Margins(_CamelModel):
    """页边距（pt）"""
    top: float = 40
    right: float = 40
    bottom: float = 40
    left: float = 60


class ContentZone(_CamelModel):
    y_pt: float = Field(160, alias="yPt")


class PageZones(_CamelModel):
    content: ContentZone = Field(default_factory=ContentZone)


class PageGeometry(_CamelModel):
    """页面几何（pt）"""
    width_pt: float = Field(1191, alias="widthPt")
    height_pt: float = Field(842, alias="heightPt")
    margins_pt: Margins = Field(default_factory=Margins, alias="marginsPt")
    zones: PageZones = Field(default_factory=PageZones)


class FontFiles(_CamelModel):
    regular: str | None = None
    semibold: str | None = None


class FontScale(_CamelModel):
    """字号表（pt）"""
    display: float = 96
    h1: float = 32
    h2: float = 20
    body: float = 14
    body_small: float = Field(12, alias="bodySmall")


class FontSpec(_CamelModel):
    family: str = "Helvetica"
    files: FontFiles = Field(default_factory=FontFiles)
    scale_pt: FontScale = Field(default_factory=FontScale, alias="scalePt")


class FontSet(_CamelModel):
    primary: FontSpec = Field(default_factory=FontSpec)
    heading: FontSpec | None = None


class Palette(_CamelModel):
    """配色（#RRGGBB）"""
    background: str = "#ffffff"
    text: str = "#1e293b"
    footer: str = "#0066bd"
    accent: str = "#ff6900"


class FooterSpec(_CamelModel):
    height_pt: float = Field(36, alias="heightPt")
    text_pt: float = Field(10, alias="textPt")
    alignment: str = "center"


class PointXY(_CamelModel):
    x: float = 0
    y: float = 0


class SizePt(_CamelModel):
    width: float = 0
    height: float = 0


class LogoSpec(_CamelModel):
    path: str | None = None
    position_pt: PointXY = Field(default_factory=PointXY, alias="positionPt")
    size_pt: SizePt = Field(default_factory=SizePt, alias="sizePt")


class ImageSpec(_CamelModel):
    """离屏捕获尺寸（px）"""
    capture_width_px: int | None = Field(None, alias="captureWidthPx")
    capture_height_px: int | None = Field(None, alias="captureHeightPx")
    preview_width_px: int | None = Field(None, alias="previewWidthPx")


class TemplateConfig(_CamelModel):
    """导出模板（export-template-config.json 的结构化表示）"""
    page: PageGeometry = Field(default_factory=PageGeometry)
    fonts: FontSet = Field(default_factory=FontSet)
    palette: Palette = Field(default_factory=Palette)
    footer: FooterSpec = Field(default_factory=FooterSpec)
    logo: LogoSpec | None = None
    images: ImageSpec = Field(default_factory=ImageSpec)
    overview_columns: int = Field(3, alias="overviewColumns")

    @property
    def heading_family(self) -> str:
        if self.fonts.heading is not None:
            return self.fonts.heading.family
        return self.fonts.primary.family


class CoverMapping(_CamelModel):
    """封面映射（cover-mapping.json 的结构化表示）"""
    covers: dict[str, str] = Field(default_factory=dict)
    cover_order: list[str] = Field(default_factory=list, alias="coverOrder")
    fallback: str | None = None
    document_cover: str | None = Field(None, alias="documentCover")

    @model_validator(mode="before")
    @classmethod
    def _fold_cover_images(cls, data: Any) -> Any:
        """兼容列表写法 coverImages: [{id, label, path}]"""
        if not isinstance(data, dict) or "coverImages" not in data:
            return data
        raw_covers = data.get("covers") or {}
        raw_order = data.get("coverOrder") or []
        if not isinstance(raw_covers, dict) or not isinstance(raw_order, list):
            # 类型错误交给字段校验报告
            return data
        data = dict(data)
        covers = dict(raw_covers)
        order = list(raw_order)
        entries = data.pop("coverImages") or []
        for entry in entries if isinstance(entries, list) else []:
            if not isinstance(entry, dict) or not entry.get("id"):
                continue
            cover_id = entry["id"]
            image = entry.get("path") or entry.get("image")
            if image:
                covers.setdefault(cover_id, image)
            if "coverOrder" not in data and cover_id not in order:
                order.append(cover_id)
        data["covers"] = covers
        data["coverOrder"] = order
        return data

    def image_for(self, cover_id: str) -> str | None:
        """分组封面图片（未映射时使用兜底图片）"""
        return self.covers.get(cover_id) or self.fallback

    @property
    def document_cover_image(self) -> str | None:
        """文档封面图片（未配置时使用兜底图片）"""
        return self.document_cover or self.fallback


class TemplateLoader:
    """模板加载器（会话级缓存）"""

    def __init__(
        self,
        assets: IAssetSource,
        template_path: str = DEFAULT_TEMPLATE_PATH,
        cover_mapping_path: str = DEFAULT_COVER_MAPPING_PATH,
        fallback_image: str | None = None,
    ) -> None:
        self.assets = assets
        self.template_path = template_path
        self.cover_mapping_path = cover_mapping_path
        self.fallback_image = fallback_image
        self._template: TemplateConfig | None = None
        self._mapping: CoverMapping | None = None

    async def load_template(self) -> TemplateConfig:
        """加载模板（失败时使用内置默认值）"""
        if self._template is None:
            try:
                raw = await self.assets.get_json(self.template_path)
                self._template = TemplateConfig.model_validate(raw or {})
            except (AssetLoadError, ValidationError) as e:
                logger.warning(f"模板配置加载失败，使用默认模板: {e}")
                self._template = TemplateConfig()
        return self._template

    async def load_cover_mapping(self) -> CoverMapping:
        """加载封面映射（缺失时所有分组使用兜底图片）"""
        if self._mapping is None:
            try:
                raw = await self.assets.get_json(self.cover_mapping_path)
                self._mapping = CoverMapping.model_validate(raw or {})
            except (AssetLoadError, ValidationError) as e:
                logger.warning(f"封面映射加载失败，全部分组使用兜底图片: {e}")
                self._mapping = CoverMapping(fallback=self.fallback_image)
        return self._mapping

    def clear(self) -> None:
        """清除缓存"""
        self._template = None
        self._mapping = None
