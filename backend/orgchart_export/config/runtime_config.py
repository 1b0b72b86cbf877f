"""
运行期配置 - 读取 documents/export_runtime.yaml

职责：
- 加载画布尺寸/渲染时限/质量档位/PDF版式/数据源等运行参数
- 提供环境变量覆盖机制（ORGEXPORT_ 前缀，嵌套用 __）
- 类型安全的配置访问
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class SurfaceConfig(BaseModel):
    """离屏画布尺寸"""

    base_width: int = 2000
    base_height: int = 1128
    max_width: int = 4500
    max_height: int = 3500
    avg_node_height: int = 120
    width_padding: int = 400
    height_padding: int = 300


class RenderConfig(BaseModel):
    """渲染稳定性检测"""

    frame_interval_ms: float = 16.0
    settle_delay_ms: float = 200.0
    stable_frames: int = 2
    # (节点数上限, 时限ms)，按顺序匹配
    timeout_steps: list[tuple[int, int]] = Field(
        default_factory=lambda: [(10, 500), (30, 800), (50, 1200), (100, 1800)]
    )
    timeout_max_ms: int = 2500


class QualityPreset(BaseModel):
    """质量档位"""

    scale: float
    compression: float


class QualityConfig(BaseModel):
    """图像质量"""

    default: str = "medium"
    presets: dict[str, QualityPreset] = Field(
        default_factory=lambda: {
            "low": QualityPreset(scale=1.0, compression=0.7),
            "medium": QualityPreset(scale=1.5, compression=0.8),
            "high": QualityPreset(scale=2.0, compression=0.9),
        }
    )
    preview_width_px: int = 800
    preview_quality: float = 0.85
    max_raster_pixels: int = 40_000_000

    def get_preset(self, name: str | None) -> QualityPreset:
        """未知档位回落到默认档"""
        if name and name in self.presets:
            return self.presets[name]
        return self.presets.get(self.default) or QualityPreset(scale=1.5, compression=0.8)


class FitConfig(BaseModel):
    """内容边界与缩放"""

    content_padding: float = 50.0
    snapshot_fill: float = 0.95
    page_fill: float = 0.98
    fallback_width: float = 2000.0
    fallback_height: float = 1128.0


class PDFConfig(BaseModel):
    """PDF版式（像素/磅换算与页内边距均可调）"""

    prefer_vector: bool = False
    include_overview: bool = False
    output_filename: str = "org-charts.pdf"
    company: str = "RRC"
    company_secondary: str = "COMPANIES"
    title: str = "Organizational Chart"
    classification: str = "CONFIDENTIAL"
    url: str = "www.RRCcompanies.com"
    date_format: str = "%d %b %Y"
    content_insets: dict[str, float] = Field(
        default_factory=lambda: {"left": 60, "right": 60, "top": 130, "bottom": 60}
    )
    title_y: float = 100
    subtitle_y: float = 130
    cover_headline_ratio: float = 0.35


class SourceConfig(BaseModel):
    """图表数据源（REST）"""

    api_base_url: str = "http://localhost:7071/api/v1"
    page_size: int = 50
    include_data: bool = True
    timeout_sec: float = 30.0
    owner_role: str = "owner"


class AssetConfig(BaseModel):
    """静态资源位置"""

    base_url: str | None = None
    base_dir: Path = Path("documents/assets")
    template_path: str = "export/export-template-config.json"
    cover_mapping_path: str = "export/cover-mapping.json"
    stylesheet_path: str = "css/styles.css"
    css_variables: dict[str, str] = Field(
        default_factory=lambda: {
            "--primary-color": "#2563eb",
            "--primary-500": "#0085f2",
            "--primary-700": "#0066bd",
            "--accent-500": "#ff6900",
            "--border-color": "#e2e8f0",
            "--text-primary": "#1e293b",
            "--text-secondary": "#64748b",
            "--radius": "8px",
        }
    )


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False
    log_file: str = "orgchart_export.log"


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 基础路径
    base_dir: Path = Path(".")
    storage_dir: Path = Path("storage")
    output_dir: Path = Path("output")

    # 各子配置
    surface: SurfaceConfig = Field(default_factory=SurfaceConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    fit: FitConfig = Field(default_factory=FitConfig)
    pdf: PDFConfig = Field(default_factory=PDFConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    assets: AssetConfig = Field(default_factory=AssetConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "ORGEXPORT_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            surface=SurfaceConfig(**cls._extract(runtime_opts, "surface")),
            render=RenderConfig(**cls._extract(runtime_opts, "render")),
            quality=QualityConfig(**cls._extract(runtime_opts, "quality")),
            fit=FitConfig(**cls._extract(runtime_opts, "fit")),
            pdf=PDFConfig(**cls._extract(runtime_opts, "pdf")),
            source=SourceConfig(**cls._extract(runtime_opts, "source")),
            assets=AssetConfig(**cls._extract(runtime_opts, "assets")),
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
        )

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置（{default: v} 取 default）"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            else:
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if not self.assets.base_dir.is_absolute():
            self.assets.base_dir = (base_dir / self.assets.base_dir).resolve()

    def get_session_dir(self, session_id: str) -> Path:
        """获取会话记录目录"""
        return self.storage_dir / "sessions" / session_id

    def ensure_dirs(self) -> None:
        """确保必要目录存在"""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        (self.storage_dir / "sessions").mkdir(exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(config: RuntimeConfig) -> None:
    """按配置初始化日志"""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.logging.log_to_file:
        config.storage_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(config.storage_dir / config.logging.log_file, encoding="utf-8")
        )
    logging.basicConfig(
        level=getattr(logging, config.logging.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


# 全局配置实例
_config: RuntimeConfig | None = None

_DEFAULT_PATH = Path("documents/export_runtime.yaml")


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        default_path = _DEFAULT_PATH
        if not default_path.exists():
            fallback_path = Path("config/export_runtime.yaml")
            if fallback_path.exists():
                default_path = fallback_path
        _config = RuntimeConfig.from_yaml(default_path)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or _DEFAULT_PATH
    _config = RuntimeConfig.from_yaml(path)
    return _config
