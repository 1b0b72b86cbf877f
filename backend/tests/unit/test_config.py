"""
配置加载单元测试
"""

import logging
from pathlib import Path

import pytest

from orgchart_export.config import RuntimeConfig, configure_logging, reload_config

RUNTIME_YAML = """
runtime_options:
  surface:
    base_width: {default: 2400, desc: "基础宽度"}
    max_height: {default: 3000}
  render:
    timeout_steps:
      default: [[5, 300], [50, 900]]
    timeout_max_ms: {default: 1500}
  quality:
    default: {default: high}
    presets:
      high: {scale: 3.0, compression: 0.95}
  pdf:
    include_overview: {default: true}
    content_insets:
      default: {left: 40, right: 40, top: 120, bottom: 50}
  assets:
    base_dir: {default: "assets"}
"""


class TestRuntimeConfig:
    """运行期配置测试"""

    def test_default_config(self, runtime_config: RuntimeConfig):
        """测试默认配置"""
        assert runtime_config.surface.base_width == 2000
        assert runtime_config.surface.max_width == 4500
        assert runtime_config.render.timeout_max_ms == 2500
        assert runtime_config.quality.default == "medium"
        assert runtime_config.pdf.output_filename == "org-charts.pdf"
        assert runtime_config.source.owner_role == "owner"

    def test_quality_presets(self, runtime_config: RuntimeConfig):
        """未知档位回落到默认档"""
        assert runtime_config.quality.get_preset("low").scale == 1.0
        assert runtime_config.quality.get_preset("high").compression == 0.9
        assert runtime_config.quality.get_preset("ultra") == runtime_config.quality.get_preset("medium")

    def test_from_yaml(self, temp_dir: Path):
        """runtime_options 展平 default 值"""
        path = temp_dir / "export_runtime.yaml"
        path.write_text(RUNTIME_YAML, encoding="utf-8")
        config = RuntimeConfig.from_yaml(path)

        assert config.surface.base_width == 2400
        assert config.surface.base_height == 1128
        assert config.surface.max_height == 3000
        assert config.render.timeout_steps == [(5, 300), (50, 900)]
        assert config.quality.default == "high"
        assert config.quality.get_preset(None).scale == 3.0
        assert config.pdf.include_overview is True
        assert config.pdf.content_insets["top"] == 120
        assert config.assets.base_dir == (temp_dir / "assets").resolve()

    def test_missing_yaml_uses_defaults(self, temp_dir: Path):
        config = RuntimeConfig.from_yaml(temp_dir / "missing.yaml")
        assert config.surface.base_width == 2000

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        """环境变量覆盖（嵌套用 __）"""
        monkeypatch.setenv("ORGEXPORT_QUALITY__DEFAULT", "high")
        monkeypatch.setenv("ORGEXPORT_OUTPUT_DIR", "/tmp/exports")
        config = RuntimeConfig()
        assert config.quality.default == "high"
        assert config.output_dir == Path("/tmp/exports")

    def test_reload_config(self, temp_dir: Path):
        path = temp_dir / "export_runtime.yaml"
        path.write_text(RUNTIME_YAML, encoding="utf-8")
        assert reload_config(path).surface.base_width == 2400

    def test_get_session_dir(self, runtime_config: RuntimeConfig):
        """测试获取会话目录"""
        session_dir = runtime_config.get_session_dir("test-session-id")
        assert "test-session-id" in str(session_dir)
        assert session_dir.parent.name == "sessions"

    def test_configure_logging(self, runtime_config: RuntimeConfig, temp_dir: Path):
        runtime_config.logging.log_level = "DEBUG"
        runtime_config.logging.log_to_file = True
        runtime_config.storage_dir = temp_dir
        configure_logging(runtime_config)
        try:
            root = logging.getLogger()
            assert root.level == logging.DEBUG
            logging.getLogger("orgchart_export.test").info("hello")
            for handler in root.handlers:
                handler.flush()
            assert (temp_dir / runtime_config.logging.log_file).exists()
        finally:
            for handler in list(logging.getLogger().handlers):
                if isinstance(handler, logging.FileHandler):
                    handler.close()
                    logging.getLogger().removeHandler(handler)
            logging.getLogger().setLevel(logging.WARNING)
