"""
批量导出命令行：拉取当前用户拥有的全部图表并生成一个PDF。

示例：
    python tools/run_bulk_export.py --api http://localhost:7071/api/v1 --token $TOKEN
    python tools/run_bulk_export.py --charts-json dump.json --quality high --on-error abort
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path


def _add_backend_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    backend_root = repo_root / "backend"
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


def _print_progress(session) -> None:
    progress = session.progress
    print(f"[{progress.percent:5.1f}%] {progress.stage}: {progress.message}")


async def _run(args: argparse.Namespace) -> int:
    from orgchart_export.config import configure_logging, get_config, reload_config  # type: ignore
    from orgchart_export.interfaces import OrgExportError  # type: ignore
    from orgchart_export.pipeline import (  # type: ignore
        AlwaysAbort,
        AlwaysContinue,
        ExportExecutor,
        FileDocumentSink,
        HttpAssetSource,
        LocalAssetSource,
        LocalChartSource,
        RestChartSource,
        SessionManager,
    )

    config = reload_config(args.config) if args.config else get_config()
    if args.verbose:
        config.logging.log_level = "DEBUG"
    if args.vector:
        config.pdf.prefer_vector = True
    if args.overview:
        config.pdf.include_overview = True
    configure_logging(config)

    if args.charts_json:
        source = LocalChartSource(args.charts_json, owner_role=config.source.owner_role)
    else:
        headers = {"Authorization": f"Bearer {args.token}"} if args.token else None
        source = RestChartSource(
            args.api or config.source.api_base_url,
            page_size=config.source.page_size,
            include_data=config.source.include_data,
            owner_role=config.source.owner_role,
            headers=headers,
            timeout=config.source.timeout_sec,
        )

    if args.assets_url or config.assets.base_url:
        assets = HttpAssetSource(args.assets_url or config.assets.base_url, timeout=config.source.timeout_sec)
    else:
        assets = LocalAssetSource(args.assets_dir or config.assets.base_dir)

    out_dir = Path(args.out_dir) if args.out_dir else config.output_dir
    policy = AlwaysAbort() if args.on_error == "abort" else AlwaysContinue()
    executor = ExportExecutor(
        chart_source=source,
        assets=assets,
        sink=FileDocumentSink(out_dir),
        config=config,
        policy=policy,
        progress_callback=_print_progress,
    )

    manager = SessionManager(config, persist=args.persist)
    try:
        result = await manager.run(executor, quality=args.quality)
    except OrgExportError as exc:
        print(f"导出失败: {exc}")
        return 1

    print(f"状态: {result.status.value}")
    print(f"图表: {result.charts_included}/{result.total_charts}")
    if result.skipped:
        print(f"跳过: {', '.join(result.skipped)}")
    if result.output_path:
        print(f"输出: {result.output_path}（{result.page_total}页）")
    return 0 if result.succeeded else 2


def main() -> int:
    parser = argparse.ArgumentParser(description="Export all owned org charts into one PDF.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--api", default="", help="REST API 根地址（默认取配置 source.api_base_url）")
    source.add_argument("--charts-json", default="", help="本地图表JSON（列表或 {charts: [...]}）")
    parser.add_argument("--token", default="", help="Bearer token")
    parser.add_argument("--assets-dir", default="", help="本地资源目录（默认取配置 assets.base_dir）")
    parser.add_argument("--assets-url", default="", help="HTTP资源根地址")
    parser.add_argument("--out-dir", default="", help="输出目录（默认取配置 output_dir）")
    parser.add_argument("--config", default="", help="运行期配置YAML")
    parser.add_argument("--quality", choices=["low", "medium", "high"], default=None)
    parser.add_argument("--on-error", choices=["continue", "abort"], default="continue",
                        help="单图渲染失败时的处理方式")
    parser.add_argument("--vector", action="store_true", help="优先矢量快照（需安装 svglib）")
    parser.add_argument("--overview", action="store_true", help="插入总览页")
    parser.add_argument("--persist", action="store_true", help="会话状态写入 storage/sessions")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    _add_backend_to_path()
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logging.getLogger(__name__).warning("已中断")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
