"""
导出执行器 - 编排 获取 -> 渲染 -> 组装 -> 保存 全流程

职责：
1. 按状态机顺序执行各阶段（idle -> fetching -> rendering -> assembling -> downloading -> complete）
2. 图表严格逐个渲染（限制离屏画布峰值内存），每个图表开始前检查取消请求
3. 单图失败交给调用方提供的继续策略（继续跳过/中止整个导出），策略结果需await
4. 更新会话进度并回调
5. 任何退出路径都释放会话产物

测试要点：
- test_execute_full_export: 完整导出
- test_continue_after_render_failure: 5个图表第3个失败且继续 -> 4个图表页
- test_abort_after_render_failure: 中止 -> failed
- test_cancel_between_charts: 取消 -> cancelled
- test_no_charts_fails: 无图表 -> failed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from ..config import RuntimeConfig, TemplateLoader, get_config
from ..doc_gen import PDFAssembler
from ..interfaces import (
    AssemblyError,
    AssetLoadError,
    Continuation,
    ExportCancelled,
    FetchError,
    NoChartsError,
    RenderError,
)
from ..layout import NODE_STYLE_CSS
from ..models import CapturedChart, ExportStatus
from ..render import OffscreenRenderer, resolve_variables
from . import stages

if TYPE_CHECKING:
    from ..interfaces import IAssetSource, IChartSource, IContinuationPolicy, IDocumentSink
    from ..models import ChartDocument, ExportDocument, ExportSession

logger = logging.getLogger(__name__)

ProgressCallback = Callable[["ExportSession"], None]


class AlwaysContinue:
    """继续策略：跳过失败图表"""

    async def decide(self, error: Exception, chart_name: str) -> Continuation:
        return Continuation.CONTINUE


class AlwaysAbort:
    """继续策略：中止整个导出"""

    async def decide(self, error: Exception, chart_name: str) -> Continuation:
        return Continuation.ABORT


@dataclass
class ExportResult:
    """导出结果（最终通知）"""
    session_id: str
    status: ExportStatus
    charts_included: int
    total_charts: int
    skipped: list[str] = field(default_factory=list)
    output_path: Path | None = None
    page_total: int = 0
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == ExportStatus.COMPLETE


class ExportExecutor:
    """导出执行器"""

    def __init__(
        self,
        chart_source: IChartSource,
        assets: IAssetSource,
        sink: IDocumentSink,
        config: RuntimeConfig | None = None,
        policy: IContinuationPolicy | None = None,
        renderer: OffscreenRenderer | None = None,
        loader: TemplateLoader | None = None,
        assembler: PDFAssembler | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.config = config or get_config()
        self.chart_source = chart_source
        self.assets = assets
        self.sink = sink
        self.policy = policy or AlwaysContinue()
        self.renderer = renderer or OffscreenRenderer(self.config)
        self.loader = loader or TemplateLoader(
            assets,
            template_path=self.config.assets.template_path,
            cover_mapping_path=self.config.assets.cover_mapping_path,
        )
        self.assembler = assembler or PDFAssembler(
            self.loader, assets, self.config.pdf, page_fill=self.config.fit.page_fill
        )
        self.progress_callback = progress_callback

    async def execute(self, session: ExportSession) -> ExportResult:
        """执行导出（致命错误标记失败后重新抛出）"""
        logger.info(f"[{session.session_id}] 导出开始（质量={session.quality}）")
        page_total = 0
        try:
            charts = await self._stage_fetch(session)
            await self._stage_render(session, charts)
            document = await self._stage_assemble(session)
            page_total = document.page_total
            await self._stage_download(session, document)

            session.mark_complete()
            message = f"Exported {session.captured_count} of {session.total} charts"
            self._update_progress(session, stages.COMPLETE, message=message)
            logger.info(f"[{session.session_id}] 导出完成: {message}")

        except ExportCancelled:
            session.mark_cancelled()
            message = f"Export cancelled after {session.captured_count} of {session.total} charts"
            self._update_progress(session, None, message=message)
            logger.info(f"[{session.session_id}] 导出已取消")

        except Exception as e:
            logger.exception(f"导出失败: {session.session_id}")
            session.mark_failed(str(e))
            self._update_progress(session, None, message=f"Export failed: {e}")
            raise

        finally:
            captured = session.captured_count
            session.release()
            self.loader.clear()

        return ExportResult(
            session_id=session.session_id,
            status=session.status,
            charts_included=captured if session.status == ExportStatus.COMPLETE else 0,
            total_charts=session.total,
            skipped=list(session.skipped),
            output_path=session.output_path,
            page_total=page_total,
            message=session.progress.message,
        )

    # ------------------------------------------------------------------
    # 各阶段
    # ------------------------------------------------------------------

    async def _stage_fetch(self, session: ExportSession) -> list[ChartDocument]:
        """获取图表集合（深拷贝，导出期间不可变）"""
        session.transition(ExportStatus.FETCHING)
        self._update_progress(session, stages.FETCHING)
        try:
            charts = await self.chart_source.list_owned_charts()
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"获取图表失败: {e}") from e

        if not charts:
            raise NoChartsError("没有可导出的图表")
        session.total = len(charts)
        logger.info(f"[{session.session_id}] 获取图表 {len(charts)} 个")
        if session.cancel_requested:
            raise ExportCancelled("用户取消（获取阶段）")
        return [chart.model_copy(deep=True) for chart in charts]

    async def _stage_render(self, session: ExportSession, charts: list[ChartDocument]) -> None:
        """逐个渲染（单图失败交给继续策略）"""
        session.transition(ExportStatus.RENDERING)
        stylesheet = await self._load_stylesheet()
        template = await self.loader.load_template()
        base_size = None
        if template.images.capture_width_px and template.images.capture_height_px:
            base_size = (template.images.capture_width_px, template.images.capture_height_px)
        preset = self.config.quality.get_preset(session.quality)
        total = len(charts)

        for index, chart in enumerate(charts):
            if session.cancel_requested:
                raise ExportCancelled(f"用户取消（已完成 {index}/{total}）")

            session.current_index = index + 1
            self._update_progress(
                session,
                stages.RENDERING,
                done=index,
                total=total,
                message=f"Rendering {chart.name} ({index + 1}/{total})",
                current_chart=chart.name,
            )
            try:
                snapshot = await self.renderer.capture(chart, preset, stylesheet, base_size)
            except RenderError as e:
                logger.warning(f"[{session.session_id}] 图表渲染失败 {chart.name}: {e}")
                decision = await self.policy.decide(e, chart.name)
                if decision == Continuation.ABORT:
                    raise RenderError(f"图表 {chart.name} 渲染失败，导出中止: {e}") from e
                session.skipped.append(chart.name)
                session.add_flag(f"跳过图表: {chart.name}")
                continue

            session.add_captured(CapturedChart(chart=chart, snapshot=snapshot))

        self._update_progress(session, stages.RENDERING, done=total, total=total)

    async def _stage_assemble(self, session: ExportSession) -> ExportDocument:
        session.transition(ExportStatus.ASSEMBLING)
        self._update_progress(session, stages.ASSEMBLING)
        if not session.captured:
            raise AssemblyError("没有成功渲染的图表")
        try:
            return await self.assembler.assemble(session.captured)
        except AssemblyError:
            raise
        except Exception as e:
            raise AssemblyError(f"PDF组装失败: {e}") from e

    async def _stage_download(self, session: ExportSession, document: ExportDocument) -> None:
        session.transition(ExportStatus.DOWNLOADING)
        self._update_progress(session, stages.DOWNLOADING)
        session.output_path = await self.sink.save(document)

    # ------------------------------------------------------------------

    async def _load_stylesheet(self) -> str:
        """加载样式表并解析CSS变量（缺失时使用内置节点样式）"""
        try:
            css = await self.assets.get_text(self.config.assets.stylesheet_path)
        except AssetLoadError as e:
            logger.warning(f"样式表加载失败，使用内置节点样式: {e}")
            css = NODE_STYLE_CSS
        return resolve_variables(css, self.config.assets.css_variables)

    def _update_progress(
        self,
        session: ExportSession,
        stage: stages.ExportStage | None,
        *,
        done: int = 0,
        total: int = 0,
        message: str | None = None,
        current_chart: str | None = None,
    ) -> None:
        if stage is not None:
            session.progress.percent = stage.progress_at(done, total)
            session.progress.message = message or stage.message
        elif message is not None:
            session.progress.message = message
        if current_chart is not None:
            session.progress.current_chart = current_chart
        if self.progress_callback is not None:
            self.progress_callback(session)
