"""
导出会话模型 - 定义导出状态机与生命周期

一次导出调用对应一个会话：开始时创建，成功/取消/失败后释放
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .snapshot import CapturedChart


class ExportStatus(str, Enum):
    """会话状态枚举"""
    IDLE = "idle"
    FETCHING = "fetching"
    RENDERING = "rendering"
    ASSEMBLING = "assembling"
    DOWNLOADING = "downloading"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {ExportStatus.COMPLETE, ExportStatus.CANCELLED, ExportStatus.FAILED}
)

# 合法状态迁移表
_TRANSITIONS: dict[ExportStatus, frozenset[ExportStatus]] = {
    ExportStatus.IDLE: frozenset({ExportStatus.FETCHING, ExportStatus.FAILED}),
    ExportStatus.FETCHING: frozenset(
        {ExportStatus.RENDERING, ExportStatus.CANCELLED, ExportStatus.FAILED}
    ),
    ExportStatus.RENDERING: frozenset(
        {ExportStatus.ASSEMBLING, ExportStatus.CANCELLED, ExportStatus.FAILED}
    ),
    ExportStatus.ASSEMBLING: frozenset({ExportStatus.DOWNLOADING, ExportStatus.FAILED}),
    ExportStatus.DOWNLOADING: frozenset({ExportStatus.COMPLETE, ExportStatus.FAILED}),
    ExportStatus.COMPLETE: frozenset(),
    ExportStatus.CANCELLED: frozenset(),
    ExportStatus.FAILED: frozenset(),
}


class ExportProgress(BaseModel):
    """会话进度"""
    stage: str = "INIT"
    percent: float = 0
    message: str = ""
    current_chart: str | None = None


class ExportSession(BaseModel):
    """导出会话实体"""
    session_id: str = Field(..., description="UUID")
    quality: str = "medium"

    # 状态
    status: ExportStatus = ExportStatus.IDLE
    progress: ExportProgress = Field(default_factory=ExportProgress)
    current_index: int = 0
    total: int = 0
    cancel_requested: bool = False

    # 产物
    captured: list[CapturedChart] = Field(default_factory=list, exclude=True)
    captured_count: int = 0
    skipped: list[str] = Field(default_factory=list, description="继续策略跳过的图表")
    output_path: Path | None = None

    # 结果
    flags: list[str] = Field(default_factory=list, description="告警标记")
    errors: list[str] = Field(default_factory=list, description="错误信息")

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = {"arbitrary_types_allowed": True}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: ExportStatus) -> None:
        """状态迁移（非法迁移抛出ValueError）"""
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(f"非法状态迁移: {self.status.value} -> {status.value}")
        if self.status == ExportStatus.IDLE:
            self.started_at = datetime.now()
        self.status = status
        self.progress.stage = status.value
        if status in TERMINAL_STATUSES:
            self.finished_at = datetime.now()

    def request_cancel(self) -> bool:
        """请求取消（协作式，仅在循环边界生效）"""
        if self.is_terminal:
            return False
        self.cancel_requested = True
        return True

    def add_captured(self, captured: CapturedChart) -> None:
        self.captured.append(captured)
        self.captured_count = len(self.captured)

    def mark_complete(self) -> None:
        """标记为完成"""
        self.transition(ExportStatus.COMPLETE)
        self.progress.percent = 100

    def mark_cancelled(self) -> None:
        """标记为已取消"""
        self.transition(ExportStatus.CANCELLED)

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        if self.status != ExportStatus.FAILED:
            self.transition(ExportStatus.FAILED)
        self.errors.append(error)

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)

    def release(self) -> None:
        """释放会话产物（快照不跨会话保留）"""
        self.captured.clear()
