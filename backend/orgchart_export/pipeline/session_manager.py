"""
会话管理器 - 导出会话创建/查询/取消

职责：
1. 创建会话并分配ID（同一时间只允许一个未结束的导出）
2. 协作式取消（仅在图表之间生效）
3. 会话状态持久化（可选，storage/sessions/<id>/session.json）

测试要点：
- test_create_session: 创建会话
- test_second_session_rejected: 进行中再次创建 -> ExportInProgressError
- test_cancel_session: 取消请求
- test_run_releases_slot: 执行结束后可再次导出
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING

from ..config import RuntimeConfig, get_config
from ..interfaces import ExportInProgressError
from ..models import ExportSession, ExportStatus

if TYPE_CHECKING:
    from .executor import ExportExecutor, ExportResult

logger = logging.getLogger(__name__)


class SessionManager:
    """导出会话管理器"""

    def __init__(self, config: RuntimeConfig | None = None, persist: bool = False) -> None:
        self.config = config or get_config()
        self.persist = persist
        self._sessions: dict[str, ExportSession] = {}  # 内存缓存
        self._active: ExportSession | None = None

    @property
    def active_session(self) -> ExportSession | None:
        if self._active is not None and self._active.is_terminal:
            self._active = None
        return self._active

    def create_session(self, quality: str | None = None) -> ExportSession:
        """创建会话（已有未结束的导出时拒绝）"""
        if self.active_session is not None:
            raise ExportInProgressError(
                f"已有导出进行中: {self._active.session_id}"  # type: ignore[union-attr]
            )

        session = ExportSession(
            session_id=str(uuid.uuid4()),
            quality=quality or self.config.quality.default,
        )
        self._sessions[session.session_id] = session
        self._active = session
        self._persist_session(session)
        return session

    async def run(self, executor: ExportExecutor, quality: str | None = None) -> ExportResult:
        """创建会话并执行导出"""
        session = self.create_session(quality)
        try:
            return await executor.execute(session)
        finally:
            if self._active is session:
                self._active = None
            self._persist_session(session)

    def get_session(self, session_id: str) -> ExportSession | None:
        """获取会话"""
        return self._sessions.get(session_id)

    def cancel(self, session_id: str) -> bool:
        """请求取消（当前图表渲染完成后生效）"""
        session = self.get_session(session_id)
        if not session:
            return False
        if session.request_cancel():
            logger.info(f"[{session_id}] 已请求取消")
            return True
        return False

    def list_sessions(
        self,
        status: ExportStatus | None = None,
        limit: int = 100,
    ) -> list[ExportSession]:
        """列出会话"""
        sessions = list(self._sessions.values())

        if status:
            sessions = [s for s in sessions if s.status == status]

        # 按创建时间降序
        sessions.sort(key=lambda s: s.created_at, reverse=True)

        return sessions[:limit]

    def _persist_session(self, session: ExportSession) -> None:
        """持久化会话状态"""
        if not self.persist:
            return
        session_dir = self.config.get_session_dir(session.session_id)
        session_dir.mkdir(parents=True, exist_ok=True)

        session_file = session_dir / "session.json"
        with open(session_file, "w", encoding="utf-8") as f:
            json.dump(session.model_dump(mode="json"), f, ensure_ascii=False, indent=2, default=str)
