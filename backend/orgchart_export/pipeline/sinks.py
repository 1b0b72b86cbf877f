"""
文档保存 - 将组装完成的PDF写入输出目录（固定文件名）
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..interfaces import IDocumentSink

if TYPE_CHECKING:
    from ..models import ExportDocument

logger = logging.getLogger(__name__)


class FileDocumentSink(IDocumentSink):
    """文件保存"""

    def __init__(self, output_dir: str | Path, filename: str | None = None) -> None:
        self.output_dir = Path(output_dir)
        self.filename = filename

    async def save(self, document: ExportDocument) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / (self.filename or document.filename)
        path.write_bytes(document.content)
        logger.info(f"PDF已保存: {path}（{document.page_total}页）")
        return path
