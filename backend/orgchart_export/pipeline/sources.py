"""
数据源 - 图表集合（REST分页/本地JSON）与静态资源（HTTP/本地目录）

职责：
1. RestChartSource: GET /charts?limit&offset&includeData 分页直至 hasMore=false，仅保留 owner
2. LocalChartSource: 读取导出的JSON（列表或 {charts: [...]}）
3. HttpAssetSource / LocalAssetSource: 模板/封面映射/图片/字体/样式表

依赖：
- httpx: 异步HTTP客户端

测试要点：
- test_rest_source_pages_until_exhausted: 分页合并
- test_rest_source_filters_owner: 仅保留 userRole == owner
- test_rest_source_http_error: HTTP错误转换为 FetchError
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

import httpx
from pydantic import ValidationError

from ..interfaces import AssetLoadError, FetchError, IAssetSource, IChartSource
from ..models import ChartDocument

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _parse_charts(
    entries: list[dict[str, Any]],
    owner_role: str | None,
    require_role: bool = True,
) -> list[ChartDocument]:
    """条目 -> ChartDocument（深拷贝；无效条目跳过）"""
    charts: list[ChartDocument] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        role = entry.get("userRole")
        if owner_role is not None and role != owner_role and (require_role or role is not None):
            continue
        try:
            charts.append(ChartDocument.from_api(copy.deepcopy(entry)))
        except ValidationError as e:
            logger.warning(f"跳过无效图表条目 {entry.get('id') or entry.get('chartId')}: {e}")
    return charts


class RestChartSource(IChartSource):
    """REST图表数据源"""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        page_size: int = 50,
        include_data: bool = True,
        owner_role: str = "owner",
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self.include_data = include_data
        self.owner_role = owner_role
        self.headers = headers or {}
        self.timeout = timeout

    async def list_owned_charts(self) -> list[ChartDocument]:
        if self.client is not None:
            return await self._fetch_all(self.client)
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            return await self._fetch_all(client)

    async def _fetch_all(self, client: httpx.AsyncClient) -> list[ChartDocument]:
        charts: list[ChartDocument] = []
        offset = 0
        while True:
            payload = await self._fetch_page(client, offset)
            entries = payload.get("charts") or []
            charts.extend(_parse_charts(entries, self.owner_role))

            pagination = payload.get("pagination") or {}
            if not pagination.get("hasMore") or not entries:
                break
            offset += int(pagination.get("limit") or len(entries))

        logger.info(f"获取图表完成: {len(charts)} 个（owner）")
        return charts

    async def _fetch_page(self, client: httpx.AsyncClient, offset: int) -> dict[str, Any]:
        params = {
            "limit": self.page_size,
            "offset": offset,
            "includeData": str(self.include_data).lower(),
        }
        try:
            response = await client.get(f"{self.base_url}/charts", params=params, headers=self.headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise FetchError(f"获取图表失败: {e}") from e
        except ValueError as e:
            raise FetchError(f"图表响应解析失败: {e}") from e

        if not isinstance(payload, dict):
            raise FetchError("图表响应格式错误")
        return payload


class LocalChartSource(IChartSource):
    """本地JSON图表数据源（列表或 {charts: [...]}）"""

    def __init__(self, path: str | Path, owner_role: str | None = "owner") -> None:
        self.path = Path(path)
        self.owner_role = owner_role

    async def list_owned_charts(self) -> list[ChartDocument]:
        if not self.path.exists():
            raise FetchError(f"图表文件不存在: {self.path}")
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise FetchError(f"图表文件读取失败: {e}") from e

        entries = data.get("charts", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise FetchError("图表文件格式错误")
        return _parse_charts(entries, self.owner_role, require_role=False)


class HttpAssetSource(IAssetSource):
    """HTTP静态资源"""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.client = client
        self.timeout = timeout

    async def get_bytes(self, path: str) -> bytes:
        url = urljoin(self.base_url, path)
        try:
            if self.client is not None:
                response = await self.client.get(url)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise AssetLoadError(f"资源加载失败: {url}: {e}") from e
        return response.content


class LocalAssetSource(IAssetSource):
    """本地目录静态资源"""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    async def get_bytes(self, path: str) -> bytes:
        target = Path(path)
        if not target.is_absolute():
            target = self.base_dir / path.lstrip("/")
        if not target.is_file():
            raise AssetLoadError(f"资源不存在: {target}")
        try:
            return target.read_bytes()
        except OSError as e:
            raise AssetLoadError(f"资源读取失败: {target}: {e}") from e
