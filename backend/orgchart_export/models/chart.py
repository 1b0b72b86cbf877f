"""
图表文档模型 - 单个组织架构图（节点树+元数据）

对应 REST /charts 返回的 chart 结构（includeData=true 时 data 字段合并）
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# 未设置封面的图表归入该哨兵分组
NO_COVER = "no-cover"


class LayoutDirection(str, Enum):
    """布局方向"""
    TOP = "top"
    LEFT = "left"
    RIGHT = "right"
    BOTTOM = "bottom"


class PersonEntry(BaseModel):
    """角色下的人员"""
    name: str = ""

    model_config = ConfigDict(extra="allow")


class RoleGroup(BaseModel):
    """按角色分组的成员"""
    role_label: str = Field("", alias="roleLabel")
    entries: list[PersonEntry] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ChartNode(BaseModel):
    """树节点"""
    id: str
    parent_id: str | None = Field(None, alias="parentId")
    members: list[RoleGroup] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)

    # 旧版单人节点字段
    name: str | None = None
    title: str | None = None
    department: str | None = None

    # 显式展开/折叠覆盖（优先于默认全展开）
    expanded: bool | None = Field(None, alias="_expanded")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("parent_id", mode="before")
    @classmethod
    def _empty_parent(cls, v: Any) -> str | None:
        if v is None or v == "":
            return None
        return str(v)

    @property
    def department_label(self) -> str:
        """节点部门（meta优先）"""
        return str(self.meta.get("department") or self.department or "")

    @property
    def people_count(self) -> int:
        if self.members:
            return sum(len(role.entries) for role in self.members)
        return 1 if self.name else 0


class ViewState(BaseModel):
    """编辑器视图状态（导出时不改变节点展开）"""
    collapsed_nodes: list[str] = Field(default_factory=list, alias="collapsedNodes")
    zoom: float | None = None
    pan: dict[str, float] | None = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ChartDocument(BaseModel):
    """图表文档实体"""
    id: str = Field(..., alias="chartId")
    name: str = Field("", alias="chartName")
    department_tag: str = Field("", alias="departmentTag")
    description: str = ""
    nodes: list[ChartNode] = Field(default_factory=list)
    layout: LayoutDirection = LayoutDirection.TOP
    view_state: ViewState = Field(default_factory=ViewState, alias="viewState")

    # 封面分组
    cover_id: str | None = Field(None, alias="coverId")
    cover_order_index: int | None = Field(None, alias="coverOrderIndex")

    # 归属
    owner_id: str | None = Field(None, alias="ownerId")
    user_role: str | None = Field(None, alias="userRole")

    # 时间戳
    created_at: datetime | None = Field(None, alias="createdAt")
    last_modified: datetime | None = Field(None, alias="lastModified")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("department_tag", "description", "name", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("layout", mode="before")
    @classmethod
    def _default_layout(cls, v: Any) -> Any:
        return v or LayoutDirection.TOP

    @field_validator("view_state", mode="before")
    @classmethod
    def _default_view_state(cls, v: Any) -> Any:
        return v or {}

    @field_validator("cover_id", mode="before")
    @classmethod
    def _empty_cover(cls, v: Any) -> str | None:
        return v or None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> ChartDocument:
        """从REST条目构建（data内字段合并到顶层，顶层优先）"""
        data = payload.get("data") or {}
        merged = {**data, **{k: v for k, v in payload.items() if k != "data"}}
        return cls.model_validate(merged)

    @property
    def group_key(self) -> str:
        """封面分组键"""
        return self.cover_id or NO_COVER

    @property
    def people_count(self) -> int:
        return sum(node.people_count for node in self.nodes)
