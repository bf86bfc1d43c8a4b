"""
意图模型

定义意图、动作类型和元素选择器
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from .element import ElementHandle


class ActionKind(str, Enum):
    """动作类型枚举（封闭集合，扩展只能新增成员）"""

    CLICK = "click"  # 点击
    SET_TEXT = "set_text"  # 设置文本
    FOCUS = "focus"  # 设置焦点
    READ_STATE = "read_state"  # 读取状态
    CLOSE = "close"  # 关闭
    CUSTOM = "custom"  # 自定义（由 ActionSpec.name 区分）


# 这些动作要求选择器恰好命中一个元素
UNIQUE_TARGET_ACTIONS = frozenset({ActionKind.CLICK, ActionKind.SET_TEXT, ActionKind.FOCUS})


class ActionSpec(BaseModel):
    """
    动作描述

    kind 为 custom 时必须提供 name，其余类型不允许提供 name
    """

    model_config = ConfigDict(frozen=True)

    kind: ActionKind = Field(..., description="动作类型")
    name: Optional[str] = Field(None, description="自定义动作名称")

    @model_validator(mode="after")
    def _check_name(self) -> "ActionSpec":
        if self.kind == ActionKind.CUSTOM and not self.name:
            raise ValueError("custom action requires a name")
        if self.kind != ActionKind.CUSTOM and self.name:
            raise ValueError(f"action {self.kind.value} does not take a name")
        return self

    @property
    def requires_unique(self) -> bool:
        return self.kind in UNIQUE_TARGET_ACTIONS

    def __str__(self) -> str:
        if self.kind == ActionKind.CUSTOM:
            return f"custom:{self.name}"
        return self.kind.value


class ElementSelector(BaseModel):
    """
    元素选择器

    结构化查询，可以按名称、自动化 ID、角色 + 序号或组合条件定位元素。
    由后端在每次尝试时解析，不跨任务缓存
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Optional[str] = Field(None, description="元素名称（不区分大小写）")
    automation_id: Optional[str] = Field(None, description="自动化 ID（精确匹配）")
    role: Optional[str] = Field(None, description="控件类型（不区分大小写）")
    index: Optional[int] = Field(None, ge=0, description="过滤后取第 N 个匹配（从 0 开始）")
    all_of: Tuple["ElementSelector", ...] = Field(default_factory=tuple, description="组合条件（全部满足）")

    @model_validator(mode="after")
    def _check_criteria(self) -> "ElementSelector":
        if not (self.name or self.automation_id or self.role or self.all_of):
            raise ValueError("selector needs at least one of name, automation_id, role, all_of")
        return self

    def matches(self, element: ElementHandle) -> bool:
        """判断单个元素是否满足除 index 以外的全部条件"""
        if self.name is not None and element.name.casefold() != self.name.casefold():
            return False
        if self.automation_id is not None and element.automation_id != self.automation_id:
            return False
        if self.role is not None and element.role.casefold() != self.role.casefold():
            return False
        return all(sub.matches(element) for sub in self.all_of)

    def select(self, candidates: Sequence[ElementHandle]) -> List[ElementHandle]:
        """
        从候选元素中筛选

        Args:
            candidates: 按树遍历顺序排列的候选元素

        Returns:
            匹配的元素列表（指定 index 时最多一个）
        """
        matched = [element for element in candidates if self.matches(element)]
        if self.index is None:
            return matched
        if self.index < len(matched):
            return [matched[self.index]]
        return []

    def __str__(self) -> str:
        parts = []
        if self.name is not None:
            parts.append(f"name={self.name!r}")
        if self.automation_id is not None:
            parts.append(f"automation_id={self.automation_id!r}")
        if self.role is not None:
            parts.append(f"role={self.role!r}")
        if self.index is not None:
            parts.append(f"index={self.index}")
        for sub in self.all_of:
            parts.append(f"({sub})")
        return "{" + ", ".join(parts) + "}"


class Intent(BaseModel):
    """
    意图

    一条自然语言命令的结构化解释，创建后不可修改
    """

    model_config = ConfigDict(frozen=True)

    action: ActionSpec = Field(..., description="要执行的动作")
    target_selector: ElementSelector = Field(..., description="目标元素选择器")
    parameters: Mapping[str, str] = Field(default_factory=dict, validate_default=True, description="动作参数（只读）")
    locale: str = Field(..., description="语言")
    text: str = Field("", description="规范化后的原始命令")

    @field_validator("parameters", mode="after")
    @classmethod
    def _freeze_parameters(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("parameters")
    def _dump_parameters(self, value: Mapping[str, str]) -> Dict[str, str]:
        return dict(value)

    def __deepcopy__(self, memo: Optional[Dict[int, Any]] = None) -> "Intent":
        # 不可变对象，副本可以直接共享
        return self


if __name__ == "__main__":
    intent = Intent(
        action=ActionSpec(kind=ActionKind.CLICK),
        target_selector=ElementSelector(name="Настройки"),
        locale="ru",
        text="открой настройки",
    )
    print(intent.model_dump_json(indent=2))
