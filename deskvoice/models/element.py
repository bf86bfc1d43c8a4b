"""
UI 元素模型

后端返回的元素句柄和元素状态
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ElementHandle(BaseModel):
    """
    元素句柄

    由 AutomationCapability.find 返回，只在一次尝试内有效。
    native 保存后端自己的对象（模拟节点或 pywinauto wrapper）
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field("", description="元素名称（可见标题）")
    automation_id: str = Field("", description="自动化 ID")
    role: str = Field("", description="控件类型（button / edit / window ...）")
    path: str = Field("", description="元素在树中的路径，仅用于日志")
    native: Any = Field(None, exclude=True, repr=False, description="后端原生对象")

    def describe(self) -> str:
        label = self.name or self.automation_id or "?"
        return f"{self.role or 'element'}[{label}]"


class ElementState(BaseModel):
    """元素当前状态（read 的返回值）"""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    automation_id: str = ""
    role: str = ""
    value: Optional[str] = None
    enabled: bool = True
    focused: bool = False
    visible: bool = True
    checked: Optional[bool] = None
