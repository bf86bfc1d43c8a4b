"""
模拟自动化后端

在内存元素树上实现 AutomationCapability，用于开发和全部测试。
行为确定，没有时间抖动（注入的超时除外）
"""

import asyncio
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from loguru import logger

from ..errors import BackendError
from ..models import ActionKind, ActionSpec, ElementHandle, ElementSelector, ElementState
from .capability import bool_param, int_param, text_param

CustomHandler = Callable[["SimElement", Mapping[str, str]], None]

# 未指定 amount 时的滚动行数
SCROLL_STEP = 3


class SimElement:
    """模拟 UI 元素"""

    def __init__(
        self,
        name: str = "",
        role: str = "",
        automation_id: str = "",
        value: Optional[str] = None,
        enabled: bool = True,
        visible: bool = True,
        checked: Optional[bool] = None,
        selected: bool = False,
        bounds: Tuple[int, int, int, int] = (0, 0, 800, 600),
        children: Optional[List["SimElement"]] = None,
    ):
        self.name = name
        self.role = role
        self.automation_id = automation_id
        self.value = value
        self.enabled = enabled
        self.visible = visible
        self.checked = checked
        self.selected = selected
        # (x, y, width, height)
        self.bounds = bounds
        self.click_count = 0
        self.window_state = "normal"
        self.keys: List[str] = []
        self.scroll_x = 0
        self.scroll_y = 0
        self.parent: Optional["SimElement"] = None
        self.children: List["SimElement"] = []
        for child in children or []:
            self.add(child)

    def add(self, child: "SimElement") -> "SimElement":
        """添加子元素，返回子元素本身"""
        child.parent = self
        self.children.append(child)
        return child

    def detach(self) -> None:
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def walk(self) -> Iterator["SimElement"]:
        """先序遍历（包含自身）"""
        yield self
        for child in self.children:
            yield from child.walk()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimElement":
        return cls(
            name=str(data.get("name", "")),
            role=str(data.get("role", "")),
            automation_id=str(data.get("automation_id", "")),
            value=data.get("value"),
            enabled=bool(data.get("enabled", True)),
            visible=bool(data.get("visible", True)),
            checked=data.get("checked"),
            selected=bool(data.get("selected", False)),
            bounds=tuple(data.get("bounds") or (0, 0, 800, 600)),
            children=[cls.from_dict(child) for child in data.get("children") or []],
        )

    def __repr__(self) -> str:
        return f"SimElement({self.role or 'element'}[{self.name or self.automation_id}])"


class _InjectedFailure:
    def __init__(self, kind: str, times: Optional[int]):
        self.kind = kind
        self.remaining = times

    def consume(self) -> bool:
        if self.remaining is None:
            return True
        if self.remaining <= 0:
            return False
        self.remaining -= 1
        return True


class SimulatedBackend:
    """
    模拟后端

    - find: 先序遍历整棵树，用 ElementSelector.select 过滤
    - invoke: 修改内存中的元素状态，并记录到 calls
    - 故障注入: inject_failure 让指定元素的 invoke 超时或报错
    """

    name = "simulated"

    def __init__(self, roots: Union[SimElement, List[SimElement], None] = None, hang_seconds: float = 3600.0):
        """
        初始化模拟后端

        Args:
            roots: 顶层元素（通常是窗口）
            hang_seconds: 注入超时时 invoke 阻塞的时长（秒）
        """
        self.desktop = SimElement(name="Desktop", role="desktop")
        if isinstance(roots, SimElement):
            roots = [roots]
        for root in roots or []:
            self.desktop.add(root)

        self.hang_seconds = hang_seconds
        self.focused: Optional[SimElement] = None
        self.calls: List[Tuple[str, str]] = []
        self.queries: List[str] = []
        self._failures: Dict[str, _InjectedFailure] = {}
        self._custom: Dict[str, CustomHandler] = {
            "double_click": self._double_click,
            "toggle": self._toggle,
            "minimize": lambda node, parameters: setattr(node, "window_state", "minimized"),
            "maximize": lambda node, parameters: setattr(node, "window_state", "maximized"),
            "restore": lambda node, parameters: setattr(node, "window_state", "normal"),
            "clear": lambda node, parameters: setattr(node, "value", ""),
            "press_key": lambda node, parameters: node.keys.append(text_param(parameters, "key")),
            "set_checked": lambda node, parameters: setattr(node, "checked", bool_param(parameters, "state")),
            "select": self._select,
            "resize": self._resize,
            "move": self._move,
            "scroll": self._scroll,
        }

    @classmethod
    def from_dict(cls, tree: Union[Mapping[str, Any], List[Mapping[str, Any]]], **kwargs) -> "SimulatedBackend":
        """从字典（或字典列表）构造元素树"""
        if isinstance(tree, Mapping):
            tree = [tree]
        return cls([SimElement.from_dict(node) for node in tree], **kwargs)

    def size(self) -> int:
        return sum(1 for _ in self.desktop.walk()) - 1

    # ========================================
    # 测试辅助
    # ========================================

    def inject_failure(self, target: str, kind: str = "error", times: Optional[int] = None) -> None:
        """
        注入故障

        Args:
            target: 元素名称或自动化 ID
            kind: "timeout"（阻塞 hang_seconds）或 "error"（抛出 BackendError）
            times: 生效次数，None 表示一直生效
        """
        if kind not in ("timeout", "error"):
            raise ValueError(f"Unknown failure kind: {kind}")
        self._failures[target.casefold()] = _InjectedFailure(kind, times)

    def clear_failures(self) -> None:
        self._failures.clear()

    def register_custom(self, name: str, handler: CustomHandler) -> None:
        """注册自定义动作处理函数"""
        self._custom[name] = handler

    def invocations(self, target: Optional[str] = None) -> List[Tuple[str, str]]:
        """已执行的调用（可按元素名过滤）"""
        if target is None:
            return list(self.calls)
        return [call for call in self.calls if call[1].casefold() == target.casefold()]

    # ========================================
    # AutomationCapability
    # ========================================

    async def find(self, selector: ElementSelector) -> List[ElementHandle]:
        self.queries.append(str(selector))
        candidates = [self._handle(node) for node in self.desktop.walk() if node is not self.desktop]
        return selector.select(candidates)

    async def invoke(self, action: ActionSpec, element: ElementHandle, parameters: Mapping[str, str]) -> None:
        node = self._node(element)
        label = node.name or node.automation_id
        self.calls.append((str(action), label))

        await self._apply_failure(node)

        if not node.enabled:
            raise BackendError(f"Element {element.describe()} is disabled")

        if action.kind == ActionKind.CLICK:
            node.click_count += 1
            if node.role.casefold() in ("checkbox", "radio"):
                node.checked = True if node.role.casefold() == "radio" else not bool(node.checked)
        elif action.kind == ActionKind.SET_TEXT:
            if "text" not in parameters:
                raise BackendError("set_text requires a 'text' parameter")
            node.value = parameters["text"]
        elif action.kind == ActionKind.FOCUS:
            self.focused = node
        elif action.kind == ActionKind.CLOSE:
            if self.focused is not None and self._contains(node, self.focused):
                self.focused = None
            node.detach()
        elif action.kind == ActionKind.READ_STATE:
            pass
        elif action.kind == ActionKind.CUSTOM:
            handler = self._custom.get(action.name)
            if handler is None:
                raise BackendError(f"Unsupported custom action: {action.name}")
            handler(node, parameters)
        else:
            raise BackendError(f"Unsupported action: {action}")

        logger.debug(f"[simulated] {action} on {element.describe()}")

    async def read(self, element: ElementHandle) -> ElementState:
        node = self._node(element)
        return ElementState(
            name=node.name,
            automation_id=node.automation_id,
            role=node.role,
            value=node.value,
            enabled=node.enabled,
            focused=node is self.focused,
            visible=node.visible,
            checked=node.checked,
        )

    # ========================================
    # 内部方法
    # ========================================

    def _handle(self, node: SimElement) -> ElementHandle:
        return ElementHandle(
            name=node.name,
            automation_id=node.automation_id,
            role=node.role,
            path=self._path(node),
            native=node,
        )

    def _path(self, node: SimElement) -> str:
        parts = []
        current = node
        while current is not None and current is not self.desktop:
            parts.append(current.name or current.automation_id or current.role)
            current = current.parent
        return "/".join(reversed(parts))

    def _node(self, element: ElementHandle) -> SimElement:
        node = element.native
        if not isinstance(node, SimElement) or not self._contains(self.desktop, node):
            raise BackendError(f"Element {element.describe()} is no longer in the tree")
        return node

    @staticmethod
    def _contains(ancestor: SimElement, node: SimElement) -> bool:
        current: Optional[SimElement] = node
        while current is not None:
            if current is ancestor:
                return True
            current = current.parent
        return False

    async def _apply_failure(self, node: SimElement) -> None:
        failure = self._failures.get(node.name.casefold()) or self._failures.get(node.automation_id.casefold())
        if failure is None or not failure.consume():
            return
        if failure.kind == "timeout":
            await asyncio.sleep(self.hang_seconds)
            return
        raise BackendError(f"Injected failure on {node!r}")

    @staticmethod
    def _double_click(node: SimElement, parameters: Mapping[str, str]) -> None:
        node.click_count += 2

    @staticmethod
    def _toggle(node: SimElement, parameters: Mapping[str, str]) -> None:
        node.checked = not bool(node.checked)

    @staticmethod
    def _select(node: SimElement, parameters: Mapping[str, str]) -> None:
        """选中单选按钮、标签页或列表项，同级同类元素取消选中"""
        if node.parent is not None:
            for sibling in node.parent.children:
                if sibling.role.casefold() == node.role.casefold():
                    sibling.selected = False
        node.selected = True
        if node.role.casefold() == "radio":
            node.checked = True

    @staticmethod
    def _resize(node: SimElement, parameters: Mapping[str, str]) -> None:
        x, y, _, _ = node.bounds
        node.bounds = (x, y, int_param(parameters, "width"), int_param(parameters, "height"))

    @staticmethod
    def _move(node: SimElement, parameters: Mapping[str, str]) -> None:
        _, _, width, height = node.bounds
        node.bounds = (int_param(parameters, "x"), int_param(parameters, "y"), width, height)

    @staticmethod
    def _scroll(node: SimElement, parameters: Mapping[str, str]) -> None:
        amount = int_param(parameters, "amount", default=SCROLL_STEP)
        direction = (parameters.get("direction") or "down").casefold()
        if direction == "down":
            node.scroll_y += amount
        elif direction == "up":
            node.scroll_y -= amount
        elif direction == "right":
            node.scroll_x += amount
        elif direction == "left":
            node.scroll_x -= amount
        else:
            raise BackendError(f"Unknown scroll direction: {direction!r}")
