"""
Windows UI Automation 后端

基于 pywinauto (UIA) 的实时元素查询和操作。
pywinauto 的调用都是同步的，统一放到线程池中执行
"""

import asyncio
from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger
from pywinauto import Desktop

from ..errors import BackendError
from ..models import ActionKind, ActionSpec, ElementHandle, ElementSelector, ElementState
from .capability import bool_param, int_param, text_param

# UIA ScrollAmount: 1 = SmallDecrement, 2 = NoAmount, 4 = SmallIncrement
SCROLL_ARGS = {
    "down": (2, 4),
    "up": (2, 1),
    "right": (4, 2),
    "left": (1, 2),
}


def _set_checked(wrapper: Any, parameters: Mapping[str, str]) -> None:
    wanted = bool_param(parameters, "state")
    if (wrapper.get_toggle_state() == 1) != wanted:
        wrapper.toggle()


def _press_key(wrapper: Any, parameters: Mapping[str, str]) -> None:
    key = text_param(parameters, "key")
    # "enter" -> "{ENTER}"，单个字符原样输入
    if len(key) > 1 and not key.startswith("{"):
        key = "{" + key.upper() + "}"
    wrapper.set_focus()
    wrapper.type_keys(key)


def _resize(wrapper: Any, parameters: Mapping[str, str]) -> None:
    wrapper.iface_transform.Resize(int_param(parameters, "width"), int_param(parameters, "height"))


def _move(wrapper: Any, parameters: Mapping[str, str]) -> None:
    wrapper.iface_transform.Move(int_param(parameters, "x"), int_param(parameters, "y"))


def _scroll(wrapper: Any, parameters: Mapping[str, str]) -> None:
    direction = (parameters.get("direction") or "down").casefold()
    if direction not in SCROLL_ARGS:
        raise BackendError(f"Unknown scroll direction: {direction!r}")
    horizontal, vertical = SCROLL_ARGS[direction]
    for _ in range(int_param(parameters, "amount", default=3)):
        wrapper.iface_scroll.Scroll(horizontal, vertical)


# 自定义动作名 -> 处理函数 (wrapper, parameters)
CUSTOM_ACTIONS: Dict[str, Callable[[Any, Mapping[str, str]], None]] = {
    "double_click": lambda wrapper, parameters: wrapper.double_click_input(),
    "minimize": lambda wrapper, parameters: wrapper.minimize(),
    "maximize": lambda wrapper, parameters: wrapper.maximize(),
    "restore": lambda wrapper, parameters: wrapper.restore(),
    "toggle": lambda wrapper, parameters: wrapper.toggle(),
    "expand": lambda wrapper, parameters: wrapper.expand(),
    "collapse": lambda wrapper, parameters: wrapper.collapse(),
    "select": lambda wrapper, parameters: wrapper.select(),
    "clear": lambda wrapper, parameters: wrapper.set_edit_text(""),
    "set_checked": _set_checked,
    "press_key": _press_key,
    "resize": _resize,
    "move": _move,
    "scroll": _scroll,
}


class WindowsBackend:
    """
    Windows 后端

    find 在顶层窗口及其全部子孙中做实时查询，
    可以通过 window_title 限定只在某个窗口内查找
    """

    name = "windows"

    def __init__(self, window_title: Optional[str] = None, backend: str = "uia") -> None:
        """
        初始化 Windows 后端

        Args:
            window_title: 限定的窗口标题（包含匹配，不区分大小写）
            backend: pywinauto 后端（uia / win32）
        """
        self.window_title = window_title
        self.desktop = Desktop(backend=backend)
        logger.info(f"WindowsBackend initialized (backend={backend}, window_title={window_title!r})")

    # ========================================
    # AutomationCapability
    # ========================================

    async def find(self, selector: ElementSelector) -> List[ElementHandle]:
        return await self._call(self._find_sync, selector)

    async def invoke(self, action: ActionSpec, element: ElementHandle, parameters: Mapping[str, str]) -> None:
        await self._call(self._invoke_sync, action, element, parameters)
        logger.debug(f"[windows] {action} on {element.describe()}")

    async def read(self, element: ElementHandle) -> ElementState:
        return await self._call(self._read_sync, element)

    # ========================================
    # 同步实现（在线程池中执行）
    # ========================================

    async def _call(self, func: Callable, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except BackendError:
            raise
        except Exception as e:
            logger.error(f"UI Automation call {func.__name__} failed: {e}")
            raise BackendError(f"UI Automation call {func.__name__} failed", cause=e) from e

    def _roots(self) -> list:
        windows = self.desktop.windows()
        if not self.window_title:
            return windows
        wanted = self.window_title.casefold()
        return [w for w in windows if wanted in (w.window_text() or "").casefold()]

    def _find_sync(self, selector: ElementSelector) -> List[ElementHandle]:
        candidates: List[ElementHandle] = []
        for window in self._roots():
            candidates.append(self._handle(window))
            for child in window.descendants():
                candidates.append(self._handle(child))
        return selector.select(candidates)

    @staticmethod
    def _handle(wrapper) -> ElementHandle:
        info = wrapper.element_info
        return ElementHandle(
            name=wrapper.window_text() or "",
            automation_id=getattr(info, "automation_id", "") or "",
            role=(getattr(info, "control_type", "") or "").lower(),
            path=f"{getattr(info, 'handle', '') or ''}",
            native=wrapper,
        )

    def _invoke_sync(self, action: ActionSpec, element: ElementHandle, parameters: Mapping[str, str]) -> None:
        wrapper = element.native
        if wrapper is None:
            raise BackendError(f"Element {element.describe()} has no native handle")

        if action.kind == ActionKind.CLICK:
            # InvokePattern 优先，不支持时退回到鼠标点击
            if hasattr(wrapper, "invoke"):
                wrapper.invoke()
            else:
                wrapper.click_input()
        elif action.kind == ActionKind.SET_TEXT:
            text = parameters.get("text")
            if text is None:
                raise BackendError("set_text requires a 'text' parameter")
            if hasattr(wrapper, "set_edit_text"):
                wrapper.set_edit_text(text)
            else:
                wrapper.set_focus()
                wrapper.type_keys(text, with_spaces=True)
        elif action.kind == ActionKind.FOCUS:
            wrapper.set_focus()
        elif action.kind == ActionKind.CLOSE:
            wrapper.close()
        elif action.kind == ActionKind.READ_STATE:
            pass
        elif action.kind == ActionKind.CUSTOM:
            handler = CUSTOM_ACTIONS.get(action.name)
            if handler is None:
                raise BackendError(f"Unsupported custom action: {action.name}")
            handler(wrapper, parameters)
        else:
            raise BackendError(f"Unsupported action: {action}")

    def _read_sync(self, element: ElementHandle) -> ElementState:
        wrapper = element.native
        value = None
        if hasattr(wrapper, "get_value"):
            value = wrapper.get_value()
        checked = None
        if hasattr(wrapper, "get_toggle_state"):
            checked = wrapper.get_toggle_state() == 1
        return ElementState(
            name=wrapper.window_text() or "",
            automation_id=element.automation_id,
            role=element.role,
            value=value,
            enabled=wrapper.is_enabled(),
            focused=wrapper.has_keyboard_focus() if hasattr(wrapper, "has_keyboard_focus") else False,
            visible=wrapper.is_visible(),
            checked=checked,
        )
