"""
自动化能力接口

Scheduler 和 Executor 只依赖这里定义的接口，不关心具体后端。
后端在进程配置时选定一次，不按任务切换
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from loguru import logger

from ..errors import BackendError, ConfigError
from ..models import ActionSpec, ElementHandle, ElementSelector, ElementState
from ..utils.config import BackendSettings, read_yaml


@runtime_checkable
class AutomationCapability(Protocol):
    """
    自动化能力

    - find: 按选择器实时查找元素（不缓存）
    - invoke: 对单个元素执行动作，失败时抛出 BackendError
    - read: 读取元素状态
    """

    name: str

    async def find(self, selector: ElementSelector) -> List[ElementHandle]:
        ...

    async def invoke(self, action: ActionSpec, element: ElementHandle, parameters: Mapping[str, str]) -> None:
        ...

    async def read(self, element: ElementHandle) -> ElementState:
        ...


def get_capability(settings: BackendSettings) -> AutomationCapability:
    """
    根据配置创建后端

    Args:
        settings: 后端配置

    Returns:
        AutomationCapability 实例

    Raises:
        ConfigError: 后端类型未知或模拟树缺失
    """
    if settings.kind == "simulated":
        from .simulated import SimulatedBackend

        tree: Any = settings.tree
        if tree is None and settings.tree_file:
            tree = read_yaml(settings.tree_file)
        backend = SimulatedBackend.from_dict(tree or [])
        logger.info(f"Using simulated backend ({backend.size()} elements)")
        return backend

    if settings.kind == "windows":
        # pywinauto 只在 Windows 上可用，按需导入
        from .windows import WindowsBackend

        logger.info(f"Using Windows UI Automation backend (window={settings.window_title!r})")
        return WindowsBackend(window_title=settings.window_title)

    raise ConfigError(f"Unknown backend kind: {settings.kind}")


def describe_elements(elements: List[ElementHandle]) -> Dict[str, Any]:
    """元素列表的日志摘要"""
    return {"count": len(elements), "elements": [element.describe() for element in elements[:5]]}


# ========================================
# 动作参数解析（两个后端共用）
# ========================================

TRUE_VALUES = ("1", "true", "yes", "on", "да", "вкл")
FALSE_VALUES = ("0", "false", "no", "off", "нет", "выкл")


def int_param(parameters: Mapping[str, str], key: str, default: Optional[int] = None) -> int:
    """
    读取整数参数

    Raises:
        BackendError: 参数缺失（且没有默认值）或不是整数
    """
    value = (parameters.get(key) or "").strip()
    if not value:
        if default is None:
            raise BackendError(f"Missing required parameter {key!r}")
        return default
    try:
        return int(value)
    except ValueError as e:
        raise BackendError(f"Parameter {key!r} must be an integer, got {value!r}") from e


def bool_param(parameters: Mapping[str, str], key: str) -> bool:
    """读取布尔参数（true/false、on/off、да/нет 等）"""
    value = (parameters.get(key) or "").strip().casefold()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise BackendError(f"Parameter {key!r} must be a boolean, got {value!r}")


def text_param(parameters: Mapping[str, str], key: str) -> str:
    value = parameters.get(key)
    if value is None:
        raise BackendError(f"Missing required parameter {key!r}")
    return value
