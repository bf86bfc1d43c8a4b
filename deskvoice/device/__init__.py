"""
设备交互模块

提供自动化能力接口和两个后端（模拟 / Windows）
"""

from .capability import AutomationCapability, get_capability
from .simulated import SimElement, SimulatedBackend

__all__ = [
    "AutomationCapability",
    "get_capability",
    "SimElement",
    "SimulatedBackend",
]
