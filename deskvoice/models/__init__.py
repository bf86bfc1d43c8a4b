"""
数据模型包

导出所有数据模型
"""

from .element import ElementHandle, ElementState
from .intent import UNIQUE_TARGET_ACTIONS, ActionKind, ActionSpec, ElementSelector, Intent
from .task import Outcome, StatusReport, Task, TaskFailureReason, TaskStatus

__all__ = [
    # Element models
    "ElementHandle",
    "ElementState",
    # Intent models
    "ActionKind",
    "ActionSpec",
    "ElementSelector",
    "Intent",
    "UNIQUE_TARGET_ACTIONS",
    # Task models
    "Task",
    "TaskStatus",
    "TaskFailureReason",
    "Outcome",
    "StatusReport",
]
