"""
核心模块

任务调度
"""

from .scheduler import Scheduler

__all__ = ["Scheduler"]
