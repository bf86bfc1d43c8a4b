"""
执行模块

动作执行器和 worker 池
"""

from .action_executor import Executor
from .worker_pool import WorkerPool

__all__ = ["Executor", "WorkerPool"]
