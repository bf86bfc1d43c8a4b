"""
任务调度器

维护任务表，负责接纳、排序和状态流转。

任务表是系统中唯一的共享可变状态。所有状态变更（submit / next_runnable /
report / cancel）都是事件循环线程上的同步方法，不包含 await，
因此每次变更都是一个原子步骤，worker 不会看到更新了一半的任务
"""

import asyncio
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from loguru import logger

from ..errors import TaskNotFoundError
from ..models import Intent, Outcome, StatusReport, Task, TaskFailureReason, TaskStatus


class Scheduler:
    """
    任务调度器

    - 优先级高的任务先派发，同优先级按提交顺序（FIFO）
    - 依赖没有全部成功的任务不会被派发
    - 依赖失败或取消时，下游任务保持 pending，由调用方决定是否取消
    """

    def __init__(self, retry_ceiling: int = 2):
        """
        初始化调度器

        Args:
            retry_ceiling: 瞬时错误的最大重试次数
        """
        if retry_ceiling < 0:
            raise ValueError("retry_ceiling must be >= 0")
        self.retry_ceiling = retry_ceiling

        self._tasks: Dict[int, Task] = {}
        self._next_id = 1
        # 等待原 worker 本地重试的任务，不参与派发
        self._reserved: Set[int] = set()
        self._changed = asyncio.Event()
        self._closed = False

    # ========================================
    # 状态变更
    # ========================================

    def submit(self, intent: Intent, priority: int = 0, depends_on: Iterable[int] = ()) -> int:
        """
        提交意图，创建 pending 任务

        Args:
            intent: 已解析的意图
            priority: 优先级（数字越大越先执行）
            depends_on: 依赖的任务 ID

        Returns:
            新任务 ID

        Raises:
            TaskNotFoundError: 依赖的任务不存在
        """
        dependencies = frozenset(depends_on)
        for dep_id in dependencies:
            if dep_id not in self._tasks:
                raise TaskNotFoundError(dep_id)

        task_id = self._next_id
        self._next_id += 1
        self._tasks[task_id] = Task(
            id=task_id,
            intent=intent.model_copy(deep=True),
            priority=priority,
            depends_on=dependencies,
        )
        logger.info(f"Task #{task_id} submitted: {intent.action} {intent.target_selector} (priority={priority})")
        self._notify()
        return task_id

    def next_runnable(self) -> Optional[Task]:
        """
        取出下一个可执行的任务并标记为 running

        Returns:
            任务副本（调用方独占），没有可执行任务时返回 None
        """
        best: Optional[Task] = None
        for task in self._tasks.values():
            if task.status != TaskStatus.PENDING or task.id in self._reserved:
                continue
            if not self._dependencies_met(task):
                continue
            if best is None or task.priority > best.priority:
                best = task

        if best is None:
            return None

        best.status = TaskStatus.RUNNING
        logger.debug(f"Task #{best.id} dispatched")
        return best.model_copy(deep=True)

    async def wait_next(self) -> Optional[Task]:
        """
        等待下一个可执行的任务

        没有可执行任务时挂起，直到有新提交、任务完成或取消。
        调度器关闭后返回 None
        """
        while True:
            if self._closed:
                return None
            task = self.next_runnable()
            if task is not None:
                return task
            self._changed.clear()
            await self._changed.wait()

    async def wait_terminal(self, task_id: int) -> StatusReport:
        """等待任务进入终态"""
        while True:
            task = self._require(task_id)
            if task.status.is_terminal:
                return StatusReport.of(task)
            self._changed.clear()
            await self._changed.wait()

    def report(self, task_id: int, outcome: Outcome) -> TaskStatus:
        """
        写回一次尝试的结果

        瞬时错误且重试次数未到上限时，任务回到 pending 并保留给原 worker
        （见 reclaim），attempts 加一；否则进入终态

        Returns:
            任务的新状态
        """
        task = self._require(task_id)

        if task.status == TaskStatus.CANCELLED:
            logger.info(f"Task #{task_id} was cancelled, ignoring late outcome: {outcome}")
            return task.status
        if task.status != TaskStatus.RUNNING:
            logger.warning(f"Task #{task_id} is {task.status.value}, ignoring outcome: {outcome}")
            return task.status

        if outcome.succeeded:
            task.status = TaskStatus.SUCCEEDED
            task.result = outcome.data
            task.failure_reason = None
            task.failure_detail = None
            task.finished_at = datetime.now()
            logger.info(f"Task #{task_id} succeeded")
        elif outcome.reason == TaskFailureReason.CANCELLED:
            self._finalize_cancel(task)
        elif outcome.reason.is_transient and task.attempts < self.retry_ceiling:
            task.attempts += 1
            task.status = TaskStatus.PENDING
            task.failure_reason = outcome.reason
            task.failure_detail = outcome.detail
            self._reserved.add(task_id)
            logger.warning(
                f"Task #{task_id} attempt failed ({outcome}), retry {task.attempts}/{self.retry_ceiling}"
            )
        else:
            task.status = TaskStatus.FAILED
            task.failure_reason = outcome.reason
            task.failure_detail = outcome.detail
            task.finished_at = datetime.now()
            logger.error(f"Task #{task_id} failed: {outcome}")

        self._notify()
        return task.status

    def reclaim(self, task_id: int) -> Optional[Task]:
        """
        原 worker 取回保留的重试任务

        Returns:
            任务副本；任务已被取消时返回 None
        """
        task = self._require(task_id)
        self._reserved.discard(task_id)
        if task.status != TaskStatus.PENDING:
            return None
        task.status = TaskStatus.RUNNING
        logger.debug(f"Task #{task_id} reclaimed for retry {task.attempts}")
        return task.model_copy(deep=True)

    def release(self, task_id: int) -> None:
        """放弃保留的重试任务，交给任意 worker 派发"""
        if task_id in self._reserved:
            self._reserved.discard(task_id)
            self._notify()

    def cancel(self, task_id: int) -> bool:
        """
        取消任务

        pending 任务立即取消；running 任务只做标记，
        Executor 在下一次尝试前检查并停止

        Returns:
            是否发生了状态变化（终态任务返回 False）

        Raises:
            TaskNotFoundError: 任务不存在
        """
        task = self._require(task_id)
        if task.status.is_terminal:
            logger.debug(f"Task #{task_id} already {task.status.value}, cancel ignored")
            return False

        was_running = task.status == TaskStatus.RUNNING
        self._finalize_cancel(task)
        if was_running:
            logger.info(f"Task #{task_id} cancellation requested while running")
        self._notify()
        return True

    def close(self) -> None:
        """关闭调度器，唤醒所有等待中的 worker"""
        self._closed = True
        self._notify()
        logger.debug("Scheduler closed")

    # ========================================
    # 查询
    # ========================================

    @property
    def closed(self) -> bool:
        return self._closed

    def is_cancelled(self, task_id: int) -> bool:
        return self._require(task_id).status == TaskStatus.CANCELLED

    def get(self, task_id: int) -> Task:
        """任务副本"""
        return self._require(task_id).model_copy(deep=True)

    def status(self, task_id: int) -> StatusReport:
        return StatusReport.of(self._require(task_id))

    def tasks(self) -> List[Task]:
        return [task.model_copy(deep=True) for task in self._tasks.values()]

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: int) -> bool:
        return task_id in self._tasks

    # ========================================
    # 内部方法
    # ========================================

    def _require(self, task_id: int) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _dependencies_met(self, task: Task) -> bool:
        return all(self._tasks[dep_id].status == TaskStatus.SUCCEEDED for dep_id in task.depends_on)

    def _finalize_cancel(self, task: Task) -> None:
        task.status = TaskStatus.CANCELLED
        task.failure_reason = TaskFailureReason.CANCELLED
        task.finished_at = datetime.now()
        self._reserved.discard(task.id)
        logger.info(f"Task #{task.id} cancelled")

    def _notify(self) -> None:
        self._changed.set()
