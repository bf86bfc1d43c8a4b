"""
动作执行器

负责把一个任务转换为对自动化后端的调用，处理超时、重试和退避
"""

import asyncio
import time
from typing import Awaitable, Optional, TypeVar

from loguru import logger

from ..core.scheduler import Scheduler
from ..device.capability import AutomationCapability, describe_elements
from ..errors import BackendError
from ..models import ActionKind, Outcome, Task, TaskFailureReason, TaskStatus
from ..utils.config import BackoffSettings

T = TypeVar("T")


class Executor:
    """
    动作执行器

    run 执行一次尝试；drive 负责整个任务的生命周期（尝试、写回、退避、重试）。
    取消只在两次尝试之间检查，后端调用本身不会被打断
    """

    def __init__(
        self,
        capability: AutomationCapability,
        timeout_ms: int = 5000,
        backoff: Optional[BackoffSettings] = None,
    ):
        """
        初始化动作执行器

        Args:
            capability: 自动化后端
            timeout_ms: 单次后端调用超时（毫秒）
            backoff: 重试退避配置
        """
        self.capability = capability
        self.timeout_ms = timeout_ms
        self.backoff = backoff or BackoffSettings()

    async def run(self, task: Task) -> Outcome:
        """
        执行一次尝试

        Args:
            task: 当前 worker 独占的任务

        Returns:
            本次尝试的结果
        """
        intent = task.intent
        action = intent.action
        selector = intent.target_selector

        try:
            elements = await self._with_timeout(self.capability.find(selector))
        except asyncio.TimeoutError:
            return Outcome.failure(TaskFailureReason.TIMEOUT, f"find {selector} timed out after {self.timeout_ms}ms")
        except BackendError as e:
            return Outcome.failure(TaskFailureReason.BACKEND_ERROR, e.detail)
        except Exception as e:
            logger.error(f"元素查询失败: {selector} - {e}")
            return Outcome.failure(TaskFailureReason.BACKEND_ERROR, f"{type(e).__name__}: {e}")

        if not elements:
            logger.info(f"Task #{task.id}: no element matches {selector}")
            return Outcome.failure(TaskFailureReason.ELEMENT_NOT_FOUND, f"no element matches {selector}")

        if action.requires_unique and len(elements) > 1:
            logger.info(f"Task #{task.id}: {selector} is ambiguous: {describe_elements(elements)}")
            return Outcome.failure(
                TaskFailureReason.AMBIGUOUS_TARGET,
                f"{len(elements)} elements match {selector}",
            )

        try:
            data = None
            if action.kind == ActionKind.READ_STATE:
                states = []
                for element in elements:
                    state = await self._with_timeout(self.capability.read(element))
                    states.append(state.model_dump())
                data = states[0] if len(states) == 1 else states
            else:
                for element in elements:
                    await self._with_timeout(self.capability.invoke(action, element, intent.parameters))
        except asyncio.TimeoutError:
            logger.warning(f"Task #{task.id}: {action} timed out after {self.timeout_ms}ms")
            return Outcome.failure(TaskFailureReason.TIMEOUT, f"{action} timed out after {self.timeout_ms}ms")
        except BackendError as e:
            logger.warning(f"Task #{task.id}: backend error: {e.detail}")
            return Outcome.failure(TaskFailureReason.BACKEND_ERROR, e.detail)
        except Exception as e:
            logger.error(f"动作执行失败: {action} - {e}")
            return Outcome.failure(TaskFailureReason.BACKEND_ERROR, f"{type(e).__name__}: {e}")

        return Outcome.success(data)

    async def drive(self, task: Task, scheduler: Scheduler) -> TaskStatus:
        """
        执行任务直到终态

        瞬时错误由调度器授予重试，重试前按指数退避等待，
        并检查任务是否已被取消

        Args:
            task: 从 scheduler 取出的任务
            scheduler: 任务所属的调度器

        Returns:
            任务最终状态
        """
        while True:
            if scheduler.is_cancelled(task.id):
                logger.info(f"Task #{task.id} cancelled before attempt {task.attempts + 1}")
                return TaskStatus.CANCELLED

            attempt = task.attempts + 1
            logger.info(f"执行任务: {task.describe()} (attempt {attempt})")
            start_time = time.time()

            outcome = await self.run(task)

            duration = time.time() - start_time
            logger.debug(f"Task #{task.id} attempt {attempt}: {outcome} ({duration:.2f}s)")

            status = scheduler.report(task.id, outcome)
            if status != TaskStatus.PENDING:
                return status

            delay = self.backoff.delay_seconds(attempt)
            logger.debug(f"Task #{task.id}: waiting {delay:.2f}s before retry")
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                scheduler.release(task.id)
                raise

            reclaimed = scheduler.reclaim(task.id)
            if reclaimed is None:
                logger.info(f"Task #{task.id} cancelled during backoff")
                return scheduler.status(task.id).status
            task = reclaimed

    async def _with_timeout(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self.timeout_ms / 1000)
