"""
Worker 池

固定数量的 asyncio worker 从同一个 Scheduler 取任务并交给 Executor 执行
"""

import asyncio
from typing import List, Optional

from loguru import logger

from ..core.scheduler import Scheduler
from ..models import Outcome, TaskFailureReason, TaskStatus
from .action_executor import Executor


class WorkerPool:
    """Worker 池"""

    def __init__(self, scheduler: Scheduler, executor: Executor, workers: int = 1):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.scheduler = scheduler
        self.executor = executor
        self.size = workers
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    def start(self) -> None:
        """启动 worker（需要在事件循环中调用）"""
        if self._workers:
            raise RuntimeError("WorkerPool already started")
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"deskvoice-worker-{index}")
            for index in range(self.size)
        ]
        logger.info(f"WorkerPool started with {self.size} worker(s)")

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        停止 worker

        关闭调度器后等待正在执行的任务结束；超过 timeout 仍未结束的 worker 被取消

        Args:
            timeout: 等待秒数（None 表示一直等待）
        """
        self.scheduler.close()
        if not self._workers:
            return

        done, pending = await asyncio.wait(self._workers, timeout=timeout)
        for worker in pending:
            worker.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for worker in done:
            if not worker.cancelled() and worker.exception() is not None:
                logger.error(f"Worker {worker.get_name()} crashed: {worker.exception()}")

        self._workers = []
        logger.info("WorkerPool stopped")

    async def __aenter__(self) -> "WorkerPool":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _worker(self, index: int) -> None:
        logger.debug(f"Worker {index} started")
        while True:
            task = await self.scheduler.wait_next()
            if task is None:
                break
            try:
                status = await self.executor.drive(task, self.scheduler)
                logger.debug(f"Worker {index}: task #{task.id} finished as {status.value}")
            except asyncio.CancelledError:
                # worker 被强制停止：任务不能停留在 running
                self.scheduler.report(task.id, Outcome.failure(TaskFailureReason.CANCELLED, "worker stopped"))
                raise
            except Exception as e:
                logger.exception(f"Worker {index}: task #{task.id} raised")
                status = self.scheduler.report(
                    task.id, Outcome.failure(TaskFailureReason.BACKEND_ERROR, f"{type(e).__name__}: {e}")
                )
                # 本 worker 不会再 reclaim，重试交给任意 worker
                if status == TaskStatus.PENDING:
                    self.scheduler.release(task.id)
        logger.debug(f"Worker {index} stopped")
