"""
命令服务

核心对外的入口：解析命令、提交任务、查询和取消。
Web API 等外部层只通过这里访问调度器
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from .core.scheduler import Scheduler
from .device.capability import AutomationCapability, get_capability
from .execution.action_executor import Executor
from .execution.worker_pool import WorkerPool
from .language.resolver import IntentResolver
from .language.store import LanguageResourceStore
from .models import StatusReport, TaskStatus
from .utils.config import AppConfig, load_config


class CommandService:
    """
    命令服务

    持有 Resolver、Scheduler、Executor 和 WorkerPool，生命周期显式管理：
    start() 启动 worker，stop() 关闭调度器并等待 worker 结束
    """

    def __init__(
        self,
        config: AppConfig,
        store: LanguageResourceStore,
        capability: AutomationCapability,
    ):
        self.config = config
        self.store = store
        self.capability = capability

        self.resolver = IntentResolver(store)
        self.scheduler = Scheduler(retry_ceiling=config.retry_ceiling)
        self.executor = Executor(capability, timeout_ms=config.timeout_ms, backoff=config.backoff)
        self.pool = WorkerPool(self.scheduler, self.executor, workers=config.workers)

    @classmethod
    def from_config(cls, config_path: Optional[Union[str, Path]] = None) -> "CommandService":
        """根据配置文件创建服务（语言资源和后端都在这里加载一次）"""
        config = load_config(config_path)
        store = LanguageResourceStore.load(config.lang_dir, config.aliases)
        capability = get_capability(config.backend)
        return cls(config, store, capability)

    # ========================================
    # 生命周期
    # ========================================

    def start(self) -> None:
        self.pool.start()

    async def stop(self, timeout: Optional[float] = None) -> None:
        await self.pool.stop(timeout=timeout)

    async def __aenter__(self) -> "CommandService":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ========================================
    # 对外接口
    # ========================================

    def submit_command(self, text: str, locale: Optional[str] = None, priority: int = 0) -> int:
        """
        解析并提交命令

        多步别名会创建一串任务，每一步依赖上一步，返回最后一步的 ID

        Args:
            text: 命令文本
            locale: 语言（默认使用配置中的语言）
            priority: 优先级

        Returns:
            任务 ID

        Raises:
            ResolutionError: 解析失败，此时不会创建任何任务
        """
        locale = locale or self.config.language
        intents = self.resolver.resolve_all(text, locale)

        task_id = None
        for intent in intents:
            depends_on = () if task_id is None else (task_id,)
            task_id = self.scheduler.submit(intent, priority=priority, depends_on=depends_on)

        logger.info(self.store.message(locale, "task_queued", task_id=task_id))
        return task_id

    def get_status(self, task_id: int) -> StatusReport:
        """查询任务状态（任务不存在时抛出 TaskNotFoundError）"""
        return self.scheduler.status(task_id)

    def cancel(self, task_id: int) -> bool:
        """取消任务（任务不存在时抛出 TaskNotFoundError）"""
        return self.scheduler.cancel(task_id)

    def list_tasks(self) -> List[StatusReport]:
        return [StatusReport.of(task) for task in self.scheduler.tasks()]

    def describe(self, report: StatusReport, locale: Optional[str] = None) -> str:
        """状态的本地化描述"""
        locale = locale or self.config.language
        if report.status == TaskStatus.SUCCEEDED:
            return self.store.message(locale, "task_success", task_id=report.task_id)
        if report.status == TaskStatus.FAILED:
            reason = report.reason.value if report.reason else "unknown"
            return self.store.message(locale, "task_failure", task_id=report.task_id, reason=reason)
        if report.status == TaskStatus.CANCELLED:
            return self.store.message(locale, "task_cancelled", task_id=report.task_id)
        return self.store.message(locale, "task_processing", task_id=report.task_id)

    async def wait(self, task_id: int, timeout: Optional[float] = None) -> StatusReport:
        """
        等待任务进入终态

        Raises:
            TaskNotFoundError: 任务不存在
            asyncio.TimeoutError: 超时仍未结束
        """
        return await asyncio.wait_for(self.scheduler.wait_terminal(task_id), timeout=timeout)
