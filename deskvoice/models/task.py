"""
任务模型

定义任务、任务状态、失败原因和执行结果
"""

from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .intent import Intent


class TaskStatus(str, Enum):
    """任务状态枚举"""

    PENDING = "pending"  # 等待执行
    RUNNING = "running"  # 执行中
    SUCCEEDED = "succeeded"  # 成功
    FAILED = "failed"  # 失败
    CANCELLED = "cancelled"  # 取消

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class TaskFailureReason(str, Enum):
    """任务失败原因"""

    ELEMENT_NOT_FOUND = "element_not_found"  # 选择器没有命中元素
    AMBIGUOUS_TARGET = "ambiguous_target"  # 选择器命中多个元素
    TIMEOUT = "timeout"  # 后端调用超时
    BACKEND_ERROR = "backend_error"  # 后端错误
    CANCELLED = "cancelled"  # 被取消

    @property
    def is_transient(self) -> bool:
        """瞬时错误可以重试，选择器错误和取消不重试"""
        return self in (TaskFailureReason.TIMEOUT, TaskFailureReason.BACKEND_ERROR)


class Outcome(BaseModel):
    """
    单次尝试的执行结果

    由 Executor 产生，通过 Scheduler.report 写回任务表
    """

    model_config = ConfigDict(frozen=True)

    succeeded: bool = Field(..., description="是否成功")
    reason: Optional[TaskFailureReason] = Field(None, description="失败原因")
    detail: Optional[str] = Field(None, description="错误详情")
    data: Optional[Any] = Field(None, description="返回数据（read_state 使用）")

    @model_validator(mode="after")
    def _check_reason(self) -> "Outcome":
        if not self.succeeded and self.reason is None:
            raise ValueError("failed outcome needs a reason")
        return self

    @classmethod
    def success(cls, data: Optional[Any] = None) -> "Outcome":
        """创建成功结果"""
        return cls(succeeded=True, data=data)

    @classmethod
    def failure(cls, reason: TaskFailureReason, detail: Optional[str] = None) -> "Outcome":
        """创建失败结果"""
        return cls(succeeded=False, reason=reason, detail=detail)

    def __str__(self) -> str:
        if self.succeeded:
            return "succeeded"
        if self.detail:
            return f"failed({self.reason.value}: {self.detail})"
        return f"failed({self.reason.value})"


class Task(BaseModel):
    """
    任务

    由 Scheduler 在接纳 Intent 时创建。attempts 记录已经消耗的重试次数，
    不会超过 retry_ceiling
    """

    id: int = Field(..., description="任务 ID（进程内单调递增）")
    intent: Intent = Field(..., description="任务意图")
    status: TaskStatus = Field(TaskStatus.PENDING, description="任务状态")
    attempts: int = Field(0, ge=0, description="已消耗的重试次数")
    priority: int = Field(0, description="优先级（数字越大优先级越高）")
    depends_on: FrozenSet[int] = Field(default_factory=frozenset, description="依赖的任务 ID")

    # 时间信息
    created_at: datetime = Field(default_factory=datetime.now, description="创建时间")
    finished_at: Optional[datetime] = Field(None, description="结束时间")

    # 结果信息
    failure_reason: Optional[TaskFailureReason] = Field(None, description="失败原因")
    failure_detail: Optional[str] = Field(None, description="失败详情")
    result: Optional[Any] = Field(None, description="执行返回的数据")

    def describe(self) -> str:
        intent = self.intent
        return f"#{self.id} {intent.action} {intent.target_selector}"


class StatusReport(BaseModel):
    """任务状态查询结果"""

    model_config = ConfigDict(frozen=True)

    task_id: int
    status: TaskStatus
    reason: Optional[TaskFailureReason] = None
    detail: Optional[str] = None
    attempts: int = 0
    result: Optional[Any] = None

    @classmethod
    def of(cls, task: Task) -> "StatusReport":
        return cls(
            task_id=task.id,
            status=task.status,
            reason=task.failure_reason,
            detail=task.failure_detail,
            attempts=task.attempts,
            result=task.result,
        )
