"""
配置管理模块

提供统一的配置加载和访问接口。配置文件为 YAML，加载后由 pydantic 校验
"""

import os
import stat
import sys
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, model_validator

from ..errors import ConfigError
from ..models import ActionKind, ActionSpec, ElementSelector

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "config.yaml"


class ExecutorSettings(BaseModel):
    """执行器配置"""

    retry_ceiling: int = Field(2, ge=0, description="瞬时错误的最大重试次数")
    timeout_ms: int = Field(5000, gt=0, description="单次后端调用超时（毫秒）")
    workers: int = Field(1, ge=1, description="并发 worker 数")


class BackoffSettings(BaseModel):
    """重试退避配置（指数退避）"""

    initial_ms: int = Field(200, ge=0, description="第一次重试前的等待（毫秒）")
    multiplier: float = Field(2.0, ge=1.0, description="每次重试的放大倍数")
    max_ms: int = Field(5000, ge=0, description="单次等待上限（毫秒）")

    def delay_seconds(self, attempt: int) -> float:
        """
        计算第 attempt 次重试前的等待时间

        Args:
            attempt: 重试序号（从 1 开始）

        Returns:
            等待秒数
        """
        delay_ms = self.initial_ms * (self.multiplier ** max(attempt - 1, 0))
        return min(delay_ms, self.max_ms) / 1000


class BackendSettings(BaseModel):
    """自动化后端配置"""

    kind: Literal["simulated", "windows"] = Field("simulated", description="后端类型")
    window_title: Optional[str] = Field(None, description="真实后端：只在该窗口内查找元素")
    tree: Optional[Dict[str, Any]] = Field(None, description="模拟后端：元素树")
    tree_file: Optional[str] = Field(None, description="模拟后端：元素树 YAML 文件")


class LoggingSettings(BaseModel):
    """日志配置"""

    level: str = Field("INFO", description="日志级别")
    file: Optional[str] = Field(None, description="日志文件路径（可选）")


class AliasStep(BaseModel):
    """别名中的单个步骤"""

    action: ActionKind = Field(..., description="动作类型")
    name: Optional[str] = Field(None, description="自定义动作名称")
    selector: ElementSelector = Field(..., description="元素选择器")
    parameters: Dict[str, str] = Field(default_factory=dict, description="动作参数")

    @model_validator(mode="after")
    def _check_action(self) -> "AliasStep":
        self.action_spec()
        return self

    def action_spec(self) -> ActionSpec:
        try:
            return ActionSpec(kind=self.action, name=self.name)
        except ValidationError as e:
            raise ValueError(f"invalid action {self.action.value!r} (name={self.name!r}): {e}") from e


class AliasConfig(BaseModel):
    """
    别名配置

    把一个固定短语映射为单个动作，或映射为按顺序执行的多个步骤
    """

    alias: str = Field(..., description="触发短语")
    locale: Optional[str] = Field(None, description="限定语言（None 表示所有语言）")
    action: Optional[ActionKind] = Field(None, description="单步别名的动作类型")
    name: Optional[str] = Field(None, description="自定义动作名称")
    selector: Optional[ElementSelector] = Field(None, description="单步别名的选择器")
    parameters: Dict[str, str] = Field(default_factory=dict, description="动作参数")
    steps: List[AliasStep] = Field(default_factory=list, description="多步别名的步骤")

    @model_validator(mode="after")
    def _check_shape(self) -> "AliasConfig":
        if self.steps and self.action is not None:
            raise ValueError(f"alias {self.alias!r}: use either action or steps, not both")
        if not self.steps and (self.action is None or self.selector is None):
            raise ValueError(f"alias {self.alias!r}: action and selector are required")
        if not self.steps:
            try:
                self.as_steps()
            except ValidationError as e:
                raise ValueError(f"alias {self.alias!r}: {e}") from e
        return self

    def as_steps(self) -> List[AliasStep]:
        if self.steps:
            return list(self.steps)
        return [
            AliasStep(
                action=self.action,
                name=self.name,
                selector=self.selector,
                parameters=self.parameters,
            )
        ]


class AppConfig(BaseModel):
    """应用配置"""

    language: str = Field("ru", description="默认语言")
    lang_dir: str = Field(str(PROJECT_ROOT / "assets" / "lang"), description="短语表目录")
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    backoff: BackoffSettings = Field(default_factory=BackoffSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    aliases: List[AliasConfig] = Field(default_factory=list)

    # ========================================
    # 便捷访问方法
    # ========================================

    @property
    def retry_ceiling(self) -> int:
        return self.executor.retry_ceiling

    @property
    def timeout_ms(self) -> int:
        return self.executor.timeout_ms

    @property
    def workers(self) -> int:
        return self.executor.workers


# 环境变量 -> 配置路径
ENV_MAPPINGS = {
    "DESKVOICE_LANGUAGE": ["language"],
    "DESKVOICE_BACKEND": ["backend", "kind"],
    "DESKVOICE_LOG_LEVEL": ["logging", "level"],
}


def _set_nested(data: Dict[str, Any], path: List[str], value: Any) -> None:
    """设置嵌套配置值"""
    current = data
    for key in path[:-1]:
        current = current.setdefault(key, {})
    current[path[-1]] = value


def _apply_env_overrides(data: Dict[str, Any]) -> None:
    """应用环境变量覆盖"""
    for env_var, config_path in ENV_MAPPINGS.items():
        value = os.getenv(env_var)
        if value:
            logger.debug(f"Config override from {env_var}: {value}")
            _set_nested(data, config_path, value)


def _check_permissions(path: Path) -> None:
    """拒绝组或其他用户可写的配置文件"""
    if sys.platform == "win32":
        return
    mode = path.stat().st_mode
    if mode & (stat.S_IWGRP | stat.S_IWOTH):
        raise ConfigError(
            f"Config file {path} is writable by group or others "
            f"(mode {stat.S_IMODE(mode):o}); please secure the file"
        )


def read_yaml(path: Union[str, Path]) -> Any:
    """读取 YAML 文件，错误统一转换为 ConfigError"""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"配置文件不存在: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def config_from_dict(data: Optional[Dict[str, Any]], apply_env: bool = True) -> AppConfig:
    """
    从字典构造配置

    Args:
        data: 原始配置字典
        apply_env: 是否应用环境变量覆盖

    Returns:
        AppConfig 实例
    """
    data = dict(data or {})
    if apply_env:
        _apply_env_overrides(data)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    check_permissions: bool = False,
) -> AppConfig:
    """
    加载配置文件

    Args:
        config_path: 配置文件路径，默认为 configs/config.yaml
        check_permissions: 是否拒绝组或其他用户可写的文件

    Returns:
        AppConfig 实例

    Raises:
        ConfigError: 文件不存在、格式错误或权限不安全
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if check_permissions and path.exists():
        _check_permissions(path)

    data = read_yaml(path)
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")

    config = config_from_dict(data)

    # 相对路径以配置文件所在目录为基准
    if not Path(config.lang_dir).is_absolute():
        config.lang_dir = str((path.parent / config.lang_dir).resolve())
    tree_file = config.backend.tree_file
    if tree_file and not Path(tree_file).is_absolute():
        config.backend.tree_file = str((path.parent / tree_file).resolve())

    logger.info(f"Config loaded from {path} (backend={config.backend.kind}, language={config.language})")
    return config
