"""
工具模块

配置加载和日志设置
"""

from .config import (
    AliasConfig,
    AliasStep,
    AppConfig,
    BackendSettings,
    BackoffSettings,
    ExecutorSettings,
    config_from_dict,
    load_config,
)
from .logger import setup_logger, setup_utf8_console

__all__ = [
    "AppConfig",
    "AliasConfig",
    "AliasStep",
    "BackendSettings",
    "BackoffSettings",
    "ExecutorSettings",
    "config_from_dict",
    "load_config",
    "setup_logger",
    "setup_utf8_console",
]
