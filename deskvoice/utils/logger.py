"""
日志工具
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logger(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    设置日志器

    Args:
        level: 日志级别
        log_file: 日志文件路径（可选）
    """
    # 清除已有的 sink
    logger.remove()

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level.upper())

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level.upper(),
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )


def setup_utf8_console():
    """设置控制台 UTF-8 编码（Windows）"""
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8")
        sys.stderr.reconfigure(encoding="utf-8")
