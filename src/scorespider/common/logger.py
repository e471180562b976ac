"""统一日志系统

终端输出使用 Rich；``--log-file`` 打开的文件输出由所有 scorespider 日志器共用一个 handler。
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler


console = Console()

PACKAGE_PREFIX = "scorespider"

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

# 已打开的文件输出，新建的包内日志器也会挂上
_file_handlers: list[logging.Handler] = []


def get_log_level() -> int:
    """从 LOG_LEVEL 环境变量读取日志级别，无法识别时为 INFO"""
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """获取统一配置的日志器

    Args:
        name: 日志器名称，通常使用 __name__

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("[遍历] 开始: 北京邮电大学")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = get_log_level()
    logger.setLevel(log_level)

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=os.getenv("LOG_SHOW_LOCALS", "false").lower() == "true",
        markup=False,
    )
    rich_handler.setLevel(log_level)
    rich_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(rich_handler)

    if name.startswith(PACKAGE_PREFIX):
        for handler in _file_handlers:
            logger.addHandler(handler)

    # 各模块独立输出，不向根日志器传播
    logger.propagate = False
    return logger


def _build_file_handler(log_file: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_package_file_logging(
    log_file: str,
    prefix: str = PACKAGE_PREFIX,
    level: int = logging.DEBUG,
) -> int:
    """让包内所有日志器（包括之后才创建的）写入同一个日志文件

    Returns:
        当前已挂上文件输出的日志器数量
    """
    handler = _build_file_handler(log_file, level)
    _file_handlers.append(handler)

    count = 0
    for name, item in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith(prefix) and isinstance(item, logging.Logger) and item.handlers:
            item.addHandler(handler)
            count += 1
    return count


def format_path(path: object) -> str:
    """把 SelectionPath 或字典格式化为日志友好的文本"""
    items = path.items() if hasattr(path, "items") else []
    parts = [f"{key}={label}" for key, label in items]
    return "{" + ", ".join(parts) + "}" if parts else "{}"
