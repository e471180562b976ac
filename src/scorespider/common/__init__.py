"""Common模块 - 公共工具和基础设施

该模块提供：
- 全局配置管理
- 浏览器会话
- 记录输出与进度持久化
- 类型定义
- 日志系统
- 异常类
- 常量定义
"""

from .config import config, Config
from .logger import get_logger, console
from .exceptions import (
    ScoreSpiderError,
    TraversalError,
    SelectionFailure,
    TimeoutFailure,
    ClassificationFailure,
    ResourceFailure,
    FormatRepairFailure,
    StorageError,
    ConfigError,
)
from .types import NormalizedRecord, TableSnapshot, ViewState, SelectionAck

__all__ = [
    # 配置
    "config",
    "Config",
    # 日志
    "get_logger",
    "console",
    # 异常
    "ScoreSpiderError",
    "TraversalError",
    "SelectionFailure",
    "TimeoutFailure",
    "ClassificationFailure",
    "ResourceFailure",
    "FormatRepairFailure",
    "StorageError",
    "ConfigError",
    # 类型
    "NormalizedRecord",
    "TableSnapshot",
    "ViewState",
    "SelectionAck",
]
