"""遍历进度持久化

记录已写出检查点的顶层分支，用于中断后续跑时跳过已完成的分支。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ..logger import get_logger
from ..utils.file_utils import ensure_directory, file_exists, load_json, save_json

logger = get_logger(__name__)


@dataclass
class CrawlProgress:
    """遍历进度信息"""

    # 状态：RUNNING, COMPLETED, FAILED
    status: str = "RUNNING"

    # 院校标识（用于兼容性校验）
    institution: str = ""

    # 已写出检查点的分支（按完成顺序）
    completed_branches: list[str] = field(default_factory=list)

    # 已写出的记录数
    record_count: int = 0

    # 失败原因（如果状态为 FAILED）
    error: str | None = None

    # 最后更新时间
    last_updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        return {
            "status": self.status,
            "institution": self.institution,
            "completed_branches": list(self.completed_branches),
            "record_count": self.record_count,
            "error": self.error,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrawlProgress":
        """从字典创建"""
        return cls(
            status=data.get("status", "RUNNING"),
            institution=data.get("institution", ""),
            completed_branches=list(data.get("completed_branches", [])),
            record_count=int(data.get("record_count", 0)),
            error=data.get("error"),
            last_updated=data.get("last_updated", ""),
        )


class ProgressPersistence:
    """进度持久化管理器"""

    def __init__(self, output_dir: str | Path = "output", name: str = "progress"):
        """初始化

        Args:
            output_dir: 输出目录
            name: 进度文件名前缀（通常为院校标识）
        """
        self.output_dir = Path(output_dir)
        ensure_directory(self.output_dir)
        self.progress_file = self.output_dir / f"{name}.progress.json"

    def save_progress(self, progress: CrawlProgress) -> None:
        """保存进度"""
        progress.last_updated = datetime.now().isoformat()
        save_json(self.progress_file, progress.to_dict())

    def load_progress(self) -> CrawlProgress | None:
        """加载进度，文件不存在或损坏时返回 None"""
        if not file_exists(self.progress_file):
            return None

        data = load_json(self.progress_file)
        if not isinstance(data, dict):
            logger.warning(f"[进度] 进度文件无法解析: {self.progress_file}")
            return None
        return CrawlProgress.from_dict(data)

    def has_checkpoint(self) -> bool:
        """检查是否存在进度文件"""
        return file_exists(self.progress_file)

    def clear(self) -> None:
        """清除进度数据"""
        if file_exists(self.progress_file):
            self.progress_file.unlink()
