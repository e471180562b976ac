"""遍历运行状态

每个会话一个 RunState，由遍历引擎持有并修改；全局记录缓冲由 ResultAggregator 负责。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..facets.models import SelectionPath


@dataclass
class BranchFailure:
    """一次分支级失败（已被转换为跳过）"""

    path: dict[str, str]
    stage: str  # enumerate / select / leaf
    error_type: str
    message: str
    facet_key: str | None = None
    label: str | None = None
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": dict(self.path),
            "stage": self.stage,
            "error_type": self.error_type,
            "message": self.message,
            "facet_key": self.facet_key,
            "label": self.label,
            "attempts": self.attempts,
        }


@dataclass
class RunState:
    """一次遍历的可变状态"""

    path: SelectionPath = field(default_factory=SelectionPath)
    active_branch: str | None = None
    branch_records: dict[str, int] = field(default_factory=dict)
    leaf_visits: int = 0
    failures: list[BranchFailure] = field(default_factory=list)
    skipped_branches: list[dict[str, str]] = field(default_factory=list)
    completed_branches: list[str] = field(default_factory=list)
    fatal_error: str | None = None

    def add_failure(
        self,
        path: SelectionPath,
        stage: str,
        error: Exception,
        facet_key: str | None = None,
        label: str | None = None,
        attempts: int = 1,
    ) -> BranchFailure:
        failure = BranchFailure(
            path=path.snapshot(),
            stage=stage,
            error_type=type(error).__name__,
            message=str(error),
            facet_key=facet_key,
            label=label,
            attempts=attempts,
        )
        self.failures.append(failure)
        return failure

    def add_records(self, branch_key: str, count: int) -> None:
        self.branch_records[branch_key] = self.branch_records.get(branch_key, 0) + count

    @property
    def record_count(self) -> int:
        return sum(self.branch_records.values())

    def summary(self) -> dict[str, Any]:
        return {
            "leaf_visits": self.leaf_visits,
            "records": self.record_count,
            "failures": len(self.failures),
            "skipped_branches": len(self.skipped_branches),
            "completed_branches": list(self.completed_branches),
            "fatal_error": self.fatal_error,
        }
