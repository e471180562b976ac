"""结果汇总

按顶层分支（检查点筛选项的当前标签）和全局两级缓冲记录：
- record()：追加到分支缓冲与全局缓冲
- checkpoint()：分支完成时写出该分支的记录，之后该分支不再接受追加
- finalize()：写出全局缓冲

多个会话并发遍历时共享同一个汇总器，所有修改在 asyncio.Lock 下串行执行。
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

from ..common.exceptions import CheckpointError
from ..common.logger import format_path, get_logger
from ..common.storage import CrawlProgress, ProgressPersistence, RecordSink
from ..common.types import NormalizedRecord
from ..facets.models import SelectionPath

logger = get_logger(__name__)


class ResultAggregator:
    """记录汇总与检查点"""

    def __init__(
        self,
        sink: RecordSink,
        output_name: str,
        checkpoint_facet: str | None = None,
        progress: ProgressPersistence | None = None,
        institution: str = "",
    ):
        self.sink = sink
        self.output_name = output_name
        self.checkpoint_facet = checkpoint_facet
        self.progress = progress
        self.institution = institution or output_name

        self._lock = asyncio.Lock()
        self._branches: dict[str, list[NormalizedRecord]] = {}
        self._checkpointed: dict[str, tuple[NormalizedRecord, ...]] = {}
        self._global: list[NormalizedRecord] = []
        self._finalized = False

    def branch_key_for(self, path: SelectionPath) -> str:
        """路径所属的顶层分支键"""
        if self.checkpoint_facet and self.checkpoint_facet in path:
            return path.prefix(self.checkpoint_facet).branch_key()
        return path.branch_key() if path.depth else ""

    async def record(self, path: SelectionPath, records: Iterable[NormalizedRecord]) -> int:
        """追加一个叶子节点的记录

        Raises:
            CheckpointError: 所属分支已经写出检查点
        """
        batch = list(records)
        branch_key = self.branch_key_for(path)
        async with self._lock:
            if branch_key in self._checkpointed:
                raise CheckpointError(branch_key)
            self._branches.setdefault(branch_key, []).extend(batch)
            self._global.extend(batch)
        if batch:
            logger.debug(f"[汇总] {format_path(path)} +{len(batch)} 条")
        return len(batch)

    async def checkpoint(self, branch_key: str) -> int:
        """写出分支检查点，返回写出的记录数（重复调用不会重写）"""
        async with self._lock:
            if branch_key in self._checkpointed:
                logger.debug(f"[检查点] 分支 {branch_key} 已写出，跳过")
                return 0

            records = tuple(self._branches.pop(branch_key, []))
            self._checkpointed[branch_key] = records
            if records:
                await self.sink.write_records(records, self._branch_name(branch_key))
                logger.info(f"[检查点] 分支 {branch_key}: {len(records)} 条记录已写出")
            else:
                logger.info(f"[检查点] 分支 {branch_key} 没有记录")
            self._save_progress("RUNNING")
            return len(records)

    async def restore_branch(self, branch_key: str, records: Iterable[NormalizedRecord]) -> None:
        """续跑时载入已完成分支的记录（不重写分支文件）"""
        batch = tuple(records)
        async with self._lock:
            if branch_key in self._checkpointed:
                return
            self._checkpointed[branch_key] = batch
            self._global.extend(batch)

    async def finalize(self, status: str = "COMPLETED", error: str | None = None) -> int:
        """写出全局缓冲，返回记录总数"""
        async with self._lock:
            records = list(self._global)
            if records:
                await self.sink.write_records(records, self.output_name)
                logger.info(f"[汇总] 全部 {len(records)} 条记录已写出 -> {self.output_name}")
            else:
                logger.warning(f"[汇总] {self.output_name} 没有任何记录")
            self._finalized = True
            self._save_progress(status, error)
            return len(records)

    def is_checkpointed(self, branch_key: str) -> bool:
        return branch_key in self._checkpointed

    def branch_records(self, branch_key: str) -> list[NormalizedRecord]:
        """分支记录（已写出检查点的分支返回冻结快照）"""
        if branch_key in self._checkpointed:
            return list(self._checkpointed[branch_key])
        return list(self._branches.get(branch_key, []))

    @property
    def records(self) -> list[NormalizedRecord]:
        return list(self._global)

    @property
    def completed_branches(self) -> list[str]:
        return list(self._checkpointed)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def summary(self) -> dict[str, Any]:
        return {
            "output_name": self.output_name,
            "records": len(self._global),
            "checkpointed_branches": len(self._checkpointed),
            "pending_branches": sorted(k for k, v in self._branches.items() if v),
            "branch_counts": {k: len(v) for k, v in self._checkpointed.items()},
        }

    def _branch_name(self, branch_key: str) -> str:
        return f"{self.output_name}.{branch_key}" if branch_key else self.output_name

    def _save_progress(self, status: str, error: str | None = None) -> None:
        if self.progress is None:
            return
        self.progress.save_progress(
            CrawlProgress(
                status=status,
                institution=self.institution,
                completed_branches=list(self._checkpointed),
                record_count=len(self._global),
                error=error,
            )
        )
