"""级联筛选项遍历引擎

对 FacetSpec 描述的筛选项链做深度优先枚举：
- 枚举层：读取当前层筛选项的选项；可选筛选项为空时跳过该层，必需筛选项为空时跳过整个分支
- 下探：选中标签（失败按退避重试，重试耗尽只跳过该标签，兄弟标签继续）
- 叶子：读取视图 -> 识别表格 -> 逐行归一化 -> 交给汇总器
- 回溯：路径不可变，返回上一层即丢弃子路径

分支级错误（TraversalError）在最小作用域内记录并跳过；ResourceFailure 与未预期的错误
会先刷写缓冲再向上抛出。
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable

from ..common.browser import BrowserSession
from ..common.config import config
from ..common.exceptions import ResourceFailure, TraversalError
from ..common.logger import format_path, get_logger
from ..common.storage import safe_logical_name
from ..common.types import NormalizedRecord
from ..facets import FacetDefinition, FacetReader, FacetSelector, FacetSpec, SelectionPath
from ..tables import NoTableFound, RowNormalizer, TableClassifier, TableProbe
from .aggregator import ResultAggregator
from .backoff import BackoffPolicy
from .state import RunState

logger = get_logger(__name__)


class TraversalEngine:
    """遍历引擎（每个实例独占一个浏览器会话）"""

    def __init__(
        self,
        facets: FacetSpec,
        reader: FacetReader,
        selector: FacetSelector,
        probe: TableProbe,
        classifier: TableClassifier,
        normalizer: RowNormalizer,
        aggregator: ResultAggregator,
        backoff: BackoffPolicy | None = None,
        checkpoint_facet: str | None = None,
        branch_delay: float | None = None,
        session: BrowserSession | None = None,
        screenshot_dir: str | Path | None = None,
    ):
        self.facets = facets
        self.reader = reader
        self.selector = selector
        self.probe = probe
        self.classifier = classifier
        self.normalizer = normalizer
        self.aggregator = aggregator
        self.backoff = backoff or BackoffPolicy()
        self.branch_delay = config.traversal.branch_delay if branch_delay is None else branch_delay
        self.session = session
        self.screenshot_dir = Path(screenshot_dir) if screenshot_dir else None

        if checkpoint_facet is None and len(facets):
            checkpoint_facet = facets.facets[0].key
        if checkpoint_facet and facets.get(checkpoint_facet) is None:
            raise ValueError(f"检查点筛选项不存在: {checkpoint_facet}")
        self.checkpoint_facet = checkpoint_facet

        self.state = RunState()
        self._top_level_labels: list[str] | None = None
        self._skip_branches: set[str] = set()

    async def run(
        self,
        top_level_labels: Iterable[str] | None = None,
        skip_branches: Iterable[str] = (),
        finalize: bool = True,
    ) -> RunState:
        """执行一次完整遍历

        Args:
            top_level_labels: 只遍历第一层中的这些标签（多会话分片时使用）
            skip_branches: 跳过这些检查点分支（续跑时使用）
            finalize: 结束时是否写出全局缓冲

        Raises:
            ResourceFailure: 浏览器会话不可用（已先刷写缓冲）
            Exception: 其他未预期的错误同样先刷写缓冲再抛出
        """
        self.state = RunState()
        self._top_level_labels = list(top_level_labels) if top_level_labels is not None else None
        self._skip_branches = set(skip_branches)

        logger.info(f"[遍历] 开始，筛选项链: {' -> '.join(self.facets.keys()) or '(空)'}")
        try:
            await self._enumerate(0, SelectionPath())
        except ResourceFailure as e:
            self.state.fatal_error = str(e)
            logger.error(f"[遍历] 浏览器会话不可用，终止遍历 @ {format_path(self.state.path)}: {e}")
            if finalize:
                await self.aggregator.finalize(status="FAILED", error=str(e))
            raise
        except Exception as e:
            self.state.fatal_error = str(e)
            logger.exception(f"[遍历] 未预期的错误，终止遍历 @ {format_path(self.state.path)}: {e}")
            if finalize:
                await self.aggregator.finalize(status="FAILED", error=str(e))
            raise

        if finalize:
            await self.aggregator.finalize()

        summary = self.state.summary()
        logger.info(
            f"[遍历] 完成: 叶子 {summary['leaf_visits']} 个, 记录 {summary['records']} 条, "
            f"失败 {summary['failures']} 次"
        )
        return self.state

    # ------------------------------------------------------------------
    # 枚举
    # ------------------------------------------------------------------

    def _next_level(self, index: int, path: SelectionPath) -> int:
        """从 index 开始找第一个依赖已满足的筛选项"""
        facets = self.facets.facets
        while index < len(facets):
            facet = facets[index]
            missing = [dep for dep in facet.depends_on if dep not in path]
            if not missing:
                return index
            logger.debug(f"[遍历] 跳过 {facet.display_name}：依赖 {missing} 不在路径中")
            index += 1
        return index

    async def _enumerate(self, index: int, path: SelectionPath) -> None:
        index = self._next_level(index, path)
        if index >= len(self.facets):
            await self._leaf(path)
            return

        facet = self.facets.facets[index]
        self.state.path = path
        try:
            labels = await self.reader.read_options(facet, path)
        except TraversalError as e:
            logger.error(f"[遍历] 读取 {facet.display_name} 失败，跳过分支 {format_path(path)}: {e}")
            self.state.add_failure(path, "enumerate", e, facet_key=facet.key)
            self.state.skipped_branches.append(path.snapshot())
            return

        if index == 0 and self._top_level_labels is not None:
            labels = [label for label in labels if label in self._top_level_labels]

        if not labels:
            if facet.required:
                logger.warning(f"[遍历] 必需筛选项 {facet.display_name} 没有选项，跳过分支 {format_path(path)}")
                self.state.skipped_branches.append(path.snapshot())
                return
            logger.info(f"[遍历] 可选筛选项 {facet.display_name} 不存在 @ {format_path(path)}")
            await self._enumerate(index + 1, path)
            return

        for position, label in enumerate(labels):
            child = path.extend(facet.key, label)
            is_checkpoint_level = facet.key == self.checkpoint_facet
            branch_key = self.aggregator.branch_key_for(child) if is_checkpoint_level else None

            if branch_key is not None and (
                branch_key in self._skip_branches or self.aggregator.is_checkpointed(branch_key)
            ):
                logger.info(f"[遍历] 分支 {branch_key} 已完成，跳过")
                continue

            if index == 0:
                logger.info(f"[进度] {facet.display_name} {position + 1}/{len(labels)}: {label}")
                if position > 0 and self.branch_delay > 0:
                    await asyncio.sleep(self.branch_delay)

            if branch_key is not None:
                self.state.active_branch = branch_key

            if not await self._descend(facet, label, path):
                continue

            await self._enumerate(index + 1, child)
            self.state.path = path

            if branch_key is not None:
                await self.aggregator.checkpoint(branch_key)
                self.state.completed_branches.append(branch_key)

    async def _descend(self, facet: FacetDefinition, label: str, path: SelectionPath) -> bool:
        """选中标签；重试耗尽时记录失败并返回 False"""
        attempt = 0
        while True:
            try:
                await self.selector.select(facet, label, path)
                return True
            except TraversalError as e:
                if self.backoff.should_retry(attempt):
                    delay = self.backoff.get_delay(attempt)
                    logger.warning(
                        f"[遍历] 选择 {facet.display_name}={label} 失败（第 {attempt + 1} 次），"
                        f"{delay:.1f}s 后重试: {e}"
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                target = path.extend(facet.key, label)
                logger.error(f"[遍历] 放弃分支 {format_path(target)}（{attempt + 1} 次尝试）: {e}")
                self.state.add_failure(path, "select", e, facet.key, label, attempts=attempt + 1)
                self.state.skipped_branches.append(target.snapshot())
                return False

    # ------------------------------------------------------------------
    # 叶子
    # ------------------------------------------------------------------

    async def _leaf(self, path: SelectionPath) -> None:
        self.state.leaf_visits += 1
        self.state.path = path

        try:
            view = await self.probe.capture(path)
        except TraversalError as e:
            logger.error(f"[叶子] 读取结果视图失败 {format_path(path)}: {e}")
            self.state.add_failure(path, "leaf", e)
            return

        result = self.classifier.classify(view)
        if isinstance(result, NoTableFound):
            logger.info(f"[叶子] {format_path(path)} 无数据: {result.reason}")
            return

        records: list[NormalizedRecord] = []
        dropped = 0
        for table in result:
            for cells in table.snapshot.rows:
                record = self.normalizer.normalize(
                    table.layout, table.snapshot.headers, cells, path, view.hints
                )
                if record is None:
                    dropped += 1
                    continue
                records.append(record)

        await self.aggregator.record(path, records)
        self.state.add_records(self.aggregator.branch_key_for(path), len(records))

        tags = ", ".join(table.tag for table in result)
        message = f"[叶子] {format_path(path)} [{tags}] -> {len(records)} 条"
        if dropped:
            message += f"（{dropped} 行列数不足已丢弃）"
        logger.info(message)

        await self._debug_screenshot(path)

    async def _debug_screenshot(self, path: SelectionPath) -> None:
        if self.session is None or self.screenshot_dir is None:
            return
        name = safe_logical_name(path.branch_key("_") or "root")
        await self.session.screenshot(self.screenshot_dir / f"{name}.png")
