"""院校抓取入口

负责会话生命周期、页面导航、顶层分支并发分片与断点续跑。
并发时每个分片拥有独立的浏览器会话和遍历引擎，只共享 ResultAggregator。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from ..common.browser import BrowserSession, shutdown_browser_engine
from ..common.config import config
from ..common.exceptions import ConfigValidationError
from ..common.logger import get_logger
from ..common.storage import JsonRecordSink, ProgressPersistence, RecordSink
from ..common.types import NormalizedRecord
from ..common.utils.file_utils import load_jsonl
from ..facets import FacetReader, FacetSelector, SelectionPath
from ..institutions.profiles import InstitutionProfile
from ..tables import RowNormalizer, TableClassifier, TableProbe
from .aggregator import ResultAggregator
from .state import RunState
from .traversal import TraversalEngine

logger = get_logger(__name__)


@dataclass
class CrawlReport:
    """一次抓取的结果汇总"""

    institution: str
    output_name: str
    states: list[RunState] = field(default_factory=list)
    aggregate: dict[str, Any] = field(default_factory=dict)
    resumed_branches: list[str] = field(default_factory=list)

    @property
    def leaf_visits(self) -> int:
        return sum(state.leaf_visits for state in self.states)

    @property
    def failures(self) -> int:
        return sum(len(state.failures) for state in self.states)

    @property
    def records(self) -> int:
        return int(self.aggregate.get("records", 0))


def build_engine(
    profile: InstitutionProfile,
    session: BrowserSession,
    aggregator: ResultAggregator,
) -> TraversalEngine:
    """按院校配置组装遍历引擎"""
    registry = profile.layout_registry()
    screenshot_dir = (
        Path(config.output.screenshot_dir) / profile.slug if config.output.debug_screenshots else None
    )
    return TraversalEngine(
        facets=profile.facets,
        reader=FacetReader(session),
        selector=FacetSelector(session),
        probe=TableProbe(session, registry, profile.hint_patterns),
        classifier=TableClassifier(registry),
        normalizer=RowNormalizer(
            school=profile.school,
            facets=profile.facets,
            defaults=profile.defaults,
            specialty_group_rules=profile.specialty_group_rules,
        ),
        aggregator=aggregator,
        checkpoint_facet=profile.resolved_checkpoint_facet,
        session=session,
        screenshot_dir=screenshot_dir,
    )


def shard_labels(labels: list[str], shards: int) -> list[list[str]]:
    """按轮转方式分片，保持各分片内的页面顺序"""
    shards = max(1, min(shards, len(labels)))
    return [labels[index::shards] for index in range(shards)] if labels else []


async def restore_progress(
    aggregator: ResultAggregator,
    progress: ProgressPersistence,
    sink: RecordSink,
    institution: str,
) -> list[str]:
    """载入已完成分支，返回需要跳过的分支键"""
    saved = progress.load_progress()
    if saved is None:
        return []
    if saved.institution and saved.institution != institution:
        logger.warning(f"[续跑] 进度文件属于 {saved.institution}，忽略")
        return []

    for branch_key in saved.completed_branches:
        rows: list[dict[str, Any]] = []
        if isinstance(sink, JsonRecordSink):
            jsonl_path, _ = sink.paths_for(f"{aggregator.output_name}.{branch_key}")
            rows = load_jsonl(jsonl_path)
        await aggregator.restore_branch(branch_key, [NormalizedRecord.from_fields(row) for row in rows])

    logger.info(f"[续跑] 跳过 {len(saved.completed_branches)} 个已完成分支")
    return list(saved.completed_branches)


async def _open_session(profile: InstitutionProfile, headless: bool | None) -> BrowserSession:
    session = BrowserSession(headless=headless)
    await session.start()
    try:
        await session.navigate(profile.url)
        if profile.ready_selector:
            await session.wait_for_selector(profile.ready_selector, config.browser.navigation_timeout_ms)
    except BaseException:
        await session.stop()
        raise
    return session


async def _run_shard(
    profile: InstitutionProfile,
    aggregator: ResultAggregator,
    headless: bool | None,
    labels: list[str] | None,
    skip_branches: list[str],
) -> RunState:
    session = await _open_session(profile, headless)
    try:
        engine = build_engine(profile, session, aggregator)
        return await engine.run(top_level_labels=labels, skip_branches=skip_branches, finalize=False)
    finally:
        await session.stop()


async def run_institution(
    profile: InstitutionProfile,
    output_dir: str | Path | None = None,
    headless: bool | None = None,
    concurrency: int | None = None,
    resume: bool = False,
    only_labels: Iterable[str] | None = None,
    sink: RecordSink | None = None,
) -> CrawlReport:
    """抓取一个院校

    Args:
        profile: 院校配置（必须是 html 来源）
        output_dir: 输出目录
        headless: 是否无头模式
        concurrency: 顶层分支并发会话数
        resume: 是否跳过进度文件中已完成的分支
        only_labels: 只抓取第一层筛选项中的这些标签
        sink: 输出端，默认写入 output_dir

    任何异常在抛出前都会先写出已完成分支与全局缓冲。

    Raises:
        BrowserError: 页面加载失败或浏览器会话不可用
    """
    if profile.source != "html":
        raise ConfigValidationError(f"院校 {profile.slug} 不是网页来源")

    output_dir = Path(output_dir or config.output.output_dir)
    sink = sink or JsonRecordSink(output_dir)
    progress = ProgressPersistence(output_dir, profile.slug)
    aggregator = ResultAggregator(
        sink=sink,
        output_name=profile.resolved_output_name,
        checkpoint_facet=profile.resolved_checkpoint_facet,
        progress=progress,
        institution=profile.slug,
    )
    report = CrawlReport(institution=profile.slug, output_name=profile.resolved_output_name)

    if resume:
        report.resumed_branches = await restore_progress(aggregator, progress, sink, profile.slug)
    elif progress.has_checkpoint():
        progress.clear()

    concurrency = max(1, concurrency or config.traversal.concurrency)
    labels = list(only_labels) if only_labels else None
    logger.info(f"[抓取] {profile.school} ({profile.slug}) <- {profile.url}")

    try:
        if concurrency == 1:
            report.states.append(
                await _run_shard(profile, aggregator, headless, labels, report.resumed_branches)
            )
        else:
            await _run_concurrent(profile, aggregator, headless, labels, concurrency, report)
    except BaseException as e:
        # 任何中断都先刷写已缓冲的结果
        await aggregator.finalize(status="FAILED", error=str(e) or type(e).__name__)
        report.aggregate = aggregator.summary()
        raise
    finally:
        await shutdown_browser_engine()

    await aggregator.finalize()
    report.aggregate = aggregator.summary()
    return report


async def _run_concurrent(
    profile: InstitutionProfile,
    aggregator: ResultAggregator,
    headless: bool | None,
    labels: list[str] | None,
    concurrency: int,
    report: CrawlReport,
) -> None:
    # 先用一个会话读取顶层选项，再分片
    first = profile.facets.facets[0]
    session = await _open_session(profile, headless)
    try:
        top_level = await FacetReader(session).read_options(first, SelectionPath())
    finally:
        await session.stop()

    if labels is not None:
        top_level = [label for label in top_level if label in labels]
    shards = shard_labels(top_level, concurrency)
    logger.info(f"[抓取] {len(top_level)} 个{first.display_name}分到 {len(shards)} 个会话")

    results = await asyncio.gather(
        *(
            _run_shard(profile, aggregator, headless, shard, report.resumed_branches)
            for shard in shards
        ),
        return_exceptions=True,
    )

    fatal: BaseException | None = None
    for result in results:
        if isinstance(result, RunState):
            report.states.append(result)
        elif isinstance(result, BaseException) and fatal is None:
            fatal = result
    if fatal is not None:
        raise fatal
