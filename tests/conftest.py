"""pytest 全局配置和 fixtures

提供测试所需的基础设施和 Mock 对象：
- 模拟的 BrowserSession（evaluate / wait_for_selector / wait_for_settle）
- 内存中的级联筛选页面（FakeReader / FakeSelector / FakeProbe）
- 组装遍历引擎的工厂
"""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

# 添加项目路径
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scorespider.common.exceptions import SelectionFailure  # noqa: E402
from scorespider.common.storage import MemoryRecordSink  # noqa: E402
from scorespider.common.types import SelectionAck, TableSnapshot, ViewState  # noqa: E402
from scorespider.crawler.aggregator import ResultAggregator  # noqa: E402
from scorespider.crawler.backoff import BackoffPolicy  # noqa: E402
from scorespider.crawler.traversal import TraversalEngine  # noqa: E402
from scorespider.facets.models import FacetDefinition, FacetSpec  # noqa: E402
from scorespider.tables.classifier import TableClassifier  # noqa: E402
from scorespider.tables.layouts import BUILTIN_LAYOUTS, LayoutRegistry  # noqa: E402
from scorespider.tables.normalizer import RowNormalizer  # noqa: E402


# ============================================================================
# Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_session():
    """模拟 BrowserSession"""
    session = MagicMock()
    session.evaluate = AsyncMock(return_value=None)
    session.wait_for_selector = AsyncMock()
    session.wait_for_settle = AsyncMock()
    session.navigate = AsyncMock()
    session.screenshot = AsyncMock()
    session.start = AsyncMock()
    session.stop = AsyncMock()
    return session


@pytest.fixture
def memory_sink():
    return MemoryRecordSink()


@pytest.fixture
def temp_output_dir(tmp_path):
    """创建临时输出目录"""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


# ============================================================================
# 内存中的级联筛选页面
# ============================================================================

OptionsFn = Callable[[str, dict[str, str]], Any]
ViewsFn = Callable[[dict[str, str]], Any]


class FakeReader:
    """按 (筛选项键, 当前路径) 返回选项；返回异常实例时抛出"""

    def __init__(self, options_fn: OptionsFn):
        self.options_fn = options_fn
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def read_options(self, facet, path):
        missing = [dep for dep in facet.depends_on if dep not in path]
        assert not missing, f"{facet.key} 在依赖 {missing} 选定前被读取"
        self.calls.append((facet.key, path.snapshot()))
        result = self.options_fn(facet.key, path.snapshot())
        if isinstance(result, BaseException):
            raise result
        return list(result)


class FakeSelector:
    """记录选择调用；failures 指定 (键, 标签) 在成功前失败的次数"""

    def __init__(self, failures: dict[tuple[str, str], int] | None = None):
        self.failures = dict(failures or {})
        self.calls: list[tuple[str, str]] = []

    async def select(self, facet, label, path):
        self.calls.append((facet.key, label))
        remaining = self.failures.get((facet.key, label), 0)
        if remaining:
            self.failures[(facet.key, label)] = remaining - 1
            raise SelectionFailure(facet.key, label, "选项已过期")
        return SelectionAck(facet_key=facet.key, label=label)


class FakeProbe:
    """按叶子路径返回 ViewState；返回异常实例时抛出"""

    def __init__(self, views_fn: ViewsFn):
        self.views_fn = views_fn
        self.calls: list[dict[str, str]] = []

    async def capture(self, path):
        self.calls.append(path.snapshot())
        result = self.views_fn(path.snapshot())
        if isinstance(result, BaseException):
            raise result
        return result


def major_table(*rows: list[str]) -> ViewState:
    """分专业表格视图（命中 by_major_rank 版式）"""
    return ViewState(
        tables=[
            TableSnapshot(
                container="table.sort-table",
                headers=["专业", "最低分", "最高分", "最低分排名", "专业组/科目类/单设志愿"],
                rows=[list(row) for row in rows],
            )
        ]
    )


def empty_view() -> ViewState:
    return ViewState()


def link_facet(key: str, required: bool = True, depends_on: list[str] | None = None) -> FacetDefinition:
    return FacetDefinition(
        key=key,
        name=key,
        required=required,
        depends_on=depends_on or [],
        container=f'.filter dd[data-param="{key}"]',
    )


@pytest.fixture
def make_engine(memory_sink):
    """组装使用内存页面的遍历引擎

    返回 (engine, reader, selector, probe, aggregator)
    """

    def _make(
        facets: FacetSpec,
        options_fn: OptionsFn,
        views_fn: ViewsFn | None = None,
        failures: dict[tuple[str, str], int] | None = None,
        checkpoint_facet: str | None = None,
        max_attempts: int = 3,
        layouts: list[str] | None = None,
        defaults: dict[str, str] | None = None,
    ):
        registry = LayoutRegistry(
            BUILTIN_LAYOUTS[name] for name in (layouts or ["general_scores", "by_major_rank"])
        )
        reader = FakeReader(options_fn)
        selector = FakeSelector(failures)
        probe = FakeProbe(views_fn or (lambda path: empty_view()))
        aggregator = ResultAggregator(
            sink=memory_sink,
            output_name="test_scores",
            checkpoint_facet=checkpoint_facet or facets.facets[0].key,
        )
        engine = TraversalEngine(
            facets=facets,
            reader=reader,
            selector=selector,
            probe=probe,
            classifier=TableClassifier(registry),
            normalizer=RowNormalizer(school="测试大学", facets=facets, defaults=defaults),
            aggregator=aggregator,
            backoff=BackoffPolicy(max_attempts=max_attempts, base_delay=0, backoff_factor=1, jitter=0),
            checkpoint_facet=checkpoint_facet,
            branch_delay=0,
        )
        return engine, reader, selector, probe, aggregator

    return _make


@pytest.fixture
def fake_ui():
    """测试用构造函数集合（major_table / empty_view / link_facet）"""
    return SimpleNamespace(major_table=major_table, empty_view=empty_view, link_facet=link_facet)
