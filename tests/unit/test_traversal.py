"""遍历引擎单元测试（使用内存中的级联筛选页面）"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from scorespider.common.browser import BrowserSession
from scorespider.common.exceptions import (
    ClassificationFailure,
    ResourceFailure,
    TimeoutFailure,
)
from scorespider.crawler.traversal import TraversalEngine
from scorespider.facets import FacetReader, FacetSelector
from scorespider.facets.models import FacetSpec
from scorespider.facets.widgets import SELECT_CLICKED

ROW = ["计算机科学", "620", "630", "150", ""]


def _chain(fake_ui, with_group=False):
    facets = [
        fake_ui.link_facet("year"),
        fake_ui.link_facet("province", depends_on=["year"]),
        fake_ui.link_facet("category", required=False, depends_on=["province"]),
    ]
    if with_group:
        facets.append(fake_ui.link_facet("specialtyGroup", required=False, depends_on=["category"]))
    return FacetSpec(facets=facets)


def _site(categories=None, provinces=None, years=("2024",)):
    """年份 -> 省份 -> 科类 的页面数据"""
    categories = categories if categories is not None else {"北京": ["综合改革", "理工"], "上海": ["理工"]}
    provinces = provinces if provinces is not None else {"2024": ["北京", "上海"]}

    def options(key, path):
        if key == "year":
            return list(years)
        if key == "province":
            return provinces.get(path["year"], [])
        if key == "category":
            return categories.get(path["province"], [])
        return []

    return options


class TestSelectionFailure:
    """选择失败只跳过单个标签"""

    @pytest.mark.asyncio
    async def test_stale_category_skipped_siblings_continue(self, make_engine, fake_ui):
        engine, _, selector, probe, _ = make_engine(
            _chain(fake_ui),
            _site(),
            views_fn=lambda path: fake_ui.major_table(ROW),
            failures={("category", "综合改革"): 99},
            max_attempts=3,
        )

        state = await engine.run()

        assert selector.calls.count(("category", "综合改革")) == 3
        assert probe.calls == [
            {"year": "2024", "province": "北京", "category": "理工"},
            {"year": "2024", "province": "上海", "category": "理工"},
        ]
        assert len(state.failures) == 1
        failure = state.failures[0]
        assert failure.stage == "select"
        assert failure.error_type == "SelectionFailure"
        assert (failure.facet_key, failure.label, failure.attempts) == ("category", "综合改革", 3)
        assert failure.path == {"year": "2024", "province": "北京"}
        assert {"year": "2024", "province": "北京", "category": "综合改革"} in state.skipped_branches

    @pytest.mark.asyncio
    async def test_retry_recovers(self, make_engine, fake_ui):
        engine, _, selector, probe, _ = make_engine(
            _chain(fake_ui),
            _site(),
            failures={("province", "北京"): 2},
            max_attempts=3,
        )

        state = await engine.run()

        assert selector.calls.count(("province", "北京")) == 3
        assert state.failures == []
        assert len(probe.calls) == 3


class TestFacetOrder:
    """依赖顺序与可选筛选项"""

    @pytest.mark.asyncio
    async def test_facets_read_only_after_dependencies(self, make_engine, fake_ui):
        facets = _chain(fake_ui)
        engine, reader, _, _, _ = make_engine(facets, _site())

        await engine.run()

        for key, path in reader.calls:
            assert set(facets.get(key).depends_on) <= set(path)
        assert [key for key, _ in reader.calls] == [
            "year",
            "province",
            "category",
            "category",
        ]

    @pytest.mark.asyncio
    async def test_empty_optional_facet_gives_one_leaf(self, make_engine, fake_ui):
        engine, reader, _, probe, _ = make_engine(
            _chain(fake_ui, with_group=True),
            _site(categories={}, provinces={"2024": ["北京"]}),
        )

        state = await engine.run()

        assert probe.calls == [{"year": "2024", "province": "北京"}]
        assert state.leaf_visits == 1
        # 依赖科类的专业组在科类缺失时不会被读取
        assert "specialtyGroup" not in [key for key, _ in reader.calls]

    @pytest.mark.asyncio
    async def test_empty_required_facet_skips_branch(self, make_engine, fake_ui):
        engine, _, _, probe, _ = make_engine(
            _chain(fake_ui),
            _site(provinces={"2024": ["北京"], "2023": []}, categories={"北京": ["理工"]}, years=("2024", "2023")),
        )

        state = await engine.run()

        assert probe.calls == [{"year": "2024", "province": "北京", "category": "理工"}]
        assert {"year": "2023"} in state.skipped_branches
        assert state.failures == []


class TestLeaf:
    """叶子节点处理"""

    @pytest.mark.asyncio
    async def test_records_collected_with_path_values(self, make_engine, fake_ui):
        engine, _, _, _, aggregator = make_engine(
            _chain(fake_ui),
            _site(categories={"北京": ["理工"], "上海": ["综合改革"]}),
            views_fn=lambda path: fake_ui.major_table(ROW, ["软件工程", "640", "610", "90", ""]),
        )

        state = await engine.run()

        records = aggregator.records
        assert len(records) == 4
        assert state.record_count == 4
        first = records[0]
        assert (first.school, first.year, first.province, first.category) == ("测试大学", "2024", "北京", "理工")
        assert first.specialtyGroup == "理工"
        assert records[3].specialtyGroup == "物理组"
        # 倒置的分数被纠正
        assert all(float(r.lowestScore) <= float(r.highestScore) for r in records)

    @pytest.mark.asyncio
    async def test_no_table_is_not_an_error(self, make_engine, fake_ui):
        engine, _, _, probe, aggregator = make_engine(_chain(fake_ui), _site())

        state = await engine.run()

        assert len(probe.calls) == 3
        assert state.leaf_visits == 3
        assert state.failures == []
        assert aggregator.records == []

    @pytest.mark.asyncio
    async def test_short_rows_dropped(self, make_engine, fake_ui):
        engine, _, _, _, aggregator = make_engine(
            _chain(fake_ui),
            _site(categories={"北京": ["理工"]}, provinces={"2024": ["北京"]}),
            views_fn=lambda path: fake_ui.major_table(ROW, ["物理学", "600"]),
        )

        await engine.run()

        assert [r.major for r in aggregator.records] == ["计算机科学"]

    @pytest.mark.asyncio
    async def test_capture_failures_recorded(self, make_engine, fake_ui):
        def views(path):
            if path["province"] == "北京":
                return ClassificationFailure("无法读取结果视图")
            return fake_ui.major_table(ROW)

        engine, _, _, _, aggregator = make_engine(
            _chain(fake_ui),
            _site(categories={"北京": ["理工"], "上海": ["理工"]}),
            views_fn=views,
        )

        state = await engine.run()

        assert [f.stage for f in state.failures] == ["leaf"]
        assert len(aggregator.records) == 1

    @pytest.mark.asyncio
    async def test_option_timeout_skips_branch(self, make_engine, fake_ui):
        def options(key, path):
            if key == "category" and path["province"] == "北京":
                return TimeoutFailure("读取科类", 500)
            return _site(categories={"上海": ["理工"]})(key, path)

        engine, _, _, probe, _ = make_engine(_chain(fake_ui), options)

        state = await engine.run()

        assert probe.calls == [{"year": "2024", "province": "上海", "category": "理工"}]
        assert state.failures[0].stage == "enumerate"
        assert state.failures[0].facet_key == "category"


class TestCheckpoints:
    """检查点与致命错误"""

    @pytest.mark.asyncio
    async def test_checkpoint_after_each_branch(self, make_engine, fake_ui, memory_sink):
        engine, _, _, _, aggregator = make_engine(
            _chain(fake_ui),
            _site(categories={"北京": ["理工"], "上海": ["理工"]}),
            views_fn=lambda path: fake_ui.major_table(ROW),
            checkpoint_facet="province",
        )

        state = await engine.run()

        assert memory_sink.names() == [
            "test_scores.2024.北京",
            "test_scores.2024.上海",
            "test_scores",
        ]
        assert state.completed_branches == ["2024.北京", "2024.上海"]
        assert len(memory_sink.get("test_scores")) == 2
        assert aggregator.finalized

    @pytest.mark.asyncio
    async def test_resource_failure_flushes_then_raises(self, make_engine, fake_ui, memory_sink):
        def views(path):
            if path["province"] == "上海":
                return ResourceFailure("页面已关闭")
            return fake_ui.major_table(ROW)

        engine, _, _, _, aggregator = make_engine(
            _chain(fake_ui),
            _site(categories={"北京": ["理工"], "上海": ["理工"]}),
            views_fn=views,
            checkpoint_facet="province",
        )

        with pytest.raises(ResourceFailure):
            await engine.run()

        assert engine.state.fatal_error
        assert aggregator.finalized
        assert memory_sink.names() == ["test_scores.2024.北京", "test_scores"]
        assert memory_sink.get("test_scores")[0]["province"] == "北京"

    @pytest.mark.asyncio
    async def test_top_level_labels_and_skip_branches(self, make_engine, fake_ui):
        engine, _, _, probe, _ = make_engine(
            _chain(fake_ui),
            _site(
                provinces={"2024": ["北京", "上海"], "2023": ["北京"]},
                categories={"北京": ["理工"], "上海": ["理工"]},
                years=("2024", "2023"),
            ),
            checkpoint_facet="province",
        )

        await engine.run(top_level_labels=["2024"], skip_branches=["2024.北京"])

        assert probe.calls == [{"year": "2024", "province": "上海", "category": "理工"}]

    def test_unknown_checkpoint_facet(self, make_engine, fake_ui):
        facets = _chain(fake_ui)
        engine, reader, selector, probe, aggregator = make_engine(facets, _site())
        with pytest.raises(ValueError):
            TraversalEngine(
                facets=facets,
                reader=reader,
                selector=selector,
                probe=probe,
                classifier=engine.classifier,
                normalizer=engine.normalizer,
                aggregator=aggregator,
                checkpoint_facet="campus",
            )


def _live_session(evaluate):
    """真实 BrowserSession，底层 Page 使用 Mock"""
    page = MagicMock()
    page.is_closed = MagicMock(return_value=False)
    page.evaluate = AsyncMock(side_effect=evaluate)
    page.wait_for_load_state = AsyncMock()
    page.wait_for_selector = AsyncMock()
    session = BrowserSession(headless=True, timeout_ms=1000)
    session._page = page
    return session


def _year_province(fake_ui):
    return FacetSpec(
        facets=[
            fake_ui.link_facet("year"),
            fake_ui.link_facet("province", depends_on=["year"]),
        ]
    )


class TestBrowserErrorsStayInBranch:
    """页面脚本错误只跳过当前分支"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message, error_type",
        [
            ("Evaluation failed: TypeError: Cannot read properties of null (reading 'querySelectorAll')",
             "PageScriptError"),
            ("Execution context was destroyed, most likely because of a navigation", "TimeoutFailure"),
        ],
    )
    async def test_option_read_error_skips_branch(self, make_engine, fake_ui, message, error_type):
        province_reads = []

        async def evaluate(script, arg):
            if 'data-param="year"' in arg["container"]:
                return ["2024", "2023"]
            province_reads.append(arg)
            if len(province_reads) == 1:
                raise PlaywrightError(message)
            return ["北京"]

        engine, _, _, probe, aggregator = make_engine(
            _year_province(fake_ui), lambda key, path: [], views_fn=lambda path: fake_ui.major_table(ROW)
        )
        engine.reader = FacetReader(_live_session(evaluate))

        state = await engine.run()

        assert probe.calls == [{"year": "2023", "province": "北京"}]
        assert len(state.failures) == 1
        assert state.failures[0].stage == "enumerate"
        assert state.failures[0].error_type == error_type
        assert state.fatal_error is None
        assert aggregator.finalized
        assert [r.year for r in aggregator.records] == ["2023"]

    @pytest.mark.asyncio
    async def test_click_script_error_is_retried(self, make_engine, fake_ui):
        clicks = []

        async def evaluate(script, arg):
            clicks.append(arg["label"])
            if arg["label"] == "北京" and clicks.count("北京") == 1:
                raise PlaywrightError("Execution context was destroyed, most likely because of a navigation")
            if arg["label"] == "上海":
                raise PlaywrightError("Evaluation failed: TypeError: el is null")
            return SELECT_CLICKED

        engine, _, _, probe, _ = make_engine(
            _year_province(fake_ui),
            _site(provinces={"2024": ["北京", "上海", "天津"]}),
            views_fn=lambda path: fake_ui.major_table(ROW),
            max_attempts=2,
        )
        engine.selector = FacetSelector(
            _live_session(evaluate), settle_delay=0, settle_jitter=0, settle_timeout_ms=100
        )

        state = await engine.run()

        assert clicks.count("北京") == 2
        assert clicks.count("上海") == 2
        assert [call["province"] for call in probe.calls] == ["北京", "天津"]
        assert len(state.failures) == 1
        assert state.failures[0].error_type == "SelectionFailure"
        assert state.failures[0].label == "上海"

    @pytest.mark.asyncio
    async def test_unexpected_error_flushes_then_raises(self, make_engine, fake_ui, memory_sink):
        def views(path):
            if path["province"] == "上海":
                return RuntimeError("布局脚本返回了意外结构")
            return fake_ui.major_table(ROW)

        engine, _, _, _, aggregator = make_engine(
            _chain(fake_ui),
            _site(categories={"北京": ["理工"], "上海": ["理工"]}),
            views_fn=views,
            checkpoint_facet="province",
        )

        with pytest.raises(RuntimeError):
            await engine.run()

        assert aggregator.finalized
        assert "意外结构" in engine.state.fatal_error
        assert memory_sink.names() == ["test_scores.2024.北京", "test_scores"]
