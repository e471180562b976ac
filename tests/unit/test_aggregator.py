"""结果汇总单元测试"""

import asyncio

import pytest

from scorespider.common.exceptions import CheckpointError
from scorespider.common.storage import JsonRecordSink, ProgressPersistence
from scorespider.common.types import NormalizedRecord
from scorespider.common.utils.file_utils import load_json, load_jsonl
from scorespider.crawler.aggregator import ResultAggregator
from scorespider.facets.models import SelectionPath


def _path(year, province, category="理工"):
    return SelectionPath([("year", year), ("province", province), ("category", category)])


def _record(province, major="计算机科学"):
    return NormalizedRecord(school="测试大学", province=province, major=major)


class TestBranchKeys:
    """分支键测试"""

    def test_prefix_through_checkpoint_facet(self, memory_sink):
        aggregator = ResultAggregator(memory_sink, "scores", checkpoint_facet="province")
        assert aggregator.branch_key_for(_path("2024", "北京")) == "2024.北京"

    def test_missing_checkpoint_facet_uses_full_path(self, memory_sink):
        aggregator = ResultAggregator(memory_sink, "scores", checkpoint_facet="campus")
        assert aggregator.branch_key_for(_path("2024", "北京")) == "2024.北京.理工"
        assert aggregator.branch_key_for(SelectionPath()) == ""


class TestCheckpoint:
    """检查点测试"""

    @pytest.mark.asyncio
    async def test_checkpoint_writes_branch_once(self, memory_sink):
        aggregator = ResultAggregator(memory_sink, "scores", checkpoint_facet="province")
        await aggregator.record(_path("2024", "北京"), [_record("北京")])
        await aggregator.record(_path("2024", "北京", "文史"), [_record("北京", "汉语言")])

        assert await aggregator.checkpoint("2024.北京") == 2
        assert await aggregator.checkpoint("2024.北京") == 0

        assert memory_sink.names() == ["scores.2024.北京"]
        assert [row["major"] for row in memory_sink.get("scores.2024.北京")] == ["计算机科学", "汉语言"]
        assert aggregator.is_checkpointed("2024.北京")

    @pytest.mark.asyncio
    async def test_record_after_checkpoint_rejected(self, memory_sink):
        aggregator = ResultAggregator(memory_sink, "scores", checkpoint_facet="province")
        await aggregator.record(_path("2024", "北京"), [_record("北京")])
        await aggregator.checkpoint("2024.北京")

        with pytest.raises(CheckpointError) as exc_info:
            await aggregator.record(_path("2024", "北京", "文史"), [_record("北京")])

        assert exc_info.value.branch_key == "2024.北京"
        assert len(aggregator.branch_records("2024.北京")) == 1

    @pytest.mark.asyncio
    async def test_empty_branch_marked_without_file(self, memory_sink):
        aggregator = ResultAggregator(memory_sink, "scores", checkpoint_facet="province")
        assert await aggregator.checkpoint("2024.西藏") == 0
        assert memory_sink.writes == []
        assert aggregator.completed_branches == ["2024.西藏"]

    @pytest.mark.asyncio
    async def test_finalize_writes_global_buffer(self, memory_sink):
        aggregator = ResultAggregator(memory_sink, "scores", checkpoint_facet="province")
        await aggregator.record(_path("2024", "北京"), [_record("北京")])
        await aggregator.checkpoint("2024.北京")
        await aggregator.record(_path("2024", "上海"), [_record("上海")])

        assert await aggregator.finalize() == 2

        assert [row["province"] for row in memory_sink.get("scores")] == ["北京", "上海"]
        summary = aggregator.summary()
        assert summary["records"] == 2
        assert summary["pending_branches"] == ["2024.上海"]
        assert summary["branch_counts"] == {"2024.北京": 1}

    @pytest.mark.asyncio
    async def test_concurrent_sessions_share_aggregator(self, memory_sink):
        aggregator = ResultAggregator(memory_sink, "scores", checkpoint_facet="province")
        provinces = ["北京", "上海", "天津", "重庆"]

        async def session(province):
            for index in range(5):
                await aggregator.record(
                    _path("2024", province, f"科类{index}"), [_record(province, f"专业{index}")]
                )
                await asyncio.sleep(0)
            await aggregator.checkpoint(f"2024.{province}")

        await asyncio.gather(*(session(p) for p in provinces))
        await aggregator.finalize()

        assert len(aggregator.records) == 20
        for province in provinces:
            rows = memory_sink.get(f"scores.2024.{province}")
            assert len(rows) == 5
            assert {row["province"] for row in rows} == {province}


class TestPersistence:
    """输出文件与进度清单"""

    @pytest.mark.asyncio
    async def test_json_files_and_progress(self, temp_output_dir):
        progress = ProgressPersistence(temp_output_dir, "bjtu")
        aggregator = ResultAggregator(
            JsonRecordSink(temp_output_dir),
            "bjtu_admission_scores",
            checkpoint_facet="province",
            progress=progress,
            institution="bjtu",
        )
        await aggregator.record(_path("2024", "北京"), [_record("北京")])
        await aggregator.checkpoint("2024.北京")

        saved = progress.load_progress()
        assert saved.status == "RUNNING"
        assert saved.completed_branches == ["2024.北京"]

        await aggregator.finalize()

        rows = load_jsonl(temp_output_dir / "bjtu_admission_scores.2024.北京.jsonl")
        assert rows[0]["province"] == "北京"
        assert rows[0]["lowestScore"] == ""
        pretty = load_json(temp_output_dir / "bjtu_admission_scores.pretty.json")
        assert pretty == rows
        assert progress.load_progress().status == "COMPLETED"
