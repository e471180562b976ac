"""存储与进度持久化单元测试"""

import json

import pytest

from scorespider.common.storage import (
    CrawlProgress,
    JsonRecordSink,
    MemoryRecordSink,
    ProgressPersistence,
    safe_logical_name,
)
from scorespider.common.types import NormalizedRecord


class TestCrawlProgress:
    """CrawlProgress 数据类测试"""

    def test_default_values(self):
        progress = CrawlProgress()
        assert progress.status == "RUNNING"
        assert progress.completed_branches == []
        assert progress.record_count == 0
        assert progress.error is None

    def test_from_dict(self):
        progress = CrawlProgress.from_dict(
            {"status": "FAILED", "completed_branches": ["北京"], "record_count": "12", "error": "x"}
        )
        assert progress.status == "FAILED"
        assert progress.completed_branches == ["北京"]
        assert progress.record_count == 12
        assert progress.to_dict()["error"] == "x"


class TestProgressPersistence:
    """ProgressPersistence 测试"""

    def test_save_and_load(self, temp_output_dir):
        persistence = ProgressPersistence(temp_output_dir, "bupt")
        assert not persistence.has_checkpoint()

        persistence.save_progress(CrawlProgress(institution="bupt", completed_branches=["北京"]))

        assert (temp_output_dir / "bupt.progress.json").exists()
        loaded = persistence.load_progress()
        assert loaded.institution == "bupt"
        assert loaded.completed_branches == ["北京"]
        assert loaded.last_updated

    def test_corrupted_file(self, temp_output_dir):
        persistence = ProgressPersistence(temp_output_dir, "bupt")
        persistence.progress_file.write_text("{broken", encoding="utf-8")
        assert persistence.load_progress() is None

    def test_clear(self, temp_output_dir):
        persistence = ProgressPersistence(temp_output_dir, "bupt")
        persistence.save_progress(CrawlProgress())
        persistence.clear()
        assert not persistence.has_checkpoint()


class TestRecordSinks:
    """输出端测试"""

    def test_safe_logical_name(self):
        assert safe_logical_name("bjtu.2024.北京") == "bjtu.2024.北京"
        assert safe_logical_name("a/b c") == "a_b_c"
        assert safe_logical_name("  ") == "records"

    @pytest.mark.asyncio
    async def test_json_sink_writes_both_files(self, temp_output_dir):
        sink = JsonRecordSink(temp_output_dir)
        records = [NormalizedRecord(school="北京邮电大学", extensions={"averageScore": "630"})]

        await sink.write_records(records, "bupt_admission_scores")

        lines = (temp_output_dir / "bupt_admission_scores.jsonl").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        row = json.loads(lines[0])
        assert row["school"] == "北京邮电大学"
        assert row["averageScore"] == "630"
        assert "北京邮电大学" in lines[0]
        pretty = json.loads((temp_output_dir / "bupt_admission_scores.pretty.json").read_text(encoding="utf-8"))
        assert pretty == [row]

    @pytest.mark.asyncio
    async def test_memory_sink_keeps_latest(self):
        sink = MemoryRecordSink()
        await sink.write_records([NormalizedRecord(major="a")], "x")
        await sink.write_records([NormalizedRecord(major="b")], "x")
        assert sink.names() == ["x", "x"]
        assert sink.get("x")[0]["major"] == "b"
        assert sink.get("missing") is None
