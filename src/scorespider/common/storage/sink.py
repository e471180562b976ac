"""记录输出

每次写出同时生成两份文件：
- ``<name>.jsonl``：每行一条记录，便于下游流式读取
- ``<name>.pretty.json``：带缩进的数组，便于人工检查
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Protocol

from ..exceptions import StorageError
from ..logger import get_logger
from ..types import NormalizedRecord
from ..utils.file_utils import ensure_directory, save_json, save_jsonl

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\s]+')


def safe_logical_name(name: str) -> str:
    """把逻辑名称转换为安全的文件名（保留中文）"""
    cleaned = _UNSAFE_CHARS.sub("_", name.strip()).strip("._")
    return cleaned or "records"


class RecordSink(Protocol):
    """输出端接口"""

    async def write_records(self, records: Iterable[NormalizedRecord], logical_name: str) -> None:
        ...


class JsonRecordSink:
    """写入本地 JSON Lines + 美化 JSON 的输出端"""

    def __init__(self, output_dir: str | Path = "output"):
        self.output_dir = Path(output_dir)
        ensure_directory(self.output_dir)

    def paths_for(self, logical_name: str) -> tuple[Path, Path]:
        stem = safe_logical_name(logical_name)
        return self.output_dir / f"{stem}.jsonl", self.output_dir / f"{stem}.pretty.json"

    async def write_records(self, records: Iterable[NormalizedRecord], logical_name: str) -> None:
        rows = [record.to_dict() for record in records]
        jsonl_path, pretty_path = self.paths_for(logical_name)

        if not save_jsonl(jsonl_path, rows) or not save_json(pretty_path, rows):
            raise StorageError(f"写出记录失败: {logical_name}")

        logger.info(f"[输出] 已写出 {len(rows)} 条记录 -> {jsonl_path}")


class MemoryRecordSink:
    """内存输出端，保存每次写出的快照"""

    def __init__(self) -> None:
        self.writes: list[tuple[str, list[dict[str, str]]]] = []

    async def write_records(self, records: Iterable[NormalizedRecord], logical_name: str) -> None:
        self.writes.append((logical_name, [record.to_dict() for record in records]))

    def names(self) -> list[str]:
        return [name for name, _ in self.writes]

    def get(self, logical_name: str) -> list[dict[str, str]] | None:
        for name, rows in reversed(self.writes):
            if name == logical_name:
                return rows
        return None
