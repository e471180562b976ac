"""扫描件批处理

目录结构：``<pdf_dir>/<年份>/<省份>.pdf`` 或 ``<pdf_dir>/<年份>/<目录>/<省份>.pdf``。
每个文件：栅格化 -> 抽取 -> 格式修复 -> 行归一化 -> 写出检查点。
单个文件失败只记入失败数，不影响其他文件。
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from ..common.config import config
from ..common.logger import get_logger
from ..common.utils.file_utils import write_text_atomic
from ..crawler.aggregator import ResultAggregator
from ..facets.models import SelectionPath
from ..institutions.profiles import InstitutionProfile
from ..tables.normalizer import RowNormalizer
from .extractor import ExtractionContext, StructuredRecordExtractor
from .rasterizer import PdfRasterizer

logger = get_logger(__name__)

_YEAR_DIR = re.compile(r"^\d{4}$")


@dataclass(frozen=True)
class PdfFile:
    path: Path
    year: str
    province: str


@dataclass
class BatchSummary:
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    records: int = 0
    dropped: int = 0
    failures: list[str] = field(default_factory=list)


def scan_pdf_directory(base_dir: str | Path) -> list[PdfFile]:
    """扫描 PDF 目录（年份目录名必须是四位数字，同一年份省份重复时只保留一个）"""
    base = Path(base_dir)
    files: list[PdfFile] = []
    if not base.is_dir():
        logger.warning(f"[批处理] 目录不存在: {base}")
        return files

    for year_dir in sorted(p for p in base.iterdir() if p.is_dir()):
        if not _YEAR_DIR.match(year_dir.name):
            logger.debug(f"[批处理] 跳过非年份目录: {year_dir.name}")
            continue
        nested: list[PdfFile] = []
        for entry in sorted(year_dir.iterdir()):
            if entry.is_dir():
                for pdf in sorted(entry.iterdir()):
                    if pdf.suffix.lower() == ".pdf":
                        nested.append(PdfFile(path=pdf, year=year_dir.name, province=pdf.stem))
            elif entry.suffix.lower() == ".pdf":
                files.append(PdfFile(path=entry, year=year_dir.name, province=entry.stem))
        # 年份目录下直接放置的文件优先于子目录中的同名文件
        files.extend(nested)

    files = unique_branches(files)
    logger.info(f"[批处理] 找到 {len(files)} 个 PDF 文件")
    return files


def unique_branches(files: Iterable[PdfFile]) -> list[PdfFile]:
    """同一年份、同一省份只保留第一个文件

    年份.省份 是检查点分支键，也是栅格化图片目录，重复的文件会互相覆盖。
    """
    seen: dict[tuple[str, str], PdfFile] = {}
    for pdf in files:
        key = (pdf.year, pdf.province)
        if key in seen:
            logger.warning(f"[批处理] {pdf.year} {pdf.province} 重复，忽略 {pdf.path}（已使用 {seen[key].path}）")
            continue
        seen[key] = pdf
    return list(seen.values())


def filter_pdf_files(
    files: Iterable[PdfFile],
    year: str | None = None,
    province: str | None = None,
) -> list[PdfFile]:
    return [
        f
        for f in files
        if (year is None or f.year == year) and (province is None or f.province == province)
    ]


class PdfBatchProcessor:
    """扫描件批处理器"""

    def __init__(
        self,
        profile: InstitutionProfile,
        extractor: StructuredRecordExtractor,
        rasterizer: PdfRasterizer,
        aggregator: ResultAggregator,
        output_dir: str | Path | None = None,
        image_dir: str | Path | None = None,
        concurrency: int | None = None,
    ):
        self.profile = profile
        self.extractor = extractor
        self.rasterizer = rasterizer
        self.aggregator = aggregator
        self.output_dir = Path(output_dir or config.output.output_dir)
        self.image_dir = Path(image_dir or config.extractor.image_dir)
        self.concurrency = max(1, concurrency or config.extractor.concurrency)
        self.normalizer = RowNormalizer(
            school=profile.school,
            facets=profile.facets,
            defaults=profile.defaults,
            specialty_group_rules=profile.specialty_group_rules,
        )

    @staticmethod
    def path_for(pdf: PdfFile) -> SelectionPath:
        return SelectionPath([("year", pdf.year), ("province", pdf.province)])

    async def run(self, files: list[PdfFile], finalize: bool = True) -> BatchSummary:
        summary = BatchSummary()
        unique = unique_branches(files)
        summary.skipped += len(files) - len(unique)
        files = unique
        semaphore = asyncio.Semaphore(self.concurrency)
        logger.info(f"[批处理] 处理 {len(files)} 个文件，并发 {self.concurrency}")

        async def _guarded(pdf: PdfFile) -> None:
            async with semaphore:
                await self._process(pdf, summary)

        await asyncio.gather(*(_guarded(pdf) for pdf in files))

        if finalize:
            await self.aggregator.finalize(status="COMPLETED" if not summary.failed else "PARTIAL")

        logger.info(
            f"[批处理] 完成: 成功 {summary.successful}, 失败 {summary.failed}, "
            f"跳过 {summary.skipped}, 记录 {summary.records} 条"
        )
        return summary

    async def _process(self, pdf: PdfFile, summary: BatchSummary) -> None:
        path = self.path_for(pdf)
        branch_key = self.aggregator.branch_key_for(path)
        if self.aggregator.is_checkpointed(branch_key):
            summary.skipped += 1
            return

        try:
            count, dropped = await self.process_file(pdf)
        except Exception as e:
            summary.failed += 1
            summary.failures.append(f"{pdf.path}: {e}")
            logger.error(f"[批处理] 处理失败 {pdf.path}: {e}")
            return

        summary.successful += 1
        summary.records += count
        summary.dropped += dropped

    async def process_file(self, pdf: PdfFile) -> tuple[int, int]:
        """处理单个 PDF，返回 (写出的记录数, 丢弃的记录数)"""
        logger.info(f"[批处理] {pdf.year} {pdf.province}: {pdf.path}")
        pages = await self.rasterizer.rasterize(pdf.path, self.image_dir / pdf.province / pdf.year)

        context = ExtractionContext(
            school=self.profile.school,
            year=pdf.year,
            province=pdf.province,
            campus=self.profile.defaults.get("campus", ""),
            admission_type=self.profile.defaults.get("admissionType", ""),
        )
        result = await self.extractor.extract(pages, context)

        response_path = (
            self.output_dir / f"{self.profile.resolved_output_name}.{pdf.province}.{pdf.year}.response.txt"
        )
        write_text_atomic(response_path, result.raw_response)

        path = self.path_for(pdf)
        records = []
        for mapping in result.records:
            record = self.normalizer.normalize_mapping(mapping, path)
            if record is not None:
                records.append(record)

        await self.aggregator.record(path, records)
        await self.aggregator.checkpoint(self.aggregator.branch_key_for(path))
        return len(records), result.dropped
