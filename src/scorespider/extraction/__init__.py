"""扫描件抽取模块 - 栅格化、多模态抽取、格式修复与批处理"""

from .batch import BatchSummary, PdfBatchProcessor, PdfFile, filter_pdf_files, scan_pdf_directory
from .extractor import (
    RECORD_KEYS,
    ExtractionContext,
    ExtractionResult,
    StructuredRecordExtractor,
    VisionRecordExtractor,
)
from .rasterizer import PdftoppmRasterizer
from .repair import parse_records, preprocess_record_text, repair_record

__all__ = [
    "BatchSummary",
    "PdfBatchProcessor",
    "PdfFile",
    "filter_pdf_files",
    "scan_pdf_directory",
    "RECORD_KEYS",
    "ExtractionContext",
    "ExtractionResult",
    "StructuredRecordExtractor",
    "VisionRecordExtractor",
    "PdftoppmRasterizer",
    "parse_records",
    "preprocess_record_text",
    "repair_record",
]
