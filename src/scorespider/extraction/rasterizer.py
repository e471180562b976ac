"""PDF 栅格化

调用 poppler 的 pdftoppm 把每页转换为 PNG。
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Protocol

from ..common.config import config
from ..common.exceptions import ExtractionError
from ..common.logger import get_logger
from ..common.utils.file_utils import ensure_directory

logger = get_logger(__name__)


class PdfRasterizer(Protocol):
    async def rasterize(self, pdf_path: Path, output_dir: Path) -> list[Path]:
        ...


class PdftoppmRasterizer:
    """基于 pdftoppm 的栅格化器"""

    def __init__(self, dpi: int | None = None, binary: str = "pdftoppm"):
        self.dpi = dpi or config.extractor.raster_dpi
        self.binary = binary

    async def rasterize(self, pdf_path: Path, output_dir: Path) -> list[Path]:
        """转换 PDF，返回按页码排序的图片路径

        Raises:
            ExtractionError: pdftoppm 不可用、执行失败或没有生成图片
        """
        if shutil.which(self.binary) is None:
            raise ExtractionError(f"未找到 {self.binary}，请安装 poppler-utils")

        ensure_directory(output_dir)
        # 清理上一次的残留图片
        for stale in output_dir.glob("page-*.png"):
            stale.unlink()

        process = await asyncio.create_subprocess_exec(
            self.binary,
            "-png",
            "-r",
            str(self.dpi),
            str(pdf_path),
            str(output_dir / "page"),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise ExtractionError(f"PDF 转换失败 {pdf_path}: {message}")

        pages = sorted(output_dir.glob("page-*.png"), key=_page_number)
        if not pages:
            raise ExtractionError(f"PDF 转换没有生成图片: {pdf_path}")

        logger.info(f"[栅格化] {pdf_path.name} -> {len(pages)} 页 ({self.dpi} DPI)")
        return pages


def _page_number(path: Path) -> int:
    suffix = path.stem.rsplit("-", 1)[-1]
    return int(suffix) if suffix.isdigit() else 0
