"""扫描件结构化抽取

StructuredRecordExtractor 是抽取器接口：输入栅格化后的页面图片与上下文，
输出中文键的松散记录。VisionRecordExtractor 通过多模态模型实现该接口，
模型输出一律视为不可信文本，先经过格式修复再交给行归一化。
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from PIL import Image

from ..common.config import config
from ..common.exceptions import ExtractorResponseError
from ..common.logger import get_logger
from ..common.utils import get_prompt_path, render_template
from .repair import parse_records

logger = get_logger(__name__)

PROMPT_TEMPLATE_PATH = get_prompt_path("pdf_records.yaml")

# 抽取记录使用的中文键
RECORD_KEYS: tuple[str, ...] = (
    "学校",
    "校区",
    "年份",
    "计划类型",
    "省市",
    "科类",
    "院（系）",
    "专业",
    "招生计划",
    "最低分",
    "最高分",
    "最低分排名",
    "普通类调档线",
    "普通类全市位次",
)


@dataclass
class ExtractionContext:
    """抽取上下文"""

    school: str
    year: str
    province: str
    campus: str = ""
    admission_type: str = ""


@dataclass
class ExtractionResult:
    records: list[dict[str, str]] = field(default_factory=list)
    raw_response: str = ""
    dropped: int = 0


class StructuredRecordExtractor(Protocol):
    """结构化记录抽取器接口"""

    async def extract(self, pages: Sequence[Path], context: ExtractionContext) -> ExtractionResult:
        ...


def encode_image(path: str | Path, max_size: int | None = None) -> str:
    """读取页面图片并编码为 base64

    长边超过 max_size（默认 MAX_IMAGE_SIZE）时等比缩小，避免超过多模态模型的图片尺寸上限。
    """
    path = Path(path)
    max_size = max_size or config.extractor.max_image_size
    with Image.open(path) as image:
        if max(image.size) <= max_size:
            return base64.b64encode(path.read_bytes()).decode("ascii")
        original_size = image.size
        resized = image.copy()

    resized.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    logger.debug(f"[抽取] {path.name} 缩放 {original_size[0]}x{original_size[1]} -> {resized.width}x{resized.height}")
    buffer = io.BytesIO()
    resized.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class VisionRecordExtractor:
    """多模态模型抽取器"""

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        model: str | None = None,
        llm: ChatOpenAI | None = None,
        max_image_size: int | None = None,
    ):
        self.max_image_size = max_image_size or config.extractor.max_image_size
        if llm is not None:
            self.llm = llm
            return

        self.api_key = api_key or config.extractor.api_key
        self.api_base = api_base or config.extractor.api_base
        self.model = model or config.extractor.model

        if not self.api_key:
            raise ValueError("VISION_API_KEY not set")

        self.llm = ChatOpenAI(
            api_key=self.api_key,
            base_url=self.api_base,
            model=self.model,
            temperature=config.extractor.temperature,
            max_tokens=config.extractor.max_tokens,
        )

    def build_messages(self, pages: Sequence[Path], context: ExtractionContext) -> list:
        variables = {
            "school": context.school,
            "year": context.year,
            "province": context.province,
            "campus": context.campus,
            "admission_type": context.admission_type,
        }
        system_prompt = render_template(PROMPT_TEMPLATE_PATH, section="system_prompt")
        user_message = render_template(
            PROMPT_TEMPLATE_PATH, section="user_message", variables=variables
        )

        content: list[dict] = [{"type": "text", "text": user_message}]
        for page in pages:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:image/png;base64,{encode_image(page, self.max_image_size)}"},
                }
            )
        return [SystemMessage(content=system_prompt), HumanMessage(content=content)]

    async def extract(self, pages: Sequence[Path], context: ExtractionContext) -> ExtractionResult:
        """抽取记录

        Raises:
            ExtractorResponseError: 模型返回空响应或非文本响应
        """
        if not pages:
            return ExtractionResult()

        logger.info(f"[抽取] {context.year} {context.province}: 发送 {len(pages)} 页图片")
        response = await self.llm.ainvoke(self.build_messages(pages, context))
        text = response.content
        if isinstance(text, list):
            text = "".join(part.get("text", "") for part in text if isinstance(part, dict))
        if not isinstance(text, str) or not text.strip():
            raise ExtractorResponseError("抽取模型返回空响应", raw_response=str(response.content))

        records, dropped = parse_records(text, RECORD_KEYS)
        logger.info(f"[抽取] {context.year} {context.province}: 解析出 {len(records)} 条记录，丢弃 {dropped} 条")
        return ExtractionResult(records=records, raw_response=text, dropped=dropped)
