'''抽取结果格式修复

视觉模型逐行输出 JSON 记录，但经常出现：
- 代码块包裹、全角引号
- 两个字段之间缺少逗号（``"理工""院（系）"``）
- 专业名称等自由文本中出现未转义的引号
- ``"最低分排名":"""`` 这类多余引号
- 末尾多余逗号

这里按顺序做尽力修复；仍无法解析时按已知键用正则抢救，
什么都抢救不出来才抛出 FormatRepairFailure（该条记录丢弃，不影响整批）。
'''

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from ..common.exceptions import FormatRepairFailure
from ..common.logger import get_logger

logger = get_logger(__name__)

# 可能包含引号的自由文本字段
FREE_TEXT_KEYS: tuple[str, ...] = ("专业", "院（系）")

# 扁平记录：不含嵌套对象
_FLAT_OBJECT = re.compile(r"\{[^{}]*\}")
_EMPTY_VALUE_ARTIFACT = re.compile(r':\s*"""(?=\s*[,}])')
_GLUED_SEPARATOR = re.compile(r'(?<![:\[{,\s])""(?![,}\]:\s"])')


def _strip_code_fences(text: str) -> str:
    if "```" not in text:
        return text
    cleaned = re.sub(r"```(?:json|jsonl)?", "", text, flags=re.IGNORECASE)
    return cleaned.replace("```", "").strip()


def _normalize_quotes(text: str) -> str:
    # 全角引号替换为 ASCII，仅在直接解析失败后使用
    return (
        text.replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
        .replace(" ", " ")
    )


def _cleanup_json_text(json_text: str) -> str:
    cleaned = re.sub(r",\s*}", "}", json_text)
    cleaned = re.sub(r",\s*]", "]", cleaned)
    return cleaned


def _escape_free_text(text: str, key: str) -> str:
    """转义自由文本字段值中的裸引号"""
    pattern = re.compile(rf'("{re.escape(key)}"\s*:\s*")(.*?)(?="\s*,\s*"|"\s*\}})', re.DOTALL)

    def _fix(match: re.Match[str]) -> str:
        value = re.sub(r'(?<!\\)"', r'\\"', match.group(2))
        return match.group(1) + value

    return pattern.sub(_fix, text)


def preprocess_record_text(text: str) -> str:
    """对单条记录文本执行修复步骤（不保证无损）"""
    result = _EMPTY_VALUE_ARTIFACT.sub(':""', text)
    result = _GLUED_SEPARATOR.sub('","', result)
    for key in FREE_TEXT_KEYS:
        result = _escape_free_text(result, key)
    return _cleanup_json_text(result)


def iter_record_candidates(response: str, anchor_key: str = "学校") -> list[str]:
    """从模型响应中切出候选记录文本"""
    cleaned = _strip_code_fences(response or "")
    candidates = [m.group(0) for m in _FLAT_OBJECT.finditer(cleaned)]
    anchored = [c for c in candidates if f'"{anchor_key}"' in c]
    return anchored or candidates


def _salvage(text: str, keys: Iterable[str]) -> dict[str, str]:
    salvaged: dict[str, str] = {}
    for key in keys:
        if key in FREE_TEXT_KEYS:
            match = re.search(
                rf'"{re.escape(key)}"\s*:\s*"(.*?)(?:"\s*,\s*"|"\s*\}})', text, re.DOTALL
            )
        else:
            match = re.search(rf'"{re.escape(key)}"\s*:\s*"?([^",}}]*)"?', text)
        if match:
            salvaged[key] = match.group(1).strip()
    return salvaged


def stringify_record(record: dict[str, Any], keys: Iterable[str] = ()) -> dict[str, str]:
    """所有值转为字符串，None 与缺失键统一为空字符串"""
    result = {str(k): "" if v is None else str(v).strip() for k, v in record.items()}
    for key in keys:
        result.setdefault(key, "")
    return result


def repair_record(text: str, keys: Iterable[str]) -> dict[str, str]:
    """把单条记录文本修复为字典

    Raises:
        FormatRepairFailure: 修复和抢救都失败
    """
    keys = tuple(keys)
    for variant in (text, _normalize_quotes(text)):
        try:
            data = json.loads(preprocess_record_text(variant))
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return stringify_record(data)

    salvaged = _salvage(_normalize_quotes(text), keys)
    if not salvaged:
        raise FormatRepairFailure(text)
    logger.debug(f"[修复] 标准解析失败，按键抢救出 {len(salvaged)} 个字段")
    return salvaged


def parse_records(response: str, keys: Iterable[str]) -> tuple[list[dict[str, str]], int]:
    """解析模型响应中的全部记录

    Returns:
        (记录列表, 丢弃的条数)
    """
    keys = tuple(keys)
    records: list[dict[str, str]] = []
    dropped = 0
    for candidate in iter_record_candidates(response):
        try:
            records.append(repair_record(candidate, keys))
        except FormatRepairFailure as e:
            dropped += 1
            logger.warning(f"[修复] 丢弃无法修复的记录: {e}")
    return records, dropped
