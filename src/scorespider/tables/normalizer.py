"""行归一化

把一行原始单元格转换为 NormalizedRecord。字段取值优先级：
1. 表头（或列位置）对应的单元格
2. 选择路径中固定该字段的筛选项
3. 页面文本提示
4. 院校默认值（如校区 "校本部"）
5. 空字符串

归一化是纯函数：相同输入总是得到相同记录。
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence

from ..common.constants import DEFAULT_SPECIALTY_GROUP_RULES, RECORD_FIELDS
from ..common.logger import format_path, get_logger
from ..common.types import NormalizedRecord
from ..facets.models import FacetSpec, SelectionPath
from .layouts import TableLayout

logger = get_logger(__name__)


def parse_score(value: str) -> float | None:
    """解析纯数字分数，区间、nan/inf 或其他文本返回 None"""
    try:
        score = float(value.strip())
    except (ValueError, AttributeError):
        return None
    return score if math.isfinite(score) else None


def reconcile_score_order(record: NormalizedRecord) -> bool:
    """最低分高于最高分时交换两者

    Returns:
        是否发生了交换
    """
    lowest = parse_score(record.lowestScore)
    highest = parse_score(record.highestScore)
    if lowest is None or highest is None or lowest <= highest:
        return False
    record.lowestScore, record.highestScore = record.highestScore, record.lowestScore
    return True


def derive_specialty_group(category: str, rules: Mapping[str, str]) -> str:
    """由科类推断专业组（经验规则，未列出的科类按原值）"""
    return rules.get(category, category)


class RowNormalizer:
    """行归一化器"""

    def __init__(
        self,
        school: str,
        facets: FacetSpec | None = None,
        defaults: Mapping[str, str] | None = None,
        specialty_group_rules: Mapping[str, str] | None = None,
    ):
        self.school = school
        self.facets = facets or FacetSpec()
        self.defaults = dict(defaults or {})
        self.specialty_group_rules = dict(
            DEFAULT_SPECIALTY_GROUP_RULES if specialty_group_rules is None else specialty_group_rules
        )

    def normalize(
        self,
        layout: TableLayout,
        headers: Sequence[str],
        cells: Sequence[str],
        path: SelectionPath,
        hints: Mapping[str, str] | None = None,
    ) -> NormalizedRecord | None:
        """归一化一行；单元格数不足时返回 None"""
        if len(cells) < layout.min_cells:
            return None
        return self._build(self._read_cells(layout, list(headers), list(cells)), path, hints or {})

    def normalize_mapping(
        self,
        mapping: Mapping[str, Any],
        path: SelectionPath,
        layout: TableLayout | None = None,
    ) -> NormalizedRecord | None:
        """归一化抽取器返回的键值记录（键为中文表头）"""
        layout = layout or TableLayout.extracted()
        headers = list(mapping.keys())
        cells = ["" if mapping[key] is None else str(mapping[key]).strip() for key in headers]
        return self.normalize(layout, headers, cells, path)

    def _read_cells(self, layout: TableLayout, headers: list[str], cells: list[str]) -> dict[str, str]:
        values: dict[str, str] = {}
        if layout.uses_positional(headers, len(cells)):
            for index, field_name in layout.positional.items():
                if index < len(cells):
                    values[field_name] = cells[index].strip()
            return values

        for index, header in enumerate(headers):
            if index >= len(cells):
                break
            field_name = layout.field_for_header(header)
            if field_name and cells[index].strip() and not values.get(field_name):
                values[field_name] = cells[index].strip()
        return values

    def _path_values(self, path: SelectionPath) -> dict[str, str]:
        values: dict[str, str] = {}
        for key, label in path.items():
            facet = self.facets.get(key)
            values[facet.record_field if facet else key] = label
        return values

    def _build(
        self,
        cell_values: dict[str, str],
        path: SelectionPath,
        hints: Mapping[str, str],
    ) -> NormalizedRecord:
        path_values = self._path_values(path)
        sources = (cell_values, path_values, hints, self.defaults)

        def pick(field_name: str) -> str:
            for source in sources:
                value = source.get(field_name)
                if value:
                    return value
            return ""

        values: dict[str, str] = {name: pick(name) for name in RECORD_FIELDS}
        if not values["school"]:
            values["school"] = self.school

        # 只在没有任何来源给出专业组时才推断
        if not values["specialtyGroup"] and values["category"]:
            values["specialtyGroup"] = derive_specialty_group(
                values["category"], self.specialty_group_rules
            )

        for extra in (cell_values, self.defaults):
            for key, value in extra.items():
                if key not in RECORD_FIELDS and key not in values:
                    values[key] = value

        record = NormalizedRecord.from_fields(values)
        if reconcile_score_order(record):
            logger.warning(
                f"[归一化] 最低分高于最高分，已交换: {record.major or record.category} "
                f"{format_path(path)} -> lowest={record.lowestScore}, highest={record.highestScore}"
            )
        return record
