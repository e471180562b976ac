"""全局常量"""

from __future__ import annotations

# 标准筛选项键
FACET_YEAR = "year"
FACET_PROVINCE = "province"
FACET_CAMPUS = "campus"
FACET_ADMISSION_TYPE = "admissionType"
FACET_CATEGORY = "category"
FACET_SPECIALTY_GROUP = "specialtyGroup"

# 目标记录的固定字段（顺序即输出顺序）
RECORD_FIELDS: tuple[str, ...] = (
    "school",
    "campus",
    "year",
    "admissionType",
    "province",
    "category",
    "major",
    "specialtyGroup",
    "plannedCount",
    "lowestScore",
    "highestScore",
    "lowestRank",
)

# 科类 -> 专业组 的经验映射（未列出的科类按原值使用）
DEFAULT_SPECIALTY_GROUP_RULES: dict[str, str] = {
    "综合改革": "物理组",
    "理科": "理工",
    "文科": "文史",
}

# 结果表中表示加载中/无数据的占位行
PLACEHOLDER_ROW_CLASSES: tuple[str, ...] = ("loading", "no_data")

# 未知表格的默认列顺序
DEFAULT_POSITIONAL_FIELDS: tuple[str, ...] = (
    "major",
    "lowestScore",
    "highestScore",
    "lowestRank",
)

DEFAULT_MIN_CELLS = 3
DEFAULT_OPTION_TIMEOUT_MS = 10000
DEFAULT_SETTLE_TIMEOUT_MS = 10000
