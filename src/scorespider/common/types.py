"""核心数据类型定义"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .constants import RECORD_FIELDS


# ============================================================================
# 输出记录
# ============================================================================


class NormalizedRecord(BaseModel):
    """统一的录取分数记录

    所有值均为字符串：保留前导零、区间写法（如 "600-610"）以及空值语义。
    缺失数据一律为空字符串，不会省略键或写 null。
    """

    school: str = ""
    campus: str = ""
    year: str = ""
    admissionType: str = ""
    province: str = ""
    category: str = ""
    major: str = ""
    specialtyGroup: str = ""
    plannedCount: str = ""
    lowestScore: str = ""
    highestScore: str = ""
    lowestRank: str = ""
    extensions: dict[str, str] = Field(default_factory=dict, description="院校特有字段，如 controlLine")

    def to_dict(self) -> dict[str, str]:
        """展开为输出字典（固定字段在前，扩展字段在后）"""
        data = {name: getattr(self, name) for name in RECORD_FIELDS}
        for key, value in self.extensions.items():
            if key not in data:
                data[key] = value
        return data

    @classmethod
    def from_fields(cls, values: dict[str, Any]) -> "NormalizedRecord":
        """由字段字典构造，非固定字段归入 extensions"""
        fixed: dict[str, str] = {}
        extensions: dict[str, str] = {}
        for key, value in values.items():
            text = "" if value is None else str(value)
            if key in RECORD_FIELDS:
                fixed[key] = text
            else:
                extensions[key] = text
        return cls(**fixed, extensions=extensions)


# ============================================================================
# 页面视图
# ============================================================================


class TableSnapshot(BaseModel):
    """页面上一个结果表格的快照"""

    container: str = Field(..., description="命中的容器选择器")
    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)

    @property
    def has_rows(self) -> bool:
        return bool(self.rows)


class ViewState(BaseModel):
    """叶子节点的结果视图"""

    tables: list[TableSnapshot] = Field(default_factory=list)
    # 从页面文本中识别出的上下文值，例如当前专业组
    hints: dict[str, str] = Field(default_factory=dict)

    @property
    def has_rows(self) -> bool:
        return any(table.has_rows for table in self.tables)


class SelectionAck(BaseModel):
    """一次筛选项选择的确认"""

    facet_key: str
    label: str
    settled_ms: int = 0
