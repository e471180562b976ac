"""表格版式注册表

每个版式是一条声明：所在容器、表头指纹（纯函数判断）、表头到字段的映射、
以及按列位置兜底的映射。新的院校或新的表格形态通过注册新版式接入，
遍历核心不需要任何分支。
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field

from ..common.constants import DEFAULT_MIN_CELLS, DEFAULT_POSITIONAL_FIELDS

UNKNOWN_TAG = "unknown"
EXTRACTED_TAG = "extracted"

# 全局表头词表：未识别表格的降级映射，以及扫描件抽取结果的中文键映射
HEADER_VOCABULARY: dict[str, str] = {
    "学校": "school",
    "校区": "campus",
    "年份": "year",
    "计划类型": "admissionType",
    "招生类型": "admissionType",
    "类型": "admissionType",
    "省份": "province",
    "省市": "province",
    "科类": "category",
    "类别": "admissionType",
    "专业": "major",
    "专业名称": "major",
    "专业组": "specialtyGroup",
    "专业组/选考科目": "specialtyGroup",
    "专业组/科目类/单设志愿": "specialtyGroup",
    "招生计划": "plannedCount",
    "计划数": "plannedCount",
    "最低分": "lowestScore",
    "最高分": "highestScore",
    "最低分排名": "lowestRank",
    "最低位次": "lowestRank",
    "平均分": "averageScore",
    "录取人数": "admittedCount",
    "控制线": "controlLine",
    "院（系）": "department",
    "院系": "department",
    "普通类调档线": "batchLine",
    "普通类全市位次": "cityRank",
}


def normalize_header(text: str) -> str:
    """去除表头中的空白，便于与词表比较"""
    return "".join((text or "").split())


class LayoutDefinition(BaseModel):
    """一种已知的表格版式"""

    name: str = Field(..., description="注册名，全局唯一")
    tag: str = Field(..., description="版式标签，如 general / byMajor")
    container: str = Field(..., description="表格容器选择器")

    required_headers: list[str] = Field(default_factory=list, description="必须全部出现的表头")
    any_headers: list[str] = Field(default_factory=list, description="至少出现其一的表头（为空不限）")
    forbidden_headers: list[str] = Field(default_factory=list, description="出现即不匹配的表头")

    header_map: dict[str, str] = Field(default_factory=dict, description="表头 -> 字段")
    positional: dict[int, str] = Field(default_factory=dict, description="列序号 -> 字段")
    # 表头不可靠的站点：始终按列位置读取
    positional_first: bool = False
    # 表头数不超过该值且单元格足够时，按列位置覆盖表头映射
    positional_max_headers: int | None = None
    min_cells: int = DEFAULT_MIN_CELLS

    def matches(self, headers: Iterable[str]) -> bool:
        """表头指纹判断（纯函数）

        没有表头的表格只能被按列位置读取的版式匹配；设置了 positional_max_headers 的版式
        只匹配表头数不超过该值的表格，更宽的表格交给 unknown 降级处理。
        """
        headers = list(headers)
        if not headers and not self.positional_first:
            return False
        if self.positional_max_headers is not None and len(headers) > self.positional_max_headers:
            return False
        present = {normalize_header(h) for h in headers}
        if any(normalize_header(h) not in present for h in self.required_headers):
            return False
        if self.any_headers and not any(normalize_header(h) in present for h in self.any_headers):
            return False
        return not any(normalize_header(h) in present for h in self.forbidden_headers)

    def to_layout(self) -> "TableLayout":
        mapping = dict(HEADER_VOCABULARY)
        mapping.update({normalize_header(k): v for k, v in self.header_map.items()})
        return TableLayout(
            tag=self.tag,
            container=self.container,
            headers=list(self.required_headers),
            header_map=mapping,
            positional=dict(self.positional),
            positional_first=self.positional_first,
            positional_max_headers=self.positional_max_headers,
            min_cells=self.min_cells,
        )


class TableLayout(BaseModel):
    """叶子节点上识别出的版式（含解析后的映射）"""

    tag: str
    container: str = ""
    headers: list[str] = Field(default_factory=list)
    header_map: dict[str, str] = Field(default_factory=dict)
    positional: dict[int, str] = Field(default_factory=dict)
    positional_first: bool = False
    positional_max_headers: int | None = None
    min_cells: int = DEFAULT_MIN_CELLS

    def field_for_header(self, header: str) -> str | None:
        return self.header_map.get(normalize_header(header))

    def uses_positional(self, headers: list[str], cell_count: int) -> bool:
        """是否按列位置取值"""
        if not self.positional:
            return False
        if self.positional_first:
            return True
        if self.positional_max_headers is not None:
            return len(headers) <= self.positional_max_headers and cell_count >= len(self.positional)
        # 没有任何表头能识别时才退回位置映射
        return not any(self.field_for_header(h) for h in headers)

    @classmethod
    def unknown(cls, container: str = "", min_cells: int = DEFAULT_MIN_CELLS) -> "TableLayout":
        """降级版式：先按全局词表，再按默认列顺序"""
        return cls(
            tag=UNKNOWN_TAG,
            container=container,
            header_map=dict(HEADER_VOCABULARY),
            positional=dict(enumerate(DEFAULT_POSITIONAL_FIELDS)),
            min_cells=min_cells,
        )

    @classmethod
    def extracted(cls) -> "TableLayout":
        """扫描件抽取结果使用的版式（键即表头）"""
        return cls(tag=EXTRACTED_TAG, header_map=dict(HEADER_VOCABULARY), min_cells=1)


class LayoutRegistry:
    """按注册顺序保存版式"""

    def __init__(self, layouts: Iterable[LayoutDefinition] = ()):
        self._layouts: dict[str, LayoutDefinition] = {}
        for layout in layouts:
            self.register(layout)

    def register(self, layout: LayoutDefinition) -> None:
        if layout.name in self._layouts:
            raise ValueError(f"版式已注册: {layout.name}")
        self._layouts[layout.name] = layout

    def get(self, name: str) -> LayoutDefinition | None:
        return self._layouts.get(name)

    def containers(self) -> list[str]:
        """所有版式涉及的容器（保持注册顺序去重）"""
        return list(dict.fromkeys(layout.container for layout in self._layouts.values()))

    def candidates(self, container: str) -> list[LayoutDefinition]:
        return [layout for layout in self._layouts.values() if layout.container == container]

    def __len__(self) -> int:
        return len(self._layouts)

    def __iter__(self):
        return iter(self._layouts.values())


# ============================================================================
# 内置版式
# ============================================================================

GENERAL_TABLE = "table.table_con"
MAJOR_TABLE = "table.sort-table"

# 录取概况：招生类型 或 专业组/选考科目 至少出现其一
GENERAL_LAYOUT = LayoutDefinition(
    name="general",
    tag="general",
    container=GENERAL_TABLE,
    any_headers=["招生类型", "专业组/选考科目"],
    min_cells=3,
)

# 北京交通大学录取概况：只有分数列
GENERAL_SCORES_LAYOUT = LayoutDefinition(
    name="general_scores",
    tag="general",
    container=GENERAL_TABLE,
    required_headers=["最低分"],
    header_map={"最低分": "lowestScore", "平均分": "averageScore", "最高分": "highestScore"},
    min_cells=3,
)

# 分专业录取情况（含排名）
BY_MAJOR_RANK_LAYOUT = LayoutDefinition(
    name="by_major_rank",
    tag="byMajor",
    container=MAJOR_TABLE,
    required_headers=["专业", "最低分"],
    any_headers=["最低分排名", "专业组/科目类/单设志愿"],
    min_cells=4,
)

# 分专业录取情况（容器即指纹；紧凑表头时按列位置读取）
BY_MAJOR_COMPACT_LAYOUT = LayoutDefinition(
    name="by_major_compact",
    tag="byMajor",
    container=MAJOR_TABLE,
    positional={
        0: "major",
        1: "admittedCount",
        2: "highestScore",
        3: "lowestScore",
        4: "averageScore",
    },
    positional_max_headers=5,
    min_cells=4,
)

# 北京航空航天大学：表头不可靠，按固定列顺序
SCORES_TABLE_LAYOUT = LayoutDefinition(
    name="scores_table",
    tag="general",
    container="table.scores-table",
    positional={
        0: "year",
        1: "province",
        2: "category",
        3: "admissionType",
        4: "lowestScore",
        5: "averageScore",
        6: "controlLine",
    },
    positional_first=True,
    min_cells=3,
)

# 西安电子科技大学：通用 table，按固定列顺序
PLAIN_TABLE_LAYOUT = LayoutDefinition(
    name="plain_table",
    tag="byMajor",
    container="table",
    positional={
        0: "year",
        1: "province",
        2: "admissionType",
        3: "category",
        4: "major",
        5: "highestScore",
        6: "lowestScore",
    },
    positional_first=True,
    min_cells=7,
)

BUILTIN_LAYOUTS: dict[str, LayoutDefinition] = {
    layout.name: layout
    for layout in (
        GENERAL_LAYOUT,
        GENERAL_SCORES_LAYOUT,
        BY_MAJOR_RANK_LAYOUT,
        BY_MAJOR_COMPACT_LAYOUT,
        SCORES_TABLE_LAYOUT,
        PLAIN_TABLE_LAYOUT,
    )
}
