"""筛选项模型

FacetSpec 以声明方式描述一个院校页面的筛选项链：每个筛选项的键、
是否必需、依赖哪些上游筛选项，以及它在页面上的控件形态。
遍历引擎统一解释该声明，不为单个院校写分支逻辑。
"""

from __future__ import annotations

from typing import Iterable, Literal

from pydantic import BaseModel, Field, model_validator

from ..common.exceptions import ConfigValidationError

WidgetKind = Literal["link_list", "select", "text_region"]


class FacetDefinition(BaseModel):
    """单个筛选项定义"""

    key: str = Field(..., description="稳定标识，如 year / province")
    name: str = Field(default="", description="页面上的显示名，如 省份")
    required: bool = Field(default=True, description="缺失时是否视为该分支不可用")
    depends_on: list[str] = Field(default_factory=list, description="必须先选定的上游筛选项")

    widget: WidgetKind = Field(default="link_list", description="控件形态")
    container: str = Field(..., description="筛选项容器的 CSS 选择器")
    option_selector: str = Field(default="a", description="容器内选项元素的选择器")
    pattern: str | None = Field(
        default=None,
        description="text_region 控件使用的正则，第一个分组为选项文本",
    )
    click_selector: str | None = Field(
        default=None,
        description="可点击选项元素的选择器，默认为 container + option_selector",
    )

    include: list[str] = Field(default_factory=list, description="仅保留这些选项（为空表示不限）")
    exclude: list[str] = Field(default_factory=list, description="排除这些选项")
    field: str | None = Field(default=None, description="选中值写入的记录字段，默认同 key")

    @property
    def record_field(self) -> str:
        return self.field or self.key

    @property
    def display_name(self) -> str:
        return self.name or self.key

    @property
    def option_locator(self) -> str:
        return self.click_selector or f"{self.container} {self.option_selector}"

    def filter_labels(self, labels: Iterable[str]) -> list[str]:
        """去空白、去重（保持顺序）并应用 include/exclude"""
        seen: set[str] = set()
        result: list[str] = []
        for raw in labels:
            label = (raw or "").strip()
            if not label or label in seen:
                continue
            seen.add(label)
            if self.include and label not in self.include:
                continue
            if label in self.exclude:
                continue
            result.append(label)
        return result


class FacetSpec(BaseModel):
    """有序的筛选项列表

    约束：键唯一；依赖只能指向排在前面的筛选项（因此必然是 DAG）。
    """

    facets: list[FacetDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_order(self) -> "FacetSpec":
        seen: set[str] = set()
        for facet in self.facets:
            if facet.key in seen:
                raise ConfigValidationError(f"筛选项键重复: {facet.key}")
            unknown = [dep for dep in facet.depends_on if dep not in seen]
            if unknown:
                raise ConfigValidationError(
                    f"筛选项 {facet.key} 依赖未定义或排在其后的筛选项: {', '.join(unknown)}"
                )
            seen.add(facet.key)
        return self

    def __len__(self) -> int:
        return len(self.facets)

    def keys(self) -> list[str]:
        return [facet.key for facet in self.facets]

    def get(self, key: str) -> FacetDefinition | None:
        for facet in self.facets:
            if facet.key == key:
                return facet
        return None

    def index_of(self, key: str) -> int:
        for index, facet in enumerate(self.facets):
            if facet.key == key:
                return index
        raise KeyError(key)


class SelectionPath:
    """遍历中的一个位置：筛选项键 -> 选中标签 的有序映射

    不可变：extend() 返回新对象，回溯只需丢弃子路径。
    记录收集时通过 snapshot() 取得独立的字典副本。
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[tuple[str, str]] = ()):
        self._items: tuple[tuple[str, str], ...] = tuple(items)

    def extend(self, key: str, label: str) -> "SelectionPath":
        if key in self:
            raise ValueError(f"路径中已包含筛选项 {key}")
        return SelectionPath(self._items + ((key, label),))

    def get(self, key: str, default: str | None = None) -> str | None:
        for item_key, label in self._items:
            if item_key == key:
                return label
        return default

    def keys(self) -> list[str]:
        return [key for key, _ in self._items]

    def items(self) -> list[tuple[str, str]]:
        return list(self._items)

    def snapshot(self) -> dict[str, str]:
        return dict(self._items)

    def prefix(self, key: str) -> "SelectionPath":
        """截取到指定筛选项（含）为止的路径"""
        for index, (item_key, _) in enumerate(self._items):
            if item_key == key:
                return SelectionPath(self._items[: index + 1])
        return SelectionPath(self._items)

    def branch_key(self, separator: str = ".") -> str:
        return separator.join(label for _, label in self._items)

    @property
    def depth(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return any(item_key == key for item_key, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SelectionPath):
            return self._items == other._items
        if isinstance(other, dict):
            return self.snapshot() == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        inner = ", ".join(f"{key}={label!r}" for key, label in self._items)
        return f"SelectionPath({inner})"

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "SelectionPath":
        return cls(data.items())
