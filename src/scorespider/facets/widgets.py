"""筛选项控件策略

不同院校的筛选控件形态不同：
1. LinkListWidget - 容器内一组可点击链接（如 ``.filter dd[data-param="ssmc"] a``）
2. SelectWidget - 原生 <select> 下拉框
3. TextRegionWidget - 选项只能从页面文本中按 "标签：选项… 下一标签：" 截取

每种控件提供读取脚本与选择脚本，FacetReader / FacetSelector 只依赖这里的接口。
新增控件形态通过 register_widget() 注册，不修改遍历核心。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import FacetDefinition

# 选择脚本的返回值
SELECT_CLICKED = "clicked"
SELECT_MISSING = "missing"
SELECT_ABSENT = "absent"


_LINK_LIST_READ = """
({container, option}) => {
  const root = document.querySelector(container);
  if (!root) return null;
  return Array.from(root.querySelectorAll(option)).map(el => (el.textContent || '').trim());
}
"""

_CLICK_BY_TEXT = """
({locator, label}) => {
  const nodes = Array.from(document.querySelectorAll(locator));
  if (nodes.length === 0) return 'absent';
  const target = nodes.find(el => (el.textContent || '').trim() === label);
  if (!target) return 'missing';
  target.click();
  return 'clicked';
}
"""

_SELECT_READ = """
({container}) => {
  const select = document.querySelector(container);
  if (!select || !select.options) return null;
  return Array.from(select.options).map(opt => (opt.textContent || '').trim());
}
"""

_SELECT_CHOOSE = """
({container, label}) => {
  const select = document.querySelector(container);
  if (!select || !select.options) return 'absent';
  const option = Array.from(select.options).find(opt => (opt.textContent || '').trim() === label);
  if (!option) return 'missing';
  select.value = option.value;
  select.dispatchEvent(new Event('input', { bubbles: true }));
  select.dispatchEvent(new Event('change', { bubbles: true }));
  return 'clicked';
}
"""

_TEXT_REGION_READ = """
({container, pattern}) => {
  const root = document.querySelector(container);
  if (!root) return null;
  const match = (root.innerText || '').match(new RegExp(pattern));
  if (!match || !match[1]) return null;
  return match[1].trim().split(/\\s+/).filter(item => item.length > 0);
}
"""


class FacetWidget(ABC):
    """控件策略基类"""

    @property
    @abstractmethod
    def kind(self) -> str:
        """控件类型名"""
        pass

    @abstractmethod
    def read_script(self) -> str:
        """返回读取选项的页面脚本

        脚本返回 null 表示控件不存在，返回数组表示当前可见选项。
        """
        pass

    @abstractmethod
    def read_args(self, facet: FacetDefinition) -> dict[str, Any]:
        pass

    def select_script(self) -> str:
        """返回选择选项的页面脚本，脚本返回 clicked / missing / absent"""
        return _CLICK_BY_TEXT

    def select_args(self, facet: FacetDefinition, label: str) -> dict[str, Any]:
        return {"locator": facet.option_locator, "label": label}

    def wait_selector(self, facet: FacetDefinition) -> str | None:
        """选项加载中时等待出现的选择器，None 表示不等待"""
        return facet.option_locator


class LinkListWidget(FacetWidget):
    """链接列表控件"""

    @property
    def kind(self) -> str:
        return "link_list"

    def read_script(self) -> str:
        return _LINK_LIST_READ

    def read_args(self, facet: FacetDefinition) -> dict[str, Any]:
        return {"container": facet.container, "option": facet.option_selector}


class SelectWidget(FacetWidget):
    """原生下拉框控件"""

    @property
    def kind(self) -> str:
        return "select"

    def read_script(self) -> str:
        return _SELECT_READ

    def read_args(self, facet: FacetDefinition) -> dict[str, Any]:
        return {"container": facet.container}

    def select_script(self) -> str:
        return _SELECT_CHOOSE

    def select_args(self, facet: FacetDefinition, label: str) -> dict[str, Any]:
        return {"container": facet.container, "label": label}

    def wait_selector(self, facet: FacetDefinition) -> str | None:
        return f"{facet.container} option"


class TextRegionWidget(FacetWidget):
    """页面文本区域控件

    选项来自 ``pattern`` 的第一个分组，按空白切分；点击时使用 ``click_selector``。
    """

    @property
    def kind(self) -> str:
        return "text_region"

    def read_script(self) -> str:
        return _TEXT_REGION_READ

    def read_args(self, facet: FacetDefinition) -> dict[str, Any]:
        return {"container": facet.container, "pattern": facet.pattern or ""}

    def wait_selector(self, facet: FacetDefinition) -> str | None:
        return None


_WIDGETS: dict[str, FacetWidget] = {}


def register_widget(widget: FacetWidget) -> None:
    """注册控件策略（同名覆盖）"""
    _WIDGETS[widget.kind] = widget


def get_widget(kind: str) -> FacetWidget:
    try:
        return _WIDGETS[kind]
    except KeyError:
        raise KeyError(f"未注册的控件类型: {kind}") from None


for _widget in (LinkListWidget(), SelectWidget(), TextRegionWidget()):
    register_widget(_widget)
