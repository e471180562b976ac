"""表格识别

TableProbe 从页面读取结果视图（所有已知容器中的表格 + 页面文本提示），
TableClassifier 是纯函数：对视图中的每张表按注册顺序尝试候选版式，
首个完全匹配者胜出；没有匹配但有数据行时退回 unknown 版式。

同一叶子节点可能同时出现两张表（录取概况 + 分专业），两者分别识别、分别处理。
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..common.browser import BrowserSession
from ..common.constants import PLACEHOLDER_ROW_CLASSES
from ..common.exceptions import ClassificationFailure
from ..common.logger import format_path, get_logger
from ..common.types import TableSnapshot, ViewState
from ..facets.models import SelectionPath
from .layouts import LayoutRegistry, TableLayout

logger = get_logger(__name__)


_CAPTURE_SCRIPT = """
({containers, placeholders}) => {
  const seen = new Set();
  const tables = [];
  const cellText = cell => (cell.textContent || '').trim();
  for (const container of containers) {
    for (const table of document.querySelectorAll(container)) {
      if (seen.has(table)) continue;
      seen.add(table);
      let headers = Array.from(table.querySelectorAll('thead tr th')).map(cellText);
      let rows = Array.from(table.querySelectorAll('tbody tr'));
      if (headers.length === 0) {
        const all = Array.from(table.querySelectorAll('tr'));
        const first = all.length > 0 ? all[0] : null;
        if (first && first.querySelector('th')) {
          headers = Array.from(first.querySelectorAll('th, td')).map(cellText);
          rows = all.slice(1);
        } else if (rows.length === 0) {
          rows = all;
        }
      }
      const body = rows
        .filter(row => !placeholders.some(name => row.classList.contains(name)))
        .map(row => Array.from(row.querySelectorAll('td')).map(cellText))
        .filter(cells => cells.length > 0);
      tables.push({container, headers, rows: body});
    }
  }
  const text = document.body ? (document.body.innerText || '') : '';
  return {tables, text};
}
"""


@dataclass
class ClassifiedTable:
    """识别结果：版式 + 表格快照"""

    layout: TableLayout
    snapshot: TableSnapshot

    @property
    def tag(self) -> str:
        return self.layout.tag


@dataclass
class NoTableFound:
    """叶子节点没有任何可识别的表格，也没有数据行"""

    reason: str = "未找到结果表格"


def extract_hints(text: str, patterns: dict[str, str]) -> dict[str, str]:
    """按 字段 -> 正则 从页面文本提取上下文值（第一个分组）"""
    hints: dict[str, str] = {}
    for field_name, pattern in patterns.items():
        match = re.search(pattern, text or "")
        if match and match.group(1).strip():
            hints[field_name] = match.group(1).strip()
    return hints


class TableProbe:
    """读取当前叶子节点的结果视图"""

    def __init__(
        self,
        session: BrowserSession,
        registry: LayoutRegistry,
        hint_patterns: dict[str, str] | None = None,
    ):
        self.session = session
        self.registry = registry
        self.hint_patterns = hint_patterns or {}

    async def capture(self, path: SelectionPath) -> ViewState:
        """读取视图

        Raises:
            ClassificationFailure: 页面返回的结构无法解析
            TimeoutFailure / PageScriptError / ResourceFailure: 浏览器层错误
        """
        raw = await self.session.evaluate(
            _CAPTURE_SCRIPT,
            {"containers": self.registry.containers(), "placeholders": list(PLACEHOLDER_ROW_CLASSES)},
        )
        if not isinstance(raw, dict) or not isinstance(raw.get("tables"), list):
            raise ClassificationFailure(f"无法读取结果视图: {format_path(path)}")

        tables = [
            TableSnapshot(
                container=item.get("container", ""),
                headers=[str(h) for h in item.get("headers") or []],
                rows=[[str(c) for c in row] for row in item.get("rows") or []],
            )
            for item in raw["tables"]
        ]
        return ViewState(tables=tables, hints=extract_hints(raw.get("text", ""), self.hint_patterns))


class TableClassifier:
    """根据表头指纹识别版式（纯函数，不访问页面）"""

    def __init__(self, registry: LayoutRegistry):
        self.registry = registry

    def classify(self, view: ViewState) -> list[ClassifiedTable] | NoTableFound:
        classified: list[ClassifiedTable] = []

        for snapshot in view.tables:
            if not snapshot.headers and not snapshot.has_rows:
                # 容器已渲染但表格为空
                continue
            layout = self._match(snapshot)
            if layout is not None:
                classified.append(ClassifiedTable(layout=layout, snapshot=snapshot))
            elif snapshot.has_rows:
                logger.warning(
                    f"[识别] {snapshot.container} 表头未匹配任何版式，按 unknown 处理: {snapshot.headers}"
                )
                classified.append(
                    ClassifiedTable(layout=TableLayout.unknown(snapshot.container), snapshot=snapshot)
                )

        if not classified:
            return NoTableFound(
                reason="页面没有结果表格" if not view.tables else "表格未匹配任何版式且没有数据行"
            )
        return classified

    def _match(self, snapshot: TableSnapshot) -> TableLayout | None:
        for definition in self.registry.candidates(snapshot.container):
            if definition.matches(snapshot.headers):
                return definition.to_layout()
        return None
