"""筛选项读取器

只读取当前页面上某个筛选项的可选标签，不改变页面状态。
"""

from __future__ import annotations

from ..common.browser import BrowserSession
from ..common.config import config
from ..common.exceptions import FacetDependencyError
from ..common.logger import format_path, get_logger
from .models import FacetDefinition, SelectionPath
from .widgets import get_widget

logger = get_logger(__name__)


class FacetReader:
    """读取筛选项的当前选项"""

    def __init__(self, session: BrowserSession, option_timeout_ms: int | None = None):
        self.session = session
        self.option_timeout_ms = option_timeout_ms or config.traversal.option_timeout_ms

    async def read_options(self, facet: FacetDefinition, path: SelectionPath) -> list[str]:
        """读取筛选项的可选标签

        Args:
            facet: 筛选项定义
            path: 当前选择路径，必须已包含 facet 的全部依赖

        Returns:
            按页面顺序排列的标签；筛选项在当前位置不存在时返回空列表

        Raises:
            FacetDependencyError: 依赖尚未选定
            TimeoutFailure: 容器存在但选项未在限定时间内出现
            PageScriptError: 页面脚本或选择器执行失败
            ResourceFailure: 浏览器会话不可用
        """
        missing = [dep for dep in facet.depends_on if dep not in path]
        if missing:
            raise FacetDependencyError(facet.key, missing)

        widget = get_widget(facet.widget)
        raw = await self.session.evaluate(widget.read_script(), widget.read_args(facet))

        if raw is None:
            logger.debug(f"[筛选] {facet.display_name} 在 {format_path(path)} 下不存在")
            return []

        if not raw:
            # 容器已渲染但选项尚在加载
            wait_selector = widget.wait_selector(facet)
            if wait_selector is None:
                return []
            await self.session.wait_for_selector(wait_selector, self.option_timeout_ms)
            raw = await self.session.evaluate(widget.read_script(), widget.read_args(facet)) or []

        labels = facet.filter_labels(str(item) for item in raw)
        logger.debug(f"[筛选] {facet.display_name}: {len(labels)} 个选项 {labels}")
        return labels
