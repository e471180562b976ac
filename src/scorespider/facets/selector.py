"""筛选项选择器

选中一个标签并等待依赖它的筛选项刷新。选中之后，所有依赖该筛选项的
下游选项集合都视为失效，调用方必须重新读取。
"""

from __future__ import annotations

import asyncio
import time

from ..common.browser import BrowserSession
from ..common.config import config
from ..common.exceptions import PageScriptError, SelectionFailure
from ..common.logger import get_logger
from ..common.types import SelectionAck
from ..common.utils import get_random_delay
from .models import FacetDefinition, SelectionPath
from .widgets import SELECT_ABSENT, SELECT_CLICKED, get_widget

logger = get_logger(__name__)


class FacetSelector:
    """提交筛选项选择，并负责等待页面稳定"""

    def __init__(
        self,
        session: BrowserSession,
        settle_delay: float | None = None,
        settle_jitter: float | None = None,
        settle_timeout_ms: int | None = None,
    ):
        self.session = session
        self.settle_delay = config.traversal.settle_delay if settle_delay is None else settle_delay
        self.settle_jitter = config.traversal.settle_jitter if settle_jitter is None else settle_jitter
        self.settle_timeout_ms = settle_timeout_ms or config.traversal.settle_timeout_ms

    async def select(self, facet: FacetDefinition, label: str, path: SelectionPath) -> SelectionAck:
        """选中标签

        Raises:
            SelectionFailure: 标签当前不在可选项中，或点击脚本执行失败
            TimeoutFailure: 页面未在限定时间内稳定
            ResourceFailure: 浏览器会话不可用
        """
        widget = get_widget(facet.widget)
        try:
            outcome = await self.session.evaluate(widget.select_script(), widget.select_args(facet, label))
        except PageScriptError as e:
            raise SelectionFailure(facet.key, label, f"点击脚本执行失败（{e}）") from e

        if outcome != SELECT_CLICKED:
            reason = "筛选项不存在" if outcome == SELECT_ABSENT else "选项当前不可选"
            raise SelectionFailure(facet.key, label, reason)

        started = time.monotonic()
        await self._settle()
        settled_ms = int((time.monotonic() - started) * 1000)

        logger.debug(f"[选择] {facet.display_name}={label} ({settled_ms}ms)")
        return SelectionAck(facet_key=facet.key, label=label, settled_ms=settled_ms)

    async def _settle(self) -> None:
        delay = get_random_delay(self.settle_delay, self.settle_jitter)
        if delay > 0:
            await asyncio.sleep(delay)
        await self.session.wait_for_settle(self.settle_timeout_ms)
