"""浏览器会话管理

BrowserSession 是遍历引擎唯一接触的浏览器原语：
navigate / wait_for_selector / evaluate / screenshot / wait_for_settle。
Playwright 的异常在这里统一转换为项目异常。
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..config import config
from ..exceptions import PageLoadError, PageScriptError, ResourceFailure, TimeoutFailure
from ..logger import get_logger
from .engine import BrowserEngine, get_browser_engine, shutdown_browser_engine

logger = get_logger(__name__)

# 出现这些信息说明页面/浏览器已经不可用
_RESOURCE_DEATH_MARKERS = (
    "has been closed",
    "Target closed",
    "Browser closed",
    "Connection closed",
    "browser has disconnected",
)

# 页面跳转导致的瞬时错误，会话本身仍可用
_NAVIGATION_RACE_MARKERS = (
    "Execution context was destroyed",
    "Cannot find context with specified id",
)


def is_resource_death(exc: BaseException) -> bool:
    """判断 Playwright 异常是否意味着会话已经失效"""
    message = str(exc).lower()
    return any(marker.lower() in message for marker in _RESOURCE_DEATH_MARKERS)


def is_navigation_race(exc: BaseException) -> bool:
    """判断 Playwright 异常是否由页面跳转打断脚本引起"""
    message = str(exc).lower()
    return any(marker.lower() in message for marker in _NAVIGATION_RACE_MARKERS)


def translate_browser_error(exc: PlaywrightError, operation: str, timeout_ms: int) -> Exception:
    """将 Playwright 异常转换为项目异常

    - 超时、页面跳转打断 -> TimeoutFailure（可重试）
    - 页面/浏览器已关闭 -> ResourceFailure（致命）
    - 其余脚本或选择器错误 -> PageScriptError（只影响当前分支）
    """
    first_line = str(exc).splitlines()[0] if str(exc) else ""
    if isinstance(exc, PlaywrightTimeout):
        return TimeoutFailure(operation, timeout_ms, first_line)
    if is_resource_death(exc):
        return ResourceFailure(f"{operation} 失败，浏览器会话不可用: {exc}")
    if is_navigation_race(exc):
        return TimeoutFailure(operation, timeout_ms, f"页面发生跳转: {first_line}")
    return PageScriptError(operation, first_line)


class BrowserSession:
    """浏览器会话

    每个遍历引擎独占一个会话；会话之间不共享页面状态。
    """

    def __init__(
        self,
        headless: bool | None = None,
        viewport_width: int | None = None,
        viewport_height: int | None = None,
        timeout_ms: int | None = None,
    ):
        self.headless = headless if headless is not None else config.browser.headless
        self.viewport_width = viewport_width or config.browser.viewport_width
        self.viewport_height = viewport_height or config.browser.viewport_height
        self.timeout_ms = timeout_ms or config.browser.timeout_ms

        self._engine: BrowserEngine | None = None
        self._page: Page | None = None
        self._page_context = None

    async def start(self) -> Page:
        """启动浏览器并返回 Page"""
        self._engine = await get_browser_engine(
            headless=self.headless,
            default_timeout=self.timeout_ms,
        )
        self._page_context = self._engine.page(
            headless=self.headless,
            viewport={"width": self.viewport_width, "height": self.viewport_height},
            timeout=self.timeout_ms,
        )
        self._page = await self._page_context.__aenter__()
        self._page.on("pageerror", lambda error: logger.debug(f"[页面错误] {error}"))
        return self._page

    async def stop(self) -> None:
        """关闭浏览器会话（不关闭全局引擎）"""
        if self._page_context:
            try:
                await self._page_context.__aexit__(None, None, None)
            except PlaywrightError as e:
                logger.debug(f"[会话] 关闭页面失败: {e}")
        self._page = None
        self._page_context = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise ResourceFailure("Browser session not started")
        if self._page.is_closed():
            raise ResourceFailure("页面已关闭")
        return self._page

    async def navigate(self, url: str, wait_until: str = "networkidle") -> None:
        """导航到指定 URL"""
        timeout = config.browser.navigation_timeout_ms
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeout as e:
            raise PageLoadError(url, f"页面加载超时 ({timeout}ms)") from e
        except PlaywrightError as e:
            if is_resource_death(e):
                raise ResourceFailure(f"导航失败，浏览器会话不可用: {e}") from e
            raise PageLoadError(url, str(e)) from e

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        """等待选择器出现，超时抛出 TimeoutFailure"""
        try:
            await self.page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightError as e:
            raise translate_browser_error(e, f"等待 {selector}", timeout_ms) from e

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """在页面中执行脚本"""
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise translate_browser_error(e, "页面脚本执行", self.timeout_ms) from e

    async def wait_for_settle(self, timeout_ms: int) -> None:
        """等待网络空闲"""
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightError as e:
            raise translate_browser_error(e, "等待页面稳定", timeout_ms) from e

    async def screenshot(self, path: str | Path) -> None:
        """保存截图（仅用于排查，失败不影响流程）"""
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            await self.page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as e:
            logger.debug(f"[会话] 截图失败 {path}: {e}")


@asynccontextmanager
async def create_browser_session(
    headless: bool | None = None,
    close_engine: bool = False,
) -> AsyncGenerator[BrowserSession, None]:
    """创建浏览器会话的上下文管理器"""
    session = BrowserSession(headless=headless)
    try:
        await session.start()
        yield session
    finally:
        await session.stop()
        if close_engine:
            await shutdown_browser_engine()
