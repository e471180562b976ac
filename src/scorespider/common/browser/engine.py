"""
异步浏览器引擎

管理全局唯一的 Playwright / Browser 实例，为每个遍历会话提供独立的 Page。
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Literal, Optional

from loguru import logger
from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright_stealth import Stealth


class BrowserEngine:
    """
    异步浏览器引擎：
    1. 管理全局唯一的 Browser 实例，多个会话共用同一个浏览器进程。
    2. 每次 page() 都创建独立的 BrowserContext，会话之间不共享 DOM 或 Cookie。
    """

    def __init__(
        self,
        default_headless: bool = True,
        default_viewport: Optional[Dict[str, int]] = None,
        default_user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/128.0.0.0 Safari/537.36",
        default_launch_args: Optional[List[str]] = None,
        default_browser_type: Literal["chromium", "firefox", "webkit"] = "chromium",
        max_retries: int = 2,
        default_timeout: int = 30000,
    ):
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._stealth_context: Optional[Any] = None
        self._current_headless: bool = default_headless
        self._lock = asyncio.Lock()
        self._owner_loop: Optional[asyncio.AbstractEventLoop] = None

        self.default_headless = default_headless
        self.default_viewport = default_viewport or {"width": 1280, "height": 800}
        self.default_user_agent = default_user_agent
        self.default_browser_type = default_browser_type
        self.max_retries = max_retries
        self.default_timeout = default_timeout

        self.default_launch_args = default_launch_args or [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-blink-features=AutomationControlled",
            "--disable-infobars",
            "--disable-extensions",
            "--no-first-run",
        ]

    async def _ensure_browser(self, headless: bool) -> None:
        """
        确保全局 Browser 实例存活且可用

        重启条件：
        1. Event Loop 发生变化（旧实例无法在新 Loop 中使用）
        2. 浏览器不存在或已断开
        3. headless 模式需要切换
        """
        current_loop = asyncio.get_running_loop()

        async with self._lock:
            should_restart = False

            if self._browser and self._owner_loop and self._owner_loop != current_loop:
                logger.warning("Event Loop changed. Restarting browser...")
                should_restart = True
            elif not self._browser or not self._browser.is_connected():
                should_restart = True
            elif self._current_headless != headless:
                logger.info(f"Switching Headless Mode: {headless}")
                should_restart = True

            if not should_restart:
                return

            if self._browser and self._owner_loop == current_loop:
                try:
                    await self._browser.close()
                except Exception as e:  # noqa: BLE001
                    logger.debug(f"[Engine] 关闭旧浏览器失败（可能已崩溃）: {e}")

            if not self._playwright:
                self._stealth_context = Stealth().use_async(async_playwright())
                self._playwright = await self._stealth_context.__aenter__()

            for attempt in range(self.max_retries + 1):
                try:
                    launcher = getattr(self._playwright, self.default_browser_type)
                    self._browser = await launcher.launch(
                        headless=headless,
                        args=self.default_launch_args,
                    )
                    self._current_headless = headless
                    self._owner_loop = current_loop
                    logger.info(f"[Engine] 浏览器已启动 ({self.default_browser_type}, headless={headless})")
                    break
                except Exception as e:
                    if attempt == self.max_retries:
                        raise
                    logger.warning(f"[Engine] 浏览器启动失败，重试 {attempt + 1}/{self.max_retries}: {e}")

    @asynccontextmanager
    async def page(
        self,
        headless: Optional[bool] = None,
        proxy: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
        **context_kwargs,
    ) -> AsyncGenerator[Page, None]:
        """
        获取一个 Page 对象。

        Args:
            headless: 是否无头模式
            proxy: 代理配置，如 {"server": "http://proxy:8080"}
            timeout: 页面默认超时（毫秒）
            **context_kwargs: 传递给 browser.new_context 的其他参数
        """
        use_headless = headless if headless is not None else self.default_headless
        await self._ensure_browser(use_headless)

        options = {
            "viewport": self.default_viewport,
            "user_agent": self.default_user_agent,
            "ignore_https_errors": True,
            "locale": "zh-CN",
            **context_kwargs,
        }
        if proxy:
            options["proxy"] = proxy

        context = await self._browser.new_context(**options)
        page = await context.new_page()
        page.set_default_timeout(timeout or self.default_timeout)

        try:
            yield page
        finally:
            try:
                await context.close()
            except Exception as e:  # noqa: BLE001
                logger.debug(f"[Engine] 关闭 Context 失败: {e}")

    async def close(self) -> None:
        """关闭浏览器与 Playwright"""
        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:  # noqa: BLE001
                logger.debug(f"[Engine] 关闭浏览器失败: {e}")
            self._browser = None
        if self._stealth_context:
            await self._stealth_context.__aexit__(None, None, None)
            self._stealth_context = None
            self._playwright = None
        self._owner_loop = None


_engine: Optional[BrowserEngine] = None


async def get_browser_engine(headless: bool = True, default_timeout: int = 30000) -> BrowserEngine:
    """获取全局浏览器引擎（单例）"""
    global _engine
    if _engine is None:
        _engine = BrowserEngine(default_headless=headless, default_timeout=default_timeout)
    return _engine


async def shutdown_browser_engine() -> None:
    """关闭全局浏览器引擎"""
    global _engine
    if _engine is not None:
        await _engine.close()
        _engine = None
