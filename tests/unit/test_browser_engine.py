"""
BrowserEngine 单元测试

测试内容：
1. 工厂函数单例模式
2. 每个 page() 使用独立的 BrowserContext，退出时关闭
3. 已连接的浏览器不会重复启动
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from scorespider.common.browser import engine as engine_module
from scorespider.common.browser.engine import (
    BrowserEngine,
    get_browser_engine,
    shutdown_browser_engine,
)


@pytest.fixture
def fake_browser():
    """模拟已启动的 Browser"""
    browser = MagicMock()
    browser.is_connected = MagicMock(return_value=True)
    browser.close = AsyncMock()

    def new_context(**options):
        context = MagicMock()
        context.options = options
        context.close = AsyncMock()
        page = MagicMock()
        page.set_default_timeout = MagicMock()
        context.new_page = AsyncMock(return_value=page)
        browser.contexts.append(context)
        return context

    browser.contexts = []
    browser.new_context = AsyncMock(side_effect=new_context)
    return browser


@pytest.fixture
def engine(fake_browser):
    engine = BrowserEngine(default_headless=True, default_timeout=5000)
    engine._ensure_browser = AsyncMock()
    engine._browser = fake_browser
    return engine


class TestEngineSingleton:
    """工厂函数单例测试"""

    @pytest.mark.asyncio
    async def test_same_instance(self, monkeypatch):
        monkeypatch.setattr(engine_module, "_engine", None)
        first = await get_browser_engine(headless=True)
        second = await get_browser_engine(headless=False)
        assert first is second

    @pytest.mark.asyncio
    async def test_shutdown_resets(self, monkeypatch):
        existing = MagicMock()
        existing.close = AsyncMock()
        monkeypatch.setattr(engine_module, "_engine", existing)

        await shutdown_browser_engine()

        existing.close.assert_awaited_once()
        assert engine_module._engine is None


class TestEnginePages:
    """Page 生命周期测试"""

    @pytest.mark.asyncio
    async def test_isolated_contexts(self, engine, fake_browser):
        async with engine.page() as first:
            async with engine.page() as second:
                assert first is not second

        assert len(fake_browser.contexts) == 2
        for context in fake_browser.contexts:
            context.close.assert_awaited_once()
            assert context.options["locale"] == "zh-CN"

    @pytest.mark.asyncio
    async def test_context_closed_on_error(self, engine, fake_browser):
        with pytest.raises(RuntimeError):
            async with engine.page():
                raise RuntimeError("boom")
        fake_browser.contexts[0].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_and_proxy(self, engine, fake_browser):
        async with engine.page(timeout=1234, proxy={"server": "http://proxy:8080"}) as page:
            page.set_default_timeout.assert_called_once_with(1234)
        assert fake_browser.contexts[0].options["proxy"] == {"server": "http://proxy:8080"}

    @pytest.mark.asyncio
    async def test_close_releases_browser(self, engine, fake_browser):
        await engine.close()
        fake_browser.close.assert_awaited_once()
        assert engine._browser is None
