"""浏览器模块"""

from .engine import BrowserEngine, get_browser_engine, shutdown_browser_engine
from .session import BrowserSession, create_browser_session, translate_browser_error

__all__ = [
    "BrowserEngine",
    "BrowserSession",
    "create_browser_session",
    "get_browser_engine",
    "shutdown_browser_engine",
    "translate_browser_error",
]
