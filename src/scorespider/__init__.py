"""ScoreSpider - 高校历年录取分数级联筛选抓取"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .crawler.runner import run_institution as run_institution
    from .crawler.traversal import TraversalEngine as TraversalEngine
    from .institutions.profiles import get_profile as get_profile

__all__ = [
    "__version__",
    "TraversalEngine",
    "get_profile",
    "run_institution",
]


def __getattr__(name: str) -> Any:
    """延迟导出，避免导入包时加载浏览器等重依赖"""
    if name == "TraversalEngine":
        from .crawler.traversal import TraversalEngine

        return TraversalEngine
    if name == "run_institution":
        from .crawler.runner import run_institution

        return run_institution
    if name == "get_profile":
        from .institutions.profiles import get_profile

        return get_profile
    raise AttributeError(f"module 'scorespider' has no attribute '{name}'")
