"""遍历模块 - 遍历引擎、结果汇总与抓取入口"""

from .aggregator import ResultAggregator
from .backoff import BackoffPolicy
from .runner import CrawlReport, build_engine, run_institution, shard_labels
from .state import BranchFailure, RunState
from .traversal import TraversalEngine

__all__ = [
    "ResultAggregator",
    "BackoffPolicy",
    "CrawlReport",
    "build_engine",
    "run_institution",
    "shard_labels",
    "BranchFailure",
    "RunState",
    "TraversalEngine",
]
