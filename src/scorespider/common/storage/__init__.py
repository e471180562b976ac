"""存储与持久化"""

from .persistence import CrawlProgress, ProgressPersistence
from .sink import JsonRecordSink, MemoryRecordSink, RecordSink, safe_logical_name

__all__ = [
    "CrawlProgress",
    "ProgressPersistence",
    "JsonRecordSink",
    "MemoryRecordSink",
    "RecordSink",
    "safe_logical_name",
]
