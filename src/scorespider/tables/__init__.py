"""表格模块 - 版式注册、识别与行归一化"""

from .classifier import ClassifiedTable, NoTableFound, TableClassifier, TableProbe
from .layouts import (
    BUILTIN_LAYOUTS,
    HEADER_VOCABULARY,
    LayoutDefinition,
    LayoutRegistry,
    TableLayout,
)
from .normalizer import RowNormalizer, reconcile_score_order

__all__ = [
    "ClassifiedTable",
    "NoTableFound",
    "TableClassifier",
    "TableProbe",
    "BUILTIN_LAYOUTS",
    "HEADER_VOCABULARY",
    "LayoutDefinition",
    "LayoutRegistry",
    "TableLayout",
    "RowNormalizer",
    "reconcile_score_order",
]
