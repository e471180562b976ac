"""筛选项模块 - 声明、读取与选择"""

from .models import FacetDefinition, FacetSpec, SelectionPath
from .reader import FacetReader
from .selector import FacetSelector
from .widgets import FacetWidget, get_widget, register_widget

__all__ = [
    "FacetDefinition",
    "FacetSpec",
    "SelectionPath",
    "FacetReader",
    "FacetSelector",
    "FacetWidget",
    "get_widget",
    "register_widget",
]
