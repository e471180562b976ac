"""通用工具"""

from .delay import get_random_delay
from .prompt_template import get_prompt_path, render_template, render_text

__all__ = [
    "get_random_delay",
    "get_prompt_path",
    "render_template",
    "render_text",
]
