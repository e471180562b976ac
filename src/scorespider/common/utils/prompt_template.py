"""Prompt 模板工具。

加载 YAML 格式的提示词模板，并用 ``{{name}}`` 占位符渲染。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

PROMPT_DIR = Path(__file__).resolve().parent.parent.parent / "prompts"


def get_prompt_path(name: str) -> str:
    """返回包内 prompt 文件的绝对路径"""
    return str((PROMPT_DIR / name).resolve())


@lru_cache(maxsize=32)
def load_template_file(file_path: str) -> dict[str, Any]:
    """加载并缓存 YAML 模板文件。"""
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def render_text(text: str, variables: dict[str, Any] | None = None) -> str:
    """渲染模板文本。"""
    if not variables:
        return text

    result = text
    for key, value in variables.items():
        result = result.replace("{{" + str(key) + "}}", str(value))
    return result


def render_template(
    file_path: str,
    section: str,
    variables: dict[str, Any] | None = None,
) -> str:
    """加载 YAML 模板并渲染指定 section。"""
    data = load_template_file(file_path)
    content = data.get(section, "")
    if not isinstance(content, str):
        content = yaml.dump(content, allow_unicode=True, default_flow_style=False)
    return render_text(content, variables)
