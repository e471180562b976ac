"""
通用文件操作工具模块

主要功能：
- 目录创建
- JSON / JSON Lines 数据的保存和加载
- 原子写入（先写临时文件再替换），避免中断时留下半截文件
"""

import json
import os
from pathlib import Path
from typing import Any, Iterable, Union

from loguru import logger


# ==================== 目录操作 ====================

def ensure_directory(path: Union[str, Path]) -> bool:
    """
    确保目录存在，如果不存在则创建

    Args:
        path: 目录路径

    Returns:
        bool: 成功返回 True，失败返回 False

    Example:
        >>> ensure_directory("output")
        True
    """
    try:
        p = Path(path)
        if not p.exists():
            p.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created directory: {p}")
        return True
    except OSError as e:
        logger.error(f"[FS_CREATE_ERROR] Failed to create directory {path}: {e}")
        return False


def file_exists(file_path: Union[str, Path]) -> bool:
    """检查文件是否存在"""
    return Path(file_path).is_file()


# ==================== 文件操作 ====================

def write_text_atomic(file_path: Union[str, Path], content: str, encoding: str = "utf-8") -> bool:
    """
    原子写入文本文件

    Args:
        file_path: 文件路径
        content: 文本内容
        encoding: 文本编码（默认 utf-8）

    Returns:
        bool: 成功返回 True，失败返回 False
    """
    path = Path(file_path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(content, encoding=encoding)
        os.replace(tmp_path, path)
        logger.debug(f"Saved file: {path}")
        return True
    except OSError as e:
        logger.error(f"[FS_WRITE_ERROR] Failed to write {file_path}: {e}")
        return False


# ==================== JSON 操作 ====================

def save_json(file_path: Union[str, Path], data: Union[dict, list], indent: int = 2) -> bool:
    """
    保存 JSON 数据到文件

    Args:
        file_path: 文件路径
        data: 要保存的数据（dict 或 list）
        indent: 缩进空格数

    Returns:
        bool: 成功返回 True，失败返回 False
    """
    content = json.dumps(data, ensure_ascii=False, indent=indent)
    return write_text_atomic(file_path, content)


def load_json(file_path: Union[str, Path]) -> Union[dict, list, None]:
    """
    从文件加载 JSON 数据

    Args:
        file_path: 文件路径

    Returns:
        dict/list: JSON 数据，失败返回 None
    """
    path = Path(file_path)
    if not path.is_file():
        logger.warning(f"File not found: {file_path}")
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"[FS_READ_ERROR] Failed to load JSON {file_path}: {e}")
        return None


def save_jsonl(file_path: Union[str, Path], rows: Iterable[dict[str, Any]]) -> bool:
    """
    保存为 JSON Lines（每行一个对象）

    Args:
        file_path: 文件路径
        rows: 字典序列

    Returns:
        bool: 成功返回 True，失败返回 False
    """
    lines = [json.dumps(row, ensure_ascii=False) for row in rows]
    return write_text_atomic(file_path, "\n".join(lines) + ("\n" if lines else ""))


def load_jsonl(file_path: Union[str, Path]) -> list[dict[str, Any]]:
    """读取 JSON Lines 文件，跳过无法解析的行"""
    path = Path(file_path)
    if not path.is_file():
        return []
    rows: list[dict[str, Any]] = []
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            rows.append(json.loads(line))
        except json.JSONDecodeError as e:
            logger.warning(f"[FS_READ_ERROR] {file_path}:{line_no} 无法解析: {e}")
    return rows
