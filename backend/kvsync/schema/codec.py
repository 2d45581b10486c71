"""
标量编解码 - 标量值与存储文本的互转

- string: 原样
- integer: 十进制文本
- boolean: "true"/"false"
"""

from __future__ import annotations

import re
from typing import Any

from ..interfaces import ParseError
from ..models import NodeKind

UNSET: Any = object()

_INTEGER_RE = re.compile(r"[+-]?\d+")


def format_scalar(kind: NodeKind, value: Any) -> str:
    """标量 -> 存储文本"""
    if kind is NodeKind.BOOLEAN:
        return "true" if value else "false"
    if kind is NodeKind.INTEGER:
        return str(int(value))
    return str(value)


def parse_scalar(
    kind: NodeKind,
    text: str | None,
    path: str,
    *,
    strict_booleans: bool = True,
) -> Any:
    """
    存储文本 -> 标量

    Returns:
        解析值；宽松布尔模式下遇到非 "true"/"false" 文本返回 UNSET

    Raises:
        ParseError: 整数解析失败，或严格模式下布尔解析失败
    """
    text = text or ""
    if kind is NodeKind.STRING:
        return text

    if kind is NodeKind.INTEGER:
        if not _INTEGER_RE.fullmatch(text):
            raise ParseError(path, text, kind)
        return int(text)

    if text == "true":
        return True
    if text == "false":
        return False
    if strict_booleans:
        raise ParseError(path, text, kind)
    return UNSET
