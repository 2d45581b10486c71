"""
Schema层 - 路径注解、路径派生、schema推导与标量编解码

子模块：
- annotations: kv_field 路径注解
- paths: 路径派生
- builder: 模型类 -> SchemaNode
- codec: 标量格式化/解析
"""

from .annotations import KV_PATH_KEY, field_segment, kv_field
from .builder import build_schema
from .codec import UNSET, format_scalar, parse_scalar
from .paths import (
    derive_path,
    is_under,
    last_segment,
    normalize_namespace,
    registry_key,
    root_path,
    walk_prefix,
)

__all__ = [
    "KV_PATH_KEY",
    "kv_field",
    "field_segment",
    "build_schema",
    "UNSET",
    "format_scalar",
    "parse_scalar",
    "derive_path",
    "root_path",
    "normalize_namespace",
    "registry_key",
    "walk_prefix",
    "last_segment",
    "is_under",
]
