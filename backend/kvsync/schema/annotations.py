"""
路径注解 - 在 pydantic 字段上声明存储路径段

使用方式：
    class SubConfig1(BaseModel):
        subkey1: str = kv_field("subkey1", default="")
        subkey2: int = kv_field("subkey2", default=0)
        note: str = ""              # 无注解，不参与同步
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic.fields import FieldInfo

KV_PATH_KEY = "kv_path"


def kv_field(segment: str, default: Any = ..., **kwargs: Any) -> Any:
    """声明带存储路径段的字段（其余参数同 pydantic.Field）"""
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra[KV_PATH_KEY] = segment
    if "default_factory" in kwargs:
        return Field(json_schema_extra=extra, **kwargs)
    return Field(default, json_schema_extra=extra, **kwargs)


def field_segment(info: FieldInfo) -> str | None:
    """读取字段的路径段，无注解或为空时返回None"""
    extra = info.json_schema_extra
    if not isinstance(extra, dict):
        return None
    segment = extra.get(KV_PATH_KEY)
    if not segment:
        return None
    return str(segment)
