"""
字段句柄 - 标识调用方对象图中的一个存储位置

句柄 = (所属对象, 键)：
- 模型实例的属性名
- 列表的下标
- 字典的键
- key为None时表示对象本身（根）

相等性按所属对象的身份（is）加键比较，不比较值，
因此 save_field/version 能定位到"哪个字段"而不是"哪个值"。
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ..interfaces import FieldNotAddressableError

MISSING: Any = object()


class FieldHandle:
    """存储位置句柄"""

    __slots__ = ("owner", "key")

    def __init__(self, owner: Any, key: str | int | None = None):
        self.owner = owner
        self.key = key

    @property
    def is_root(self) -> bool:
        return self.key is None

    def get(self) -> Any:
        if self.key is None:
            return self.owner
        if isinstance(self.owner, BaseModel):
            return getattr(self.owner, self.key)
        return self.owner[self.key]

    def peek(self) -> Any:
        """读取当前值，位置已失效时返回 MISSING"""
        try:
            return self.get()
        except (AttributeError, KeyError, IndexError, TypeError):
            return MISSING

    def set(self, value: Any) -> None:
        if self.is_root:
            raise FieldNotAddressableError(self)
        if isinstance(self.owner, BaseModel):
            setattr(self.owner, self.key, value)
        else:
            self.owner[self.key] = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldHandle):
            return NotImplemented
        return self.owner is other.owner and self.key == other.key

    def __hash__(self) -> int:
        return hash((id(self.owner), self.key))

    def __repr__(self) -> str:
        owner = type(self.owner).__name__
        if self.is_root:
            return f"FieldHandle(<{owner}>)"
        return f"FieldHandle(<{owner}>, {self.key!r})"


def is_addressable(value: Any) -> bool:
    """可变复合值（模型/列表/字典）可以按身份定位"""
    return isinstance(value, (BaseModel, list, dict))


def ref(owner: Any, key: str | int | None = None) -> FieldHandle:
    """
    构造字段句柄

    使用方式：
        ref(config.key1, "subkey1")   # 模型属性
        ref(config.key2, 0)           # 列表元素
        ref(config.key3, "m1")        # 字典条目
    """
    if key is None:
        if not is_addressable(owner):
            raise FieldNotAddressableError(owner)
        return FieldHandle(owner)

    if isinstance(owner, BaseModel):
        if not isinstance(key, str) or key not in type(owner).model_fields:
            raise FieldNotAddressableError(f"{type(owner).__name__}.{key}")
    elif isinstance(owner, list):
        if isinstance(key, bool) or not isinstance(key, int):
            raise FieldNotAddressableError(f"list[{key!r}]")
    elif not isinstance(owner, dict):
        raise FieldNotAddressableError(owner)

    return FieldHandle(owner, key)
