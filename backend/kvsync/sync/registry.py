"""
字段注册表 - 路径 ⇄ 字段句柄 ⇄ 版本

职责：
1. 每次成功的 save/load 写入或覆盖路径对应的注册表项
2. 反向解析：由字段句柄或对象身份找到路径（save_field/version 使用）
3. 保证同一句柄只对应一个路径（后写覆盖）

测试要点：
- test_record_and_resolve: 记录与反查
- test_handle_moves_path: 句柄换路径时旧项删除
- test_resolve_unmapped: 未映射字段报错
"""

from __future__ import annotations

from typing import Any, Iterator

from ..interfaces import FieldNotAddressableError, FieldNotMappedError
from ..models import MISSING, FieldHandle, RegistryEntry, SchemaNode, is_addressable
from ..schema import is_under


class FieldRegistry:
    """字段注册表（由同步门面独占持有）"""

    def __init__(self):
        self._entries: dict[str, RegistryEntry] = {}
        self._paths: dict[FieldHandle, str] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(list(self._entries.values()))

    def get(self, path: str) -> RegistryEntry | None:
        return self._entries.get(path)

    def path_of(self, handle: FieldHandle) -> str | None:
        return self._paths.get(handle)

    def record(
        self,
        path: str,
        handle: FieldHandle,
        node: SchemaNode,
        version: int | None = None,
    ) -> RegistryEntry:
        """
        写入/覆盖注册表项

        Args:
            version: 存储确认的修改索引；None 表示沿用该路径上次已知的版本
        """
        old_path = self._paths.get(handle)
        if old_path is not None and old_path != path:
            self._entries.pop(old_path, None)

        previous = self._entries.get(path)
        if previous is not None and previous.handle != handle:
            self._paths.pop(previous.handle, None)

        if version is None:
            version = previous.version if previous is not None else 0

        entry = RegistryEntry(path=path, handle=handle, node=node, version=version)
        self._entries[path] = entry
        self._paths[handle] = path
        return entry

    def discard_under(self, path: str) -> int:
        """删除 path 之下的所有项（不含 path 本身），返回删除数量"""
        stale = [p for p in self._entries if is_under(p, path)]
        for p in stale:
            entry = self._entries.pop(p)
            if self._paths.get(entry.handle) == p:
                del self._paths[entry.handle]
        return len(stale)

    def resolve(self, target: Any) -> RegistryEntry:
        """
        反查字段对应的注册表项

        target 可以是：
        - FieldHandle（按存储位置匹配）
        - 模型实例/列表/字典（按对象身份匹配当前值）

        两种方式都要求注册表项声明的类型接受该位置的当前值。

        Raises:
            FieldNotAddressableError: target 是不可变标量等不可寻址的值
            FieldNotMappedError: 未找到
        """
        if isinstance(target, FieldHandle):
            path = self._paths.get(target)
            if path is None:
                raise FieldNotMappedError(target)
            entry = self._entries[path]
            value = target.peek()
            if value is MISSING or not entry.node.accepts(value):
                raise FieldNotMappedError(target)
            return entry

        if not is_addressable(target):
            raise FieldNotAddressableError(target)

        for entry in self._entries.values():
            value = entry.handle.peek()
            if value is target and entry.node.accepts(value):
                return entry

        raise FieldNotMappedError(target)
