"""
注册表项模型 - 路径与字段句柄、版本的对应关系
"""

from __future__ import annotations

from dataclasses import dataclass

from .handle import FieldHandle
from .schema import NodeKind, SchemaNode


@dataclass
class RegistryEntry:
    """注册表项"""
    path: str
    handle: FieldHandle
    node: SchemaNode
    version: int = 0  # 存储确认的修改索引，未确认前为0

    @property
    def kind(self) -> NodeKind:
        return self.node.kind
