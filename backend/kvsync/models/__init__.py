"""
数据模型层 - 定义同步核心的数据结构

- SchemaNode/SchemaField: 配置对象图的显式结构描述
- StoreNode/StoreResponse/WatchEvent: KV存储的响应结构
- FieldHandle: 调用方对象图中的存储位置句柄
- RegistryEntry: 路径⇄句柄⇄版本 对应关系
"""

from .handle import MISSING, FieldHandle, is_addressable, ref
from .registry import RegistryEntry
from .schema import SCALAR_KINDS, NodeKind, SchemaField, SchemaNode
from .store import StoreNode, StoreResponse, WatchEvent

__all__ = [
    "NodeKind",
    "SCALAR_KINDS",
    "SchemaNode",
    "SchemaField",
    "StoreNode",
    "StoreResponse",
    "WatchEvent",
    "FieldHandle",
    "MISSING",
    "is_addressable",
    "ref",
    "RegistryEntry",
]
