"""
同步层 - 对象图与KV存储之间的同步

子模块：
- registry: 字段注册表（路径 ⇄ 句柄 ⇄ 版本）
- walker: 结构遍历器（save/load 递归）
- client: 同步门面
- watch: 可取消的变更订阅
"""

from .client import SyncClient
from .registry import FieldRegistry
from .walker import StructureWalker
from .watch import FieldWatch, Subscription

__all__ = [
    "SyncClient",
    "FieldRegistry",
    "StructureWalker",
    "Subscription",
    "FieldWatch",
]
