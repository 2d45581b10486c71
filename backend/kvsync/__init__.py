"""
kvsync - 结构化配置与分层KV存储同步核心

模块结构：
- config/     运行期配置（endpoints/namespace/超时/日志）
- models/     数据模型（schema节点/存储响应/字段句柄/注册表项）
- schema/     路径注解、路径派生与schema推导
- sync/       结构遍历、字段注册表、同步门面与watch订阅
- transport/  KV传输实现（内存存储 / etcd v2 HTTP）

使用方式：
    client = SyncClient(MemoryKVStore(), "ns", config)
    client.save()
    client.save_field(ref(config.key1, "subkey1"))
"""

from .interfaces import (
    FieldNotAddressableError,
    FieldNotMappedError,
    IKVTransport,
    InvalidSchemaError,
    KVSyncError,
    ParseError,
    StoreErrorCode,
    TransportError,
)
from .models import FieldHandle, ref
from .schema import build_schema, kv_field
from .sync import FieldWatch, Subscription, SyncClient
from .transport import EtcdV2Transport, MemoryKVStore

__version__ = "0.1.0"

__all__ = [
    "SyncClient",
    "FieldWatch",
    "Subscription",
    "FieldHandle",
    "ref",
    "kv_field",
    "build_schema",
    "IKVTransport",
    "MemoryKVStore",
    "EtcdV2Transport",
    "StoreErrorCode",
    "KVSyncError",
    "InvalidSchemaError",
    "FieldNotMappedError",
    "FieldNotAddressableError",
    "TransportError",
    "ParseError",
]
