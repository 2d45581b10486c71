"""
传输层 - IKVTransport 的实现

- memory: 进程内存储（etcd v2 语义）
- etcd: etcd v2 HTTP 客户端
"""

from .etcd import EtcdV2Transport, normalize_endpoint, parse_auth
from .memory import MemoryKVStore

__all__ = [
    "MemoryKVStore",
    "EtcdV2Transport",
    "normalize_endpoint",
    "parse_auth",
]
