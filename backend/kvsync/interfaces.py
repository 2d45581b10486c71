"""
模块接口契约 - KV传输接口与异常定义

设计原则：
1. 同步核心只通过 IKVTransport 访问存储，不依赖具体实现
2. 存储错误码统一由 TransportError 携带，核心只做语义判断
3. 便于单元测试时用内存存储替换

使用方式：
    from kvsync.interfaces import IKVTransport

    class MyTransport(IKVTransport):
        def get(self, path: str, recursive: bool = False, sort: bool = True) -> StoreResponse:
            ...
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from .models import NodeKind, StoreResponse, WatchEvent


# ============================================================================
# 存储错误码
# ============================================================================

class StoreErrorCode(int, Enum):
    """存储错误码（沿用 etcd v2 编号）"""
    UNKNOWN = 0
    KEY_NOT_FOUND = 100
    COMPARE_FAILED = 101
    NOT_A_FILE = 102
    NOT_A_DIRECTORY = 104
    NODE_EXIST = 105
    ROOT_READ_ONLY = 107
    DIR_NOT_EMPTY = 108
    WATCH_EXPIRED = 401
    CLUSTER_UNREACHABLE = -1
    REQUEST_TIMEOUT = -2


# ============================================================================
# KV 传输接口
# ============================================================================

class IKVTransport(ABC):
    """KV传输接口 - 分层键值存储的最小能力集"""

    @abstractmethod
    def get(self, path: str, recursive: bool = False, sort: bool = True) -> StoreResponse:
        """
        读取节点

        Args:
            path: 存储路径
            recursive: 目录时是否返回完整子树
            sort: 子节点是否按key排序

        Returns:
            存储响应（node含value/dir/nodes/modified_index）

        Raises:
            TransportError: KEY_NOT_FOUND 等
        """
        ...

    @abstractmethod
    def set(
        self,
        path: str,
        value: str,
        ttl: int = 0,
        prev_value: str | None = None,
        prev_index: int | None = None,
    ) -> StoreResponse:
        """
        写入叶子节点

        prev_value/prev_index 任一给出时为条件写（乐观并发），
        不满足时抛出 COMPARE_FAILED。
        """
        ...

    @abstractmethod
    def make_directory(self, path: str, ttl: int = 0) -> StoreResponse:
        """
        创建目录

        Raises:
            TransportError: 路径已存在时为 NODE_EXIST
        """
        ...

    @abstractmethod
    def delete(
        self,
        path: str,
        recursive: bool = False,
        directory: bool = False,
        prev_value: str | None = None,
        prev_index: int | None = None,
    ) -> StoreResponse:
        """删除节点（目录需 directory 或 recursive）"""
        ...

    @abstractmethod
    def create_ordered_child(self, parent: str, value: str, ttl: int = 0) -> StoreResponse:
        """在目录下追加一个由存储分配有序key的子节点"""
        ...

    @abstractmethod
    def watch(
        self,
        path: str,
        recursive: bool = False,
        after_index: int = 0,
        cancel: threading.Event | None = None,
    ) -> Iterator[WatchEvent]:
        """
        阻塞式监听变更

        每次远端变更产出一个事件；cancel 被置位或传输关闭时正常结束；
        历史被截断（WATCH_EXPIRED）时从当前索引继续，不退避。

        Raises:
            TransportError: 不可恢复的传输错误
        """
        ...

    def close(self) -> None:
        """关闭传输（解除进行中的watch）"""


# ============================================================================
# 异常定义
# ============================================================================

class KVSyncError(Exception):
    """基础异常"""
    pass


class InvalidSchemaError(KVSyncError):
    """配置对象不是结构化模型，或字段类型/注解不受支持"""
    pass


class FieldNotMappedError(KVSyncError):
    """字段从未参与过 Save/Load，无法确定路径与版本"""

    def __init__(self, target: Any = None):
        self.target = target
        super().__init__(f"字段未映射（需先 save/load）: {target!r}")


class FieldNotAddressableError(KVSyncError):
    """传入的值不可寻址（不可变标量等），无法做身份追踪"""

    def __init__(self, target: Any = None):
        self.target = target
        super().__init__(
            f"字段不可寻址，请传入 ref(owner, key) 或模型/列表/字典对象: {target!r}"
        )


class TransportError(KVSyncError):
    """传输层错误（透传存储错误码）"""

    def __init__(
        self,
        code: int,
        message: str = "",
        cause: str | None = None,
        index: int | None = None,
    ):
        self.code = int(code)
        self.message = message
        self.cause = cause
        self.index = index
        text = f"[{self.code}] {message}"
        if cause:
            text += f" ({cause})"
        super().__init__(text)

    @property
    def is_key_not_found(self) -> bool:
        return self.code == StoreErrorCode.KEY_NOT_FOUND

    @property
    def is_compare_failed(self) -> bool:
        return self.code == StoreErrorCode.COMPARE_FAILED

    @property
    def is_not_a_file(self) -> bool:
        return self.code == StoreErrorCode.NOT_A_FILE

    @property
    def is_not_a_directory(self) -> bool:
        return self.code == StoreErrorCode.NOT_A_DIRECTORY

    @property
    def is_node_exist(self) -> bool:
        return self.code == StoreErrorCode.NODE_EXIST

    @property
    def is_dir_not_empty(self) -> bool:
        return self.code == StoreErrorCode.DIR_NOT_EMPTY

    @property
    def is_watch_expired(self) -> bool:
        return self.code == StoreErrorCode.WATCH_EXPIRED

    @property
    def is_unreachable(self) -> bool:
        return self.code == StoreErrorCode.CLUSTER_UNREACHABLE


class ParseError(KVSyncError):
    """Load 时标量文本无法转换为声明类型"""

    def __init__(self, path: str, value: str | None, kind: NodeKind | str):
        self.path = path
        self.value = value
        self.kind = kind
        kind_name = getattr(kind, "value", kind)
        super().__init__(f"{path}: 无法解析为 {kind_name}: {value!r}")
