"""
同步门面 - 对象图与KV存储同步的公共接口

职责：
1. save(): 整棵对象图写入 /<namespace>
2. load(): 逐个顶层字段读回对象图
3. save_field(ref): 只保存某个字段对应的子树
4. version(ref): 返回字段最近一次 save/load 时的修改索引（不访问存储）
5. watch(ref): 订阅字段变更并自动重新加载

约定：
- 构造时推导一次 schema，并为结构体嵌套可达的字段预登记（版本0）
- 序列/映射内部的元素只在 save/load 之后才可解析
- 门面不加锁，同一实例由调用方串行使用

使用方式：
    config = Config()
    client = SyncClient(MemoryKVStore(), "ns", config)
    client.save()
    config.key1.subkey1 = "b"
    client.save_field(ref(config.key1, "subkey1"))
    client.version(ref(config.key1, "subkey1"))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from ..interfaces import IKVTransport, InvalidSchemaError
from ..models import FieldHandle, NodeKind, RegistryEntry, SchemaNode
from ..schema import (
    build_schema,
    derive_path,
    normalize_namespace,
    registry_key,
    root_path,
    walk_prefix,
)
from .registry import FieldRegistry
from .walker import StructureWalker
from .watch import FieldWatch, Subscription

if TYPE_CHECKING:
    from ..config import SyncSettings

logger = logging.getLogger(__name__)


class SyncClient:
    """结构化配置同步门面"""

    def __init__(
        self,
        transport: IKVTransport,
        namespace: str,
        config: BaseModel,
        *,
        strict_booleans: bool = True,
        watch_queue_size: int = 256,
        watch_poll_interval: float = 0.5,
    ):
        if not isinstance(config, BaseModel):
            raise InvalidSchemaError(f"配置必须是 pydantic 模型实例: {config!r}")

        self._transport = transport
        self._namespace = normalize_namespace(namespace)
        self._root = root_path(namespace)
        self._config = config
        self._schema = build_schema(type(config))
        self._registry = FieldRegistry()
        self._walker = StructureWalker(transport, self._registry, strict_booleans)
        self._watch_queue_size = watch_queue_size
        self._watch_poll_interval = watch_poll_interval

        self._preload(FieldHandle(config), self._schema, self._root)

    @classmethod
    def from_settings(
        cls,
        config: BaseModel,
        settings: SyncSettings | None = None,
        transport: IKVTransport | None = None,
    ) -> SyncClient:
        """按运行期配置构造（未给出 transport 时连接 etcd）"""
        from ..config import get_config
        from ..transport import EtcdV2Transport

        settings = settings or get_config()
        if transport is None:
            transport = EtcdV2Transport.from_settings(settings)
        return cls(
            transport,
            settings.namespace,
            config,
            strict_booleans=settings.strict_booleans,
            watch_queue_size=settings.watch.queue_size,
            watch_poll_interval=settings.watch.poll_interval_sec,
        )

    # === 属性 ===

    @property
    def transport(self) -> IKVTransport:
        return self._transport

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def root(self) -> str:
        """根路径（"/<namespace>" 或 "/"）"""
        return registry_key(self._root)

    @property
    def config(self) -> BaseModel:
        return self._config

    @property
    def schema(self) -> SchemaNode:
        return self._schema

    @property
    def registry(self) -> FieldRegistry:
        return self._registry

    # === 公共操作 ===

    def save(self) -> None:
        """保存整棵对象图"""
        logger.info(f"保存配置到 {self.root}")
        self._walker.save(FieldHandle(self._config), self._schema, self._root)

    def load(self) -> None:
        """从存储加载整棵对象图（逐个顶层字段，第一个错误即中止）"""
        logger.info(f"从 {self.root} 加载配置")
        self._walker.load(FieldHandle(self._config), self._schema, self._root)

    def save_field(self, target: Any) -> None:
        """只保存 target 对应的子树"""
        entry = self._registry.resolve(target)
        logger.info(f"保存字段 {entry.path}")
        self._walker.save(entry.handle, entry.node, walk_prefix(entry.path))

    def version(self, target: Any) -> int:
        """字段最近一次 save/load 时的修改索引（不访问存储）"""
        return self._registry.resolve(target).version

    def path_of(self, target: Any) -> str:
        """字段对应的存储路径"""
        return self._registry.resolve(target).path

    def delete_field(self, target: Any) -> None:
        """删除 target 在存储中的子树（对象图不变）"""
        entry = self._registry.resolve(target)
        self._delete(entry)

    def delete(self) -> None:
        """删除整个命名空间下的存储内容"""
        if self._root:
            self._delete(self._registry.resolve(FieldHandle(self._config)))
            return

        # 空命名空间：根目录只读，逐个删除顶层字段
        for field in self._schema.fields:
            entry = self._registry.get(derive_path(self._root, field.segment))
            if entry is not None:
                self._delete(entry)

    def watch(self, target: Any, after_index: int = 0) -> FieldWatch:
        """订阅 target 的变更，每个事件到达时重新加载该字段"""
        entry = self._registry.resolve(target)
        subscription = Subscription(
            self._transport,
            entry.path,
            recursive=entry.node.is_composite,
            after_index=after_index,
            queue_size=self._watch_queue_size,
            poll_interval=self._watch_poll_interval,
        )
        logger.info(f"开始监听 {entry.path}")
        return FieldWatch(self._walker, entry, subscription)

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # === 内部 ===

    def _preload(self, handle: FieldHandle, node: SchemaNode, path: str) -> None:
        """登记结构体嵌套可达的字段（版本0）"""
        if node.kind is NodeKind.STRUCT:
            value = handle.get()
            for field in node.fields:
                self._preload(
                    FieldHandle(value, field.name),
                    field.node,
                    derive_path(path, field.segment),
                )
        self._registry.record(registry_key(path), handle, node, 0)

    def _delete(self, entry: RegistryEntry) -> None:
        composite = entry.node.is_composite
        self._transport.delete(entry.path, recursive=composite, directory=composite)
        logger.info(f"删除 {entry.path}")
        self._registry.discard_under(entry.path)
        if entry.kind is NodeKind.STRUCT:
            self._preload(entry.handle, entry.node, walk_prefix(entry.path))
        else:
            self._registry.record(entry.path, entry.handle, entry.node, 0)
