"""
结构遍历器 - 按 schema 在对象图与KV存储之间递归读写

职责：
1. save: 结构体逐字段递归；映射/序列先建目录；标量写叶子
2. load: 顶层字段逐个递归读取，再按 schema 填充对象图
3. 每次成功读写后更新字段注册表

约定：
- 第一个错误即中止并原样抛出，已写入/已填充的部分不回滚
- 结构体总是原地填充，注册表中的句柄始终指向调用方的原始对象图
- 标量序列按追加语义保存（存储分配有序key），重复保存会继续追加

测试要点：
- test_save_layout: 保存后的存储布局
- test_load_round_trip: 保存后加载还原
- test_scalar_sequence_appends: 标量序列追加语义
- test_parse_error_aborts: 整数解析失败中止加载
"""

from __future__ import annotations

import logging
from typing import Any

from ..interfaces import IKVTransport, InvalidSchemaError, TransportError
from ..models import FieldHandle, NodeKind, SchemaNode, StoreNode
from ..schema import (
    UNSET,
    derive_path,
    format_scalar,
    last_segment,
    parse_scalar,
    registry_key,
)
from .registry import FieldRegistry

logger = logging.getLogger(__name__)


def _child_order(node: StoreNode) -> tuple[int, int, str]:
    """序列子节点顺序：数字段按数值，其余按字典序"""
    name = node.name
    if name.isdigit():
        return (0, int(name), "")
    return (1, 0, name)


class StructureWalker:
    """结构遍历器"""

    def __init__(
        self,
        transport: IKVTransport,
        registry: FieldRegistry,
        strict_booleans: bool = True,
    ):
        self.transport = transport
        self.registry = registry
        self.strict_booleans = strict_booleans

    # ========================================================================
    # Save
    # ========================================================================

    def save(self, handle: FieldHandle, node: SchemaNode, path: str) -> None:
        """保存 handle 所指的值到 path（递归）"""
        value = handle.get()

        if node.kind is NodeKind.STRUCT:
            for field in node.fields:
                self.save(
                    FieldHandle(value, field.name),
                    field.node,
                    derive_path(path, field.segment),
                )
            self.registry.record(registry_key(path), handle, node)

        elif node.kind is NodeKind.MAPPING:
            version = self._ensure_directory(path)
            for key in list(value):
                child = FieldHandle(value, key)
                child_path = derive_path(path, str(key))
                if node.element.kind is NodeKind.STRUCT:
                    self.save(child, node.element, child_path)
                else:
                    self._write_leaf(child, node.element, child_path)
            self.registry.record(path, handle, node, version)

        elif node.kind is NodeKind.SEQUENCE:
            version = self._ensure_directory(path)
            for index in range(len(value)):
                child = FieldHandle(value, index)
                if node.element.kind is NodeKind.STRUCT:
                    self.save(child, node.element, derive_path(path, str(index)))
                else:
                    text = format_scalar(node.element.kind, value[index])
                    response = self.transport.create_ordered_child(path, text)
                    logger.debug(f"追加 {response.node.key} = {text!r}")
                    self.registry.record(
                        response.node.key, child, node.element, response.node.modified_index
                    )
            self.registry.record(path, handle, node, version)

        else:
            self._write_leaf(handle, node, path)

    def _write_leaf(self, handle: FieldHandle, node: SchemaNode, path: str) -> None:
        text = format_scalar(node.kind, handle.get())
        response = self.transport.set(path, text)
        logger.debug(f"写入 {path} = {text!r} (index={response.node.modified_index})")
        self.registry.record(path, handle, node, response.node.modified_index)

    def _ensure_directory(self, path: str) -> int | None:
        """创建目录；已存在视为成功（返回None，沿用已知版本）"""
        try:
            response = self.transport.make_directory(path)
        except TransportError as e:
            if not e.is_node_exist:
                raise
            return None
        logger.debug(f"创建目录 {path}")
        return response.node.modified_index

    # ========================================================================
    # Load
    # ========================================================================

    def load(self, handle: FieldHandle, node: SchemaNode, path: str) -> None:
        """逐个顶层字段递归读取并填充（第一个错误即中止）"""
        if node.kind is not NodeKind.STRUCT:
            raise InvalidSchemaError(f"load 需要结构体根节点: {node.describe()}")

        value = handle.get()
        for field in node.fields:
            field_path = derive_path(path, field.segment)
            response = self.transport.get(field_path, recursive=True, sort=True)
            logger.debug(f"读取 {field_path} (index={response.node.modified_index})")
            self.fill(FieldHandle(value, field.name), field.node, response.node, field_path)

    def fill(
        self,
        handle: FieldHandle,
        node: SchemaNode,
        store_node: StoreNode,
        path: str,
    ) -> None:
        """用存储节点填充 handle 所指的位置"""
        if node.kind is NodeKind.STRUCT:
            value = handle.get()
            for field in node.fields:
                field_path = derive_path(path, field.segment)
                child = store_node.child(field_path)
                if child is None:
                    continue
                self.fill(FieldHandle(value, field.name), field.node, child, field_path)

        elif node.kind is NodeKind.MAPPING:
            mapping = self._reset(handle, store_node.key, dict)
            element = node.element
            for child in store_node.nodes:
                key = last_segment(child.key)
                if element.kind is NodeKind.STRUCT:
                    mapping[key] = element.new_value()
                self.fill(FieldHandle(mapping, key), element, child, child.key)

        elif node.kind is NodeKind.SEQUENCE:
            items = self._reset(handle, store_node.key, list)
            element = node.element
            for child in sorted(store_node.nodes, key=_child_order):
                if element.kind is NodeKind.STRUCT:
                    items.append(element.new_value())
                    self.fill(FieldHandle(items, len(items) - 1), element, child, child.key)
                    continue

                parsed = self._parse(element, child)
                if parsed is UNSET:
                    continue
                items.append(parsed)
                self.registry.record(
                    child.key, FieldHandle(items, len(items) - 1), element, child.modified_index
                )

        else:
            parsed = self._parse(node, store_node)
            if parsed is not UNSET:
                handle.set(parsed)

        self.registry.record(
            registry_key(store_node.key), handle, node, store_node.modified_index
        )

    def forget(self, handle: FieldHandle, node: SchemaNode, path: str) -> None:
        """存储中的 path 已删除：序列/映射清空，结构体与标量保持原值"""
        if node.kind is NodeKind.MAPPING:
            self._reset(handle, path, dict)
        elif node.kind is NodeKind.SEQUENCE:
            self._reset(handle, path, list)

    def _parse(self, node: SchemaNode, store_node: StoreNode) -> Any:
        parsed = parse_scalar(
            node.kind,
            store_node.value,
            store_node.key,
            strict_booleans=self.strict_booleans,
        )
        if parsed is UNSET:
            logger.warning(f"{store_node.key}: 布尔值无法解析，保持未设置: {store_node.value!r}")
        return parsed

    def _reset(self, handle: FieldHandle, path: str, factory: type) -> Any:
        """原地清空容器（保持对象身份），并丢弃其下旧的注册表项"""
        current = handle.get()
        if isinstance(current, factory):
            current.clear()
        else:
            current = factory()
            handle.set(current)
        self.registry.discard_under(path)
        return current
