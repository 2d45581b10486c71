"""
Schema模型 - 配置对象图的显式结构描述

每个配置模型类只推导一次（见 schema.builder），之后的 save/load
都沿着这棵 SchemaNode 树递归，不再对值做类型探测。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel


class NodeKind(str, Enum):
    """节点类型"""
    STRUCT = "struct"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"


SCALAR_KINDS = frozenset({NodeKind.STRING, NodeKind.INTEGER, NodeKind.BOOLEAN})


@dataclass(frozen=True)
class SchemaField:
    """结构体中带路径注解的字段"""
    name: str       # 模型属性名
    segment: str    # 存储路径段
    node: SchemaNode


@dataclass(frozen=True)
class SchemaNode:
    """Schema节点"""
    kind: NodeKind
    model: type[BaseModel] | None = None             # 仅 STRUCT
    fields: tuple[SchemaField, ...] = field(default=())  # 仅 STRUCT，声明顺序
    element: SchemaNode | None = None                # SEQUENCE/MAPPING 的元素

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    @property
    def is_composite(self) -> bool:
        return not self.is_scalar

    def accepts(self, value: Any) -> bool:
        """值是否符合本节点声明的类型"""
        if self.kind is NodeKind.STRUCT:
            return self.model is not None and isinstance(value, self.model)
        if self.kind is NodeKind.SEQUENCE:
            return isinstance(value, list)
        if self.kind is NodeKind.MAPPING:
            return isinstance(value, dict)
        if self.kind is NodeKind.STRING:
            return isinstance(value, str)
        if self.kind is NodeKind.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        return isinstance(value, bool)

    def new_value(self) -> Any:
        """分配零值（Load 时为序列/映射新元素使用）"""
        if self.kind is NodeKind.STRUCT:
            model_fields = self.model.model_fields
            zeros = {
                f.name: f.node.new_value()
                for f in self.fields
                if model_fields[f.name].is_required()
            }
            return self.model.model_construct(**zeros)
        if self.kind is NodeKind.SEQUENCE:
            return []
        if self.kind is NodeKind.MAPPING:
            return {}
        if self.kind is NodeKind.STRING:
            return ""
        if self.kind is NodeKind.INTEGER:
            return 0
        return False

    def describe(self) -> str:
        """可读的类型描述（日志/错误信息用）"""
        if self.kind is NodeKind.STRUCT:
            return self.model.__name__
        if self.kind is NodeKind.SEQUENCE:
            return f"list[{self.element.describe()}]"
        if self.kind is NodeKind.MAPPING:
            return f"dict[str, {self.element.describe()}]"
        return self.kind.value
