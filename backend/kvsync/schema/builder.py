"""
Schema推导 - 从 pydantic 模型类推导 SchemaNode 树

职责：
1. 按声明顺序收集带路径注解的字段
2. 把字段类型映射为 NodeKind（struct/sequence/mapping/string/integer/boolean）
3. 在构建期拒绝不支持的形状（映射值非 struct/string、嵌套容器、递归模型、含"/"的段）

同一模型类只推导一次（缓存）。

测试要点：
- test_build_nested_schema: 嵌套结构推导
- test_unannotated_field_excluded: 无注解字段排除
- test_reject_unsupported_types: 不支持类型报错
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, get_args, get_origin

from pydantic import BaseModel

from ..interfaces import InvalidSchemaError
from ..models import NodeKind, SchemaField, SchemaNode
from .annotations import field_segment

_SEQUENCE_ELEMENT_KINDS = frozenset({
    NodeKind.STRUCT, NodeKind.STRING, NodeKind.INTEGER, NodeKind.BOOLEAN,
})
_MAPPING_VALUE_KINDS = frozenset({NodeKind.STRUCT, NodeKind.STRING})


@lru_cache(maxsize=None)
def build_schema(model: type[BaseModel]) -> SchemaNode:
    """推导模型类的 schema（缓存）"""
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise InvalidSchemaError(f"配置必须是 pydantic 模型类或实例: {model!r}")
    return _struct_node(model, ())


def _struct_node(model: type[BaseModel], stack: tuple[type, ...]) -> SchemaNode:
    if model in stack:
        raise InvalidSchemaError(f"不支持递归结构: {model.__name__}")
    stack = stack + (model,)

    fields: list[SchemaField] = []
    for name, info in model.model_fields.items():
        segment = field_segment(info)
        if segment is None:
            continue
        where = f"{model.__name__}.{name}"
        if "/" in segment:
            raise InvalidSchemaError(f"{where}: 路径段不能包含'/': {segment!r}")
        node = _node_for(info.annotation, where, stack)
        fields.append(SchemaField(name=name, segment=segment, node=node))

    return SchemaNode(NodeKind.STRUCT, model=model, fields=tuple(fields))


def _node_for(tp: Any, where: str, stack: tuple[type, ...]) -> SchemaNode:
    origin = get_origin(tp)
    if origin is Annotated:
        return _node_for(get_args(tp)[0], where, stack)

    # bool 是 int 的子类，先判断
    if tp is bool:
        return SchemaNode(NodeKind.BOOLEAN)
    if tp is int:
        return SchemaNode(NodeKind.INTEGER)
    if tp is str:
        return SchemaNode(NodeKind.STRING)
    if isinstance(tp, type) and issubclass(tp, BaseModel):
        return _struct_node(tp, stack)

    args = get_args(tp)
    if origin is list:
        if len(args) != 1:
            raise InvalidSchemaError(f"{where}: 序列需要声明元素类型")
        element = _node_for(args[0], f"{where}[]", stack)
        if element.kind not in _SEQUENCE_ELEMENT_KINDS:
            raise InvalidSchemaError(
                f"{where}: 不支持的序列元素类型 {element.describe()}"
            )
        return SchemaNode(NodeKind.SEQUENCE, element=element)

    if origin is dict:
        if len(args) != 2 or args[0] is not str:
            raise InvalidSchemaError(f"{where}: 映射的键必须是 str")
        element = _node_for(args[1], f"{where}{{}}", stack)
        if element.kind not in _MAPPING_VALUE_KINDS:
            raise InvalidSchemaError(
                f"{where}: 不支持的映射值类型 {element.describe()}"
            )
        return SchemaNode(NodeKind.MAPPING, element=element)

    raise InvalidSchemaError(f"{where}: 不支持的字段类型 {tp!r}")
