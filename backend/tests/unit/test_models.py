"""
数据模型单元测试

每个模块完成后必须运行：pytest tests/unit/test_models.py -v
"""

import pytest

from kvsync import FieldNotAddressableError
from kvsync.models import (
    MISSING,
    FieldHandle,
    NodeKind,
    RegistryEntry,
    SchemaNode,
    StoreNode,
    StoreResponse,
    WatchEvent,
    ref,
)
from sample_config import Config, SubConfig1, SubConfig2


class TestFieldHandle:
    """字段句柄测试"""

    def test_get_set_attribute(self, config: Config):
        """测试模型属性读写"""
        handle = FieldHandle(config.key1, "subkey1")
        assert handle.get() == "a"
        handle.set("b")
        assert config.key1.subkey1 == "b"

    def test_get_set_container(self, config: Config):
        """测试列表/字典读写"""
        FieldHandle(config.key3, "m2").set("v2")
        assert config.key3["m2"] == "v2"
        assert FieldHandle(config.key2, 0).get() is config.key2[0]

    def test_equality_by_location(self, config: Config):
        """测试按位置相等（不是按值）"""
        other = Config(key1=SubConfig1(subkey1="a", subkey2=1))
        assert FieldHandle(config.key1, "subkey1") == FieldHandle(config.key1, "subkey1")
        assert FieldHandle(config.key1, "subkey1") != FieldHandle(other.key1, "subkey1")
        assert hash(FieldHandle(config, "key1")) == hash(FieldHandle(config, "key1"))

    def test_peek_missing(self, config: Config):
        """测试失效位置"""
        assert FieldHandle(config.key3, "gone").peek() is MISSING
        assert FieldHandle(config.key2, 5).peek() is MISSING

    def test_root_handle_not_assignable(self, config: Config):
        """测试根句柄不可赋值"""
        with pytest.raises(FieldNotAddressableError):
            FieldHandle(config).set(Config())

    def test_is_root(self, config: Config):
        assert FieldHandle(config).is_root
        assert not FieldHandle(config, "key1").is_root
        assert repr(FieldHandle(config)) == "FieldHandle(<Config>)"


class TestRef:
    """ref 构造测试"""

    def test_ref_attribute(self, config: Config):
        assert ref(config.key1, "subkey2") == FieldHandle(config.key1, "subkey2")

    def test_ref_unknown_attribute(self, config: Config):
        with pytest.raises(FieldNotAddressableError):
            ref(config.key1, "nope")

    def test_ref_scalar_owner(self):
        with pytest.raises(FieldNotAddressableError):
            ref("a", 0)
        with pytest.raises(FieldNotAddressableError):
            ref(42)

    def test_ref_list_index_type(self, config: Config):
        with pytest.raises(FieldNotAddressableError):
            ref(config.key2, "0")


class TestSchemaNode:
    """Schema节点测试"""

    def test_accepts(self):
        """测试类型判断（bool不算integer）"""
        assert SchemaNode(NodeKind.INTEGER).accepts(3)
        assert not SchemaNode(NodeKind.INTEGER).accepts(True)
        assert SchemaNode(NodeKind.BOOLEAN).accepts(False)
        assert SchemaNode(NodeKind.STRUCT, model=SubConfig2).accepts(SubConfig2())
        assert not SchemaNode(NodeKind.STRUCT, model=SubConfig2).accepts(SubConfig1())

    def test_new_value(self):
        """测试零值"""
        assert SchemaNode(NodeKind.STRING).new_value() == ""
        assert SchemaNode(NodeKind.INTEGER).new_value() == 0
        assert SchemaNode(NodeKind.SEQUENCE).new_value() == []

    def test_registry_entry_kind(self, config: Config):
        """测试注册表项的节点类型"""
        entry = RegistryEntry("/ns/key3", FieldHandle(config, "key3"), SchemaNode(NodeKind.MAPPING))
        assert entry.kind is NodeKind.MAPPING
        assert entry.version == 0


class TestStoreModels:
    """存储响应模型测试"""

    def test_parse_etcd_json(self):
        """测试 etcd JSON 字段别名"""
        response = StoreResponse.model_validate({
            "action": "get",
            "node": {
                "key": "/ns/key1",
                "dir": True,
                "nodes": [
                    {"key": "/ns/key1/subkey1", "value": "a", "modifiedIndex": 7, "createdIndex": 7},
                ],
                "modifiedIndex": 5,
                "createdIndex": 5,
            },
        })
        assert response.node.dir
        assert response.node.modified_index == 5
        child = response.node.child("/ns/key1/subkey1")
        assert child is not None and child.value == "a"
        assert child.name == "subkey1"

    def test_watch_event_from_response(self):
        """测试事件转换"""
        response = StoreResponse(
            action="set",
            node=StoreNode(key="/a", value="2", modified_index=9),
            prev_node=StoreNode(key="/a", value="1"),
        )
        event = WatchEvent.from_response(response)
        assert event.action == "set"
        assert event.modified_index == 9
        assert event.prev_value == "1"
