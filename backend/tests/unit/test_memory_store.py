"""
内存KV存储单元测试

每个模块完成后必须运行：pytest tests/unit/test_memory_store.py -v
"""

import threading
import time

import pytest

from kvsync import MemoryKVStore, StoreErrorCode, TransportError
from kvsync.sync import Subscription


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def error_code(excinfo: pytest.ExceptionInfo) -> int:
    return excinfo.value.code


class TestReadWrite:
    """读写测试"""

    def test_set_get(self, store: MemoryKVStore):
        """测试读写与索引递增"""
        response = store.set("/a", "1")
        assert response.action == "set"
        assert response.node.modified_index == 1
        assert store.get("/a").node.value == "1"

        second = store.set("/a", "2")
        assert second.node.modified_index == 2
        assert second.node.created_index == 1
        assert second.prev_node.value == "1"
        assert store.index == 2

    def test_set_creates_parents(self, store: MemoryKVStore):
        """测试自动创建父目录"""
        store.set("/a/b/c", "x")
        assert store.get("/a").node.dir
        assert store.get("/a/b").node.dir
        assert store.index == 3

    def test_get_missing(self, store: MemoryKVStore):
        with pytest.raises(TransportError) as exc_info:
            store.get("/missing")
        assert error_code(exc_info) == StoreErrorCode.KEY_NOT_FOUND

    def test_get_recursive(self, store: MemoryKVStore):
        """测试递归与非递归读取"""
        store.set("/a/b/c", "x")
        store.set("/a/d", "y")

        shallow = store.get("/a").node
        assert [n.key for n in shallow.nodes] == ["/a/b", "/a/d"]
        assert shallow.nodes[0].nodes == []

        deep = store.get("/a", recursive=True).node
        assert deep.nodes[0].nodes[0].value == "x"

    def test_set_on_directory(self, store: MemoryKVStore):
        store.make_directory("/d")
        with pytest.raises(TransportError) as exc_info:
            store.set("/d", "x")
        assert error_code(exc_info) == StoreErrorCode.NOT_A_FILE

    def test_set_under_file(self, store: MemoryKVStore):
        store.set("/f", "x")
        with pytest.raises(TransportError) as exc_info:
            store.set("/f/child", "y")
        assert error_code(exc_info) == StoreErrorCode.NOT_A_DIRECTORY

    def test_root_read_only(self, store: MemoryKVStore):
        with pytest.raises(TransportError) as exc_info:
            store.set("/", "x")
        assert error_code(exc_info) == StoreErrorCode.ROOT_READ_ONLY


class TestConditional:
    """条件写/删测试"""

    def test_compare_and_swap(self, store: MemoryKVStore):
        """测试 prevValue/prevIndex"""
        first = store.set("/k", "1")
        with pytest.raises(TransportError) as exc_info:
            store.set("/k", "2", prev_value="0")
        assert exc_info.value.is_compare_failed

        with pytest.raises(TransportError) as exc_info:
            store.set("/k", "2", prev_index=first.node.modified_index + 5)
        assert exc_info.value.is_compare_failed

        swapped = store.set("/k", "2", prev_value="1", prev_index=first.node.modified_index)
        assert swapped.action == "compareAndSwap"
        assert store.get("/k").node.value == "2"

    def test_guarded_set_missing(self, store: MemoryKVStore):
        with pytest.raises(TransportError) as exc_info:
            store.set("/k", "1", prev_value="0")
        assert exc_info.value.is_key_not_found

    def test_empty_guard_ignored(self, store: MemoryKVStore):
        """测试空条件视为无条件"""
        store.set("/k", "1")
        assert store.set("/k", "2", prev_value="", prev_index=0).action == "set"

    def test_compare_and_delete(self, store: MemoryKVStore):
        store.set("/k", "1")
        with pytest.raises(TransportError):
            store.delete("/k", prev_value="x")
        assert store.delete("/k", prev_value="1").action == "compareAndDelete"


class TestDirectories:
    """目录测试"""

    def test_make_directory_exists(self, store: MemoryKVStore):
        """测试目录已存在"""
        assert store.make_directory("/d").action == "create"
        with pytest.raises(TransportError) as exc_info:
            store.make_directory("/d")
        assert exc_info.value.is_node_exist

    def test_delete_flags(self, store: MemoryKVStore):
        """测试删除目录的标志位"""
        store.make_directory("/d")
        with pytest.raises(TransportError) as exc_info:
            store.delete("/d")
        assert exc_info.value.is_not_a_file
        assert store.delete("/d", directory=True).action == "delete"

        store.set("/e/x", "1")
        with pytest.raises(TransportError) as exc_info:
            store.delete("/e", directory=True)
        assert exc_info.value.is_dir_not_empty
        store.delete("/e", recursive=True)
        with pytest.raises(TransportError):
            store.get("/e/x")

    def test_delete_root(self, store: MemoryKVStore):
        with pytest.raises(TransportError) as exc_info:
            store.delete("/", recursive=True)
        assert error_code(exc_info) == StoreErrorCode.ROOT_READ_ONLY

    def test_ordered_children(self, store: MemoryKVStore):
        """测试有序子节点key"""
        first = store.create_ordered_child("/q", "a")
        second = store.create_ordered_child("/q", "b")
        assert first.node.key == f"/q/{first.node.modified_index:020d}"
        assert second.node.name > first.node.name
        assert [n.value for n in store.get("/q", sort=True).node.nodes] == ["a", "b"]


class TestTTL:
    """TTL测试"""

    def test_key_expires(self):
        """测试惰性过期"""
        clock = FakeClock()
        store = MemoryKVStore(clock=clock)
        store.set("/tmp", "x", ttl=10)
        assert store.get("/tmp").node.ttl == 10

        clock.now += 11
        with pytest.raises(TransportError) as exc_info:
            store.get("/tmp")
        assert exc_info.value.is_key_not_found

        event = next(store.watch("/tmp", after_index=1))
        assert event.action == "expire"
        assert event.prev_value == "x"


class TestWatch:
    """watch测试"""

    def test_watch_events(self, store: MemoryKVStore):
        """测试 watch 事件顺序（递归，忽略其他路径）"""
        start = store.index
        store.set("/w/a", "1")
        store.set("/other", "x")
        store.set("/w/b", "2")
        store.delete("/w/a")

        events = store.watch("/w", recursive=True, after_index=start)
        received = [next(events) for _ in range(3)]
        assert [(e.action, e.key) for e in received] == [
            ("set", "/w/a"),
            ("set", "/w/b"),
            ("delete", "/w/a"),
        ]
        assert received[2].prev_value == "1"

    def test_watch_exact_key(self, store: MemoryKVStore):
        """测试非递归只匹配自身"""
        start = store.index
        store.set("/w/a", "1")
        store.set("/w/a/", "2")
        store.set("/w/ab", "3")
        store.set("/w/a", "4")
        events = store.watch("/w/a", after_index=start)
        assert [next(events).value for _ in range(3)] == ["1", "2", "4"]

    def test_watch_cancel(self, store: MemoryKVStore):
        """测试取消后结束"""
        cancel = threading.Event()
        cancel.set()
        assert list(store.watch("/w", cancel=cancel)) == []

    def test_watch_close(self, store: MemoryKVStore):
        store.close()
        assert list(store.watch("/w")) == []

    def test_history_truncated(self):
        """测试历史被截断时从当前索引继续"""
        store = MemoryKVStore(history_size=2, wait_interval=0.01)
        for i in range(5):
            store.set(f"/k{i}", str(i))

        subscription = Subscription(store, "/", recursive=True, after_index=1, poll_interval=0.01)
        timer = threading.Timer(5, subscription.cancel)
        timer.start()
        try:
            # 等后台线程跳到当前索引之后再写入
            time.sleep(0.2)
            store.set("/late", "x")
            event = next(subscription)
        finally:
            subscription.cancel()
            timer.cancel()
            store.close()

        assert event.key == "/late"
