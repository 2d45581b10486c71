"""
Watch订阅单元测试

每个模块完成后必须运行：pytest tests/unit/test_watch.py -v
"""

import threading

import pytest

from kvsync import MemoryKVStore, StoreErrorCode, Subscription, TransportError


class BrokenStore(MemoryKVStore):
    """watch 立即失败的存储"""

    def watch(self, path, recursive=False, after_index=0, cancel=None):
        raise TransportError(StoreErrorCode.CLUSTER_UNREACHABLE, "cluster is unavailable")
        yield


@pytest.fixture
def guard():
    """超时取消，避免测试挂起"""
    timers: list[threading.Timer] = []

    def arm(subscription: Subscription) -> Subscription:
        timer = threading.Timer(5, subscription.cancel)
        timers.append(timer)
        timer.start()
        return subscription

    yield arm
    for timer in timers:
        timer.cancel()


class TestSubscription:
    """订阅测试"""

    def test_receives_events(self, store: MemoryKVStore, guard):
        """测试按顺序收到事件"""
        start = store.index
        store.set("/w/a", "1")
        store.set("/w/b", "2")

        with guard(Subscription(store, "/w", recursive=True, after_index=start, poll_interval=0.01)) as sub:
            assert next(sub).key == "/w/a"
            assert next(sub).key == "/w/b"

    def test_cancel_stops_iteration(self, store: MemoryKVStore, guard):
        """测试取消后迭代结束（不抛错）"""
        sub = guard(Subscription(store, "/w", poll_interval=0.01))
        sub.cancel()
        assert list(sub) == []
        sub.join(timeout=1)
        assert sub.cancelled

    def test_run_callback_stops(self, store: MemoryKVStore, guard):
        """测试回调返回 True 结束"""
        start = store.index
        for i in range(3):
            store.set("/w/k", str(i))

        seen: list[str] = []
        sub = guard(Subscription(store, "/w/k", after_index=start, poll_interval=0.01))
        sub.run(lambda event: seen.append(event.value) or event.value == "1")

        assert seen == ["0", "1"]
        assert sub.cancelled

    def test_error_propagates(self, guard):
        """测试传输层错误在消费方重新抛出"""
        sub = guard(Subscription(BrokenStore(), "/w", poll_interval=0.01))
        with pytest.raises(TransportError) as exc_info:
            next(sub)
        assert exc_info.value.is_unreachable
        with pytest.raises(StopIteration):
            next(sub)

    def test_store_closed_finishes(self, guard):
        """测试存储关闭后订阅结束"""
        store = MemoryKVStore(wait_interval=0.01)
        sub = guard(Subscription(store, "/w", poll_interval=0.01))
        store.close()
        assert list(sub) == []
        assert not sub.cancelled

    def test_exit_joins_worker(self, store: MemoryKVStore, guard):
        """测试退出 with 块后后台线程已结束"""
        with guard(Subscription(store, "/w", poll_interval=0.5)) as sub:
            assert sub.alive
        assert sub.cancelled
        assert not sub.alive
