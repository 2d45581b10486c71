"""
Watch订阅 - 可取消的变更订阅

Subscription 在后台线程运行 transport.watch，把事件放入队列；
消费方迭代取事件，cancel() 结束订阅（不抛错）。传输层的不可恢复错误
在消费方线程重新抛出。

FieldWatch 在 Subscription 之上，每收到一个事件就重新递归读取被监听的
路径并填充对应字段，填充发生在消费方线程，对象图仍然只有一个使用者。

使用方式：
    with client.watch(config.key3) as watch:
        for event in watch:
            print(event.key, config.key3)
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Callable, Iterator

from ..interfaces import IKVTransport, TransportError
from ..models import RegistryEntry, WatchEvent
from ..schema import walk_prefix

if TYPE_CHECKING:
    from .walker import StructureWalker

logger = logging.getLogger(__name__)

_DONE = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


class Subscription:
    """可取消的watch订阅"""

    def __init__(
        self,
        transport: IKVTransport,
        path: str,
        *,
        recursive: bool = False,
        after_index: int = 0,
        queue_size: int = 256,
        poll_interval: float = 0.5,
    ):
        self.transport = transport
        self.path = path
        self.recursive = recursive
        self.after_index = after_index
        self._poll_interval = poll_interval
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._cancel = threading.Event()
        self._finished = False
        self._thread = threading.Thread(
            target=self._run, name=f"kvsync-watch:{path}", daemon=True
        )
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """结束订阅"""
        self._cancel.set()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        try:
            for event in self.transport.watch(
                self.path,
                recursive=self.recursive,
                after_index=self.after_index,
                cancel=self._cancel,
            ):
                if not self._put(event):
                    return
        except Exception as e:
            logger.error(f"watch {self.path} 失败: {e}")
            self._put(_Failure(e))
        finally:
            self._put(_DONE)

    def _put(self, item: object) -> bool:
        while not self._cancel.is_set():
            try:
                self._queue.put(item, timeout=self._poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def __iter__(self) -> Iterator[WatchEvent]:
        return self

    def __next__(self) -> WatchEvent:
        while True:
            if self._finished or self._cancel.is_set():
                raise StopIteration
            try:
                item = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if item is _DONE:
                self._finished = True
                raise StopIteration
            if isinstance(item, _Failure):
                self._finished = True
                raise item.error
            return item

    def run(self, callback: Callable[[WatchEvent], bool | None]) -> None:
        """逐个事件回调，回调返回 True 时结束"""
        for event in self:
            if callback(event):
                self.cancel()
                break

    @property
    def alive(self) -> bool:
        """后台线程是否仍在运行"""
        return self._thread.is_alive()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()
        self.join(self._poll_interval * 2)


class FieldWatch:
    """字段级watch：事件到达时重新加载字段"""

    def __init__(self, walker: StructureWalker, entry: RegistryEntry, subscription: Subscription):
        self.walker = walker
        self.entry = entry
        self.subscription = subscription

    def __iter__(self) -> Iterator[WatchEvent]:
        return self

    def __next__(self) -> WatchEvent:
        event = next(self.subscription)
        try:
            self.reload()
        except Exception:
            self.subscription.cancel()
            raise
        return event

    def reload(self) -> None:
        # 目录的事件只描述变化的子节点，需要重新递归读取整个路径
        path = self.entry.path
        try:
            response = self.walker.transport.get(path, recursive=True, sort=True)
        except TransportError as e:
            if not e.is_key_not_found:
                raise
            # 被删除或过期：容器清空，标量保持原值，继续监听
            logger.info(f"{path} 已从存储中删除")
            self.walker.forget(self.entry.handle, self.entry.node, path)
            return
        self.walker.fill(self.entry.handle, self.entry.node, response.node, walk_prefix(path))

    def run(self, callback: Callable[[WatchEvent], bool | None]) -> None:
        for event in self:
            if callback(event):
                self.cancel()
                break

    def cancel(self) -> None:
        self.subscription.cancel()

    def __enter__(self) -> FieldWatch:
        return self

    def __exit__(self, *exc) -> None:
        self.subscription.__exit__(*exc)
