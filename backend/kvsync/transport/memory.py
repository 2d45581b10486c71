"""
内存KV存储 - 进程内的分层键值存储（etcd v2 语义）

职责：
1. 目录/叶子树、全局修改索引、TTL（惰性过期）
2. 条件写/条件删（prev_value/prev_index）
3. 有序子节点（20位补零的索引作为key）
4. 有界事件历史与阻塞式watch

用于单元测试，以及不需要外部存储的嵌入场景。

测试要点：
- test_set_get: 读写与索引递增
- test_make_directory_exists: 目录已存在
- test_delete_flags: 删除目录的标志位
- test_watch_events: watch 事件顺序
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterator

from ..interfaces import IKVTransport, StoreErrorCode, TransportError
from ..models import StoreNode, StoreResponse, WatchEvent

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    """内部节点"""
    key: str
    value: str | None = None
    dir: bool = False
    children: dict[str, _Entry] = field(default_factory=dict)
    created_index: int = 0
    modified_index: int = 0
    expires_at: float | None = None


def _split(path: str) -> list[str]:
    return [part for part in path.split("/") if part]


def _join(parts: list[str]) -> str:
    return "/" + "/".join(parts)


class MemoryKVStore(IKVTransport):
    """内存KV存储"""

    def __init__(
        self,
        history_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        wait_interval: float = 0.1,
    ):
        self._cond = threading.Condition(threading.RLock())
        self._clock = clock
        self._wait_interval = wait_interval
        self._root = _Entry("/", dir=True)
        self._index = 0
        self._history: deque[WatchEvent] = deque(maxlen=history_size)
        self._closed = False

    @property
    def index(self) -> int:
        """当前全局修改索引"""
        with self._cond:
            return self._index

    # ========================================================================
    # 读
    # ========================================================================

    def get(self, path: str, recursive: bool = False, sort: bool = True) -> StoreResponse:
        with self._cond:
            self._expire()
            entry = self._require(path)
            node = self._to_node(entry, recursive, sort, depth=0)
            return StoreResponse(action="get", node=node, index=self._index)

    # ========================================================================
    # 写
    # ========================================================================

    def set(
        self,
        path: str,
        value: str,
        ttl: int = 0,
        prev_value: str | None = None,
        prev_index: int | None = None,
    ) -> StoreResponse:
        with self._cond:
            self._expire()
            parts = self._writable(path)
            existing = self._lookup(parts)
            guarded = bool(prev_value) or bool(prev_index)

            if existing is not None and existing.dir:
                raise TransportError(StoreErrorCode.NOT_A_FILE, "Not a file", _join(parts), self._index)
            if guarded:
                if existing is None:
                    raise TransportError(
                        StoreErrorCode.KEY_NOT_FOUND, "Key not found", _join(parts), self._index
                    )
                self._compare(existing, prev_value, prev_index)

            parent = self._make_parents(parts)
            self._index += 1
            entry = _Entry(
                key=_join(parts),
                value=value,
                created_index=existing.created_index if existing else self._index,
                modified_index=self._index,
                expires_at=self._deadline(ttl),
            )
            parent.children[parts[-1]] = entry
            action = "compareAndSwap" if guarded else "set"
            return self._emit(action, entry, existing)

    def make_directory(self, path: str, ttl: int = 0) -> StoreResponse:
        with self._cond:
            self._expire()
            parts = self._writable(path)
            if self._lookup(parts) is not None:
                raise TransportError(
                    StoreErrorCode.NODE_EXIST, "Key already exists", _join(parts), self._index
                )
            parent = self._make_parents(parts)
            self._index += 1
            entry = _Entry(
                key=_join(parts),
                dir=True,
                created_index=self._index,
                modified_index=self._index,
                expires_at=self._deadline(ttl),
            )
            parent.children[parts[-1]] = entry
            return self._emit("create", entry, None)

    def create_ordered_child(self, parent: str, value: str, ttl: int = 0) -> StoreResponse:
        with self._cond:
            self._expire()
            parts = _split(parent)
            directory = self._make_parents(parts + ["_"])
            self._index += 1
            name = f"{self._index:020d}"
            entry = _Entry(
                key=_join(parts + [name]),
                value=value,
                created_index=self._index,
                modified_index=self._index,
                expires_at=self._deadline(ttl),
            )
            directory.children[name] = entry
            return self._emit("create", entry, None)

    def delete(
        self,
        path: str,
        recursive: bool = False,
        directory: bool = False,
        prev_value: str | None = None,
        prev_index: int | None = None,
    ) -> StoreResponse:
        with self._cond:
            self._expire()
            parts = self._writable(path)
            existing = self._require(path)
            guarded = bool(prev_value) or bool(prev_index)

            if existing.dir:
                if guarded or not (directory or recursive):
                    raise TransportError(StoreErrorCode.NOT_A_FILE, "Not a file", existing.key, self._index)
                if existing.children and not recursive:
                    raise TransportError(
                        StoreErrorCode.DIR_NOT_EMPTY, "Directory not empty", existing.key, self._index
                    )
            elif guarded:
                self._compare(existing, prev_value, prev_index)

            parent = self._lookup(parts[:-1])
            del parent.children[parts[-1]]
            self._index += 1
            tombstone = _Entry(
                key=existing.key,
                dir=existing.dir,
                created_index=existing.created_index,
                modified_index=self._index,
            )
            action = "compareAndDelete" if guarded else "delete"
            return self._emit(action, tombstone, existing)

    # ========================================================================
    # Watch
    # ========================================================================

    def watch(
        self,
        path: str,
        recursive: bool = False,
        after_index: int = 0,
        cancel: threading.Event | None = None,
    ) -> Iterator[WatchEvent]:
        key = _join(_split(path))
        with self._cond:
            next_index = after_index + 1 if after_index else self._index + 1

        while True:
            event = None
            with self._cond:
                while event is None:
                    if self._closed or (cancel is not None and cancel.is_set()):
                        return
                    self._expire()
                    oldest = self._history[0].modified_index if self._history else self._index + 1
                    if next_index < oldest and next_index <= self._index:
                        logger.warning(f"watch {key}: 历史已截断 (index={next_index})，从当前索引继续")
                        next_index = self._index + 1
                    event = self._next_event(key, recursive, next_index)
                    if event is None:
                        self._cond.wait(self._wait_interval)
                next_index = event.modified_index + 1
            yield event

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    # ========================================================================
    # 内部
    # ========================================================================

    def _next_event(self, key: str, recursive: bool, next_index: int) -> WatchEvent | None:
        for event in self._history:
            if event.modified_index < next_index:
                continue
            if event.key == key:
                return event
            if recursive and (key == "/" or event.key.startswith(key + "/")):
                return event
        return None

    def _emit(self, action: str, entry: _Entry, prev: _Entry | None) -> StoreResponse:
        response = StoreResponse(
            action=action,
            node=self._to_node(entry, False, True, depth=0),
            prev_node=self._to_node(prev, False, True, depth=0) if prev else None,
            index=self._index,
        )
        self._history.append(WatchEvent.from_response(response))
        self._cond.notify_all()
        return response

    def _expire(self) -> None:
        """删除已过期节点并记录 expire 事件"""
        now = self._clock()
        self._expire_under(self._root, now)

    def _expire_under(self, directory: _Entry, now: float) -> None:
        for name, child in list(directory.children.items()):
            if child.expires_at is not None and child.expires_at <= now:
                del directory.children[name]
                self._index += 1
                tombstone = _Entry(key=child.key, dir=child.dir, modified_index=self._index)
                self._emit("expire", tombstone, child)
            elif child.dir:
                self._expire_under(child, now)

    def _lookup(self, parts: list[str]) -> _Entry | None:
        entry = self._root
        for part in parts:
            if not entry.dir:
                return None
            entry = entry.children.get(part)
            if entry is None:
                return None
        return entry

    def _require(self, path: str) -> _Entry:
        parts = _split(path)
        entry = self._lookup(parts)
        if entry is None:
            raise TransportError(StoreErrorCode.KEY_NOT_FOUND, "Key not found", _join(parts), self._index)
        return entry

    def _writable(self, path: str) -> list[str]:
        parts = _split(path)
        if not parts:
            raise TransportError(StoreErrorCode.ROOT_READ_ONLY, "Root is read only", "/", self._index)
        return parts

    def _make_parents(self, parts: list[str]) -> _Entry:
        """逐级创建父目录，返回直接父目录"""
        entry = self._root
        for i, part in enumerate(parts[:-1]):
            child = entry.children.get(part)
            if child is None:
                self._index += 1
                child = _Entry(
                    key=_join(parts[: i + 1]),
                    dir=True,
                    created_index=self._index,
                    modified_index=self._index,
                )
                entry.children[part] = child
            elif not child.dir:
                raise TransportError(
                    StoreErrorCode.NOT_A_DIRECTORY, "Not a directory", child.key, self._index
                )
            entry = child
        return entry

    def _compare(self, entry: _Entry, prev_value: str | None, prev_index: int | None) -> None:
        if prev_value and entry.value != prev_value:
            raise TransportError(
                StoreErrorCode.COMPARE_FAILED,
                "Compare failed",
                f"[{prev_value} != {entry.value}]",
                self._index,
            )
        if prev_index and entry.modified_index != prev_index:
            raise TransportError(
                StoreErrorCode.COMPARE_FAILED,
                "Compare failed",
                f"[{prev_index} != {entry.modified_index}]",
                self._index,
            )

    def _deadline(self, ttl: int) -> float | None:
        if ttl and ttl > 0:
            return self._clock() + ttl
        return None

    def _to_node(self, entry: _Entry, recursive: bool, sort: bool, depth: int) -> StoreNode:
        ttl = None
        if entry.expires_at is not None:
            ttl = max(0, math.ceil(entry.expires_at - self._clock()))

        nodes: list[StoreNode] = []
        if entry.dir and (depth == 0 or recursive):
            children = entry.children.values()
            if sort:
                children = sorted(children, key=lambda c: c.key)
            nodes = [self._to_node(c, recursive, sort, depth + 1) for c in children]

        return StoreNode(
            key=entry.key,
            value=None if entry.dir else entry.value,
            dir=entry.dir,
            nodes=nodes,
            created_index=entry.created_index,
            modified_index=entry.modified_index,
            ttl=ttl,
        )
