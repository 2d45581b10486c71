"""
etcd v2 传输 - 基于 httpx 的 /v2/keys 客户端

职责：
1. 把 IKVTransport 操作映射为 /v2/keys 的 GET/PUT/POST/DELETE
2. etcd 的 JSON 错误体映射为 TransportError（保留 errorCode）
3. 连接失败时按顺序切换 endpoint，全部失败为 CLUSTER_UNREACHABLE
4. 单锁串行化普通请求（同一时刻只有一个请求在途），watch 不占锁

约定：
- 每个请求受配置的超时约束，超时即失败，不重试
- watch 以 wait=true 长轮询，读超时后重新发起（用于检查取消），
  历史被截断（401）时从当前索引继续
- 未给出 after_index 时先读取当前 X-Etcd-Index 作为起点

测试要点：
- test_get_parses_node: 响应解析
- test_error_body_mapped: 错误码映射
- test_unreachable: 连接失败
- test_watch_restarts_on_expired: 历史截断后继续
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Iterator
from urllib.parse import quote

import httpx

from ..interfaces import IKVTransport, StoreErrorCode, TransportError
from ..models import StoreResponse, WatchEvent

if TYPE_CHECKING:
    from ..config import SyncSettings

logger = logging.getLogger(__name__)

KEYS_PREFIX = "/v2/keys"


def normalize_endpoint(endpoint: str) -> str:
    """补全协议并去掉末尾的"/" """
    endpoint = endpoint.strip()
    if endpoint and "://" not in endpoint:
        endpoint = "http://" + endpoint
    return endpoint.rstrip("/")


def parse_auth(auth: str | None) -> tuple[str, str] | None:
    """解析 "user:password" """
    if not auth:
        return None
    user, sep, password = auth.partition(":")
    if not sep or not user:
        raise ValueError("auth 必须是 user:password 格式")
    return user, password


def _flag(value: bool) -> str:
    return "true" if value else "false"


class EtcdV2Transport(IKVTransport):
    """etcd v2 HTTP 传输"""

    def __init__(
        self,
        endpoints: list[str],
        *,
        auth: str | None = None,
        timeout: float = 5.0,
        watch_poll: float = 1.0,
        client: httpx.Client | None = None,
    ):
        self.endpoints = [normalize_endpoint(e) for e in endpoints if e and e.strip()]
        if not self.endpoints:
            raise ValueError("endpoints 不能为空")

        self.timeout = timeout
        self.watch_poll = watch_poll
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._client = client or httpx.Client(timeout=timeout, auth=parse_auth(auth))
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> EtcdV2Transport:
        return cls(
            settings.endpoints,
            auth=settings.auth or None,
            timeout=settings.timeouts.request_sec,
            watch_poll=settings.timeouts.watch_poll_sec,
        )

    # ========================================================================
    # IKVTransport
    # ========================================================================

    def get(self, path: str, recursive: bool = False, sort: bool = True) -> StoreResponse:
        params = {"recursive": _flag(recursive), "sorted": _flag(sort), "quorum": "true"}
        return self._request("GET", path, params=params)

    def set(
        self,
        path: str,
        value: str,
        ttl: int = 0,
        prev_value: str | None = None,
        prev_index: int | None = None,
    ) -> StoreResponse:
        data: dict[str, Any] = {"value": value}
        if ttl:
            data["ttl"] = ttl
        if prev_value:
            data["prevValue"] = prev_value
        if prev_index:
            data["prevIndex"] = prev_index
        return self._request("PUT", path, data=data)

    def make_directory(self, path: str, ttl: int = 0) -> StoreResponse:
        data: dict[str, Any] = {"dir": "true", "prevExist": "false"}
        if ttl:
            data["ttl"] = ttl
        return self._request("PUT", path, data=data)

    def delete(
        self,
        path: str,
        recursive: bool = False,
        directory: bool = False,
        prev_value: str | None = None,
        prev_index: int | None = None,
    ) -> StoreResponse:
        params: dict[str, Any] = {}
        if recursive:
            params["recursive"] = "true"
        if directory:
            params["dir"] = "true"
        if prev_value:
            params["prevValue"] = prev_value
        if prev_index:
            params["prevIndex"] = prev_index
        return self._request("DELETE", path, params=params)

    def create_ordered_child(self, parent: str, value: str, ttl: int = 0) -> StoreResponse:
        data: dict[str, Any] = {"value": value}
        if ttl:
            data["ttl"] = ttl
        return self._request("POST", parent, data=data)

    def watch(
        self,
        path: str,
        recursive: bool = False,
        after_index: int = 0,
        cancel: threading.Event | None = None,
    ) -> Iterator[WatchEvent]:
        next_index = after_index + 1 if after_index else 0
        timeout = httpx.Timeout(self.timeout, read=self.watch_poll)

        # after_index 为 0 时从当前索引开始，之后每次长轮询都带 waitIndex
        if not next_index and not self._stopped(cancel):
            next_index = self._current_index(path) + 1

        while not self._stopped(cancel):
            params: dict[str, Any] = {"wait": "true", "recursive": _flag(recursive)}
            if next_index:
                params["waitIndex"] = next_index
            try:
                response = self._request("GET", path, params=params, timeout=timeout, locked=False)
            except TransportError as e:
                if e.is_watch_expired:
                    logger.warning(f"watch {path}: 历史已截断，从索引 {e.index} 继续")
                    next_index = (e.index or 0) + 1
                    continue
                if e.code == StoreErrorCode.REQUEST_TIMEOUT:
                    continue
                if self._stopped(cancel):
                    return
                raise

            if self._stopped(cancel):
                return
            next_index = response.node.modified_index + 1
            yield WatchEvent.from_response(response)

    def close(self) -> None:
        self._closed.set()
        if self._owns_client:
            self._client.close()

    # ========================================================================
    # 内部
    # ========================================================================

    def _current_index(self, path: str) -> int:
        """X-Etcd-Index（路径不存在时取错误体中的 index）"""
        try:
            return self._request("GET", path, params={"quorum": "true"}).index
        except TransportError as e:
            if not e.is_key_not_found:
                raise
            return e.index or 0

    def _stopped(self, cancel: threading.Event | None) -> bool:
        return self._closed.is_set() or (cancel is not None and cancel.is_set())

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        timeout: httpx.Timeout | float | None = None,
        locked: bool = True,
    ) -> StoreResponse:
        if locked:
            with self._lock:
                return self._send(method, path, params, data, timeout)
        return self._send(method, path, params, data, timeout)

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        data: dict[str, Any] | None,
        timeout: httpx.Timeout | float | None,
    ) -> StoreResponse:
        url_path = KEYS_PREFIX + quote(path if path.startswith("/") else "/" + path)
        last_error: Exception | None = None

        for endpoint in self.endpoints:
            try:
                response = self._client.request(
                    method,
                    endpoint + url_path,
                    params=params,
                    data=data,
                    timeout=timeout if timeout is not None else self.timeout,
                )
            except httpx.TimeoutException as e:
                raise TransportError(
                    StoreErrorCode.REQUEST_TIMEOUT, f"{method} {path} 超时", str(e)
                ) from e
            except httpx.TransportError as e:
                logger.warning(f"{endpoint} 不可达: {e}")
                last_error = e
                continue
            return self._decode(method, path, response)

        raise TransportError(
            StoreErrorCode.CLUSTER_UNREACHABLE,
            "cluster is unavailable",
            str(last_error) if last_error else None,
        ) from last_error

    def _decode(self, method: str, path: str, response: httpx.Response) -> StoreResponse:
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "errorCode" in body:
            raise TransportError(
                body["errorCode"],
                body.get("message", ""),
                body.get("cause"),
                body.get("index"),
            )
        if response.is_error or not isinstance(body, dict):
            detail = response.text.strip() or response.reason_phrase
            raise TransportError(
                StoreErrorCode.UNKNOWN, f"{method} {path} -> {response.status_code}: {detail}"
            )

        index = int(response.headers.get("X-Etcd-Index", 0) or 0)
        return StoreResponse.model_validate({**body, "index": index})
