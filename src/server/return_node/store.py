"""
待定响应存储：以响应 ID 为键，保存带外响应方最终返回的传输层响应。

真实部署中该存储由接收带外响应的外部组件维护；这里提供一个线程安全的内存实现，
节点只使用其中的 get 与 remove 两个原语。
"""

from __future__ import annotations

import secrets
import threading
from concurrent.futures import Future
from typing import Dict

from loguru import logger

from .schemas import ResolvedResponse


class PendingResponseNotFound(LookupError):
    """响应 ID 未知，或对应记录已被移除。"""


class PendingResponseStore:
    def __init__(self) -> None:
        self._pending: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def register(self, response_id: str | None = None) -> str:
        """
        登记一个尚未作答的挑战。
        :param response_id: 指定的响应 ID；为空时生成 URL 安全的随机 ID。
        :return: 响应 ID。
        """
        response_id = response_id or secrets.token_urlsafe(32)
        with self._lock:
            self._pending.setdefault(response_id, Future())
        return response_id

    def complete(self, response_id: str, response: ResolvedResponse) -> None:
        self._future(response_id).set_result(response)
        logger.debug(f"待定响应已作答 (ID: {response_id}), 状态码: {response.status_code}")

    def fail(self, response_id: str, exc: BaseException) -> None:
        self._future(response_id).set_exception(exc)

    def get(self, response_id: str) -> Future:
        """
        非阻塞地取出响应 ID 对应的 Future；调用方通过 done() 判断是否已作答。
        :raises PendingResponseNotFound: 响应 ID 未知。
        """
        return self._future(response_id)

    def remove(self, response_id: str) -> None:
        with self._lock:
            self._pending.pop(response_id, None)

    def _future(self, response_id: str) -> Future:
        with self._lock:
            future = self._pending.get(response_id)
        if future is None:
            raise PendingResponseNotFound(response_id)
        return future

    def __contains__(self, response_id: object) -> bool:
        with self._lock:
            return response_id in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


pending_store = PendingResponseStore()
