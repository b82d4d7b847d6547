"""
带外认证返回节点的业务逻辑层。
此模块轮询待定响应、验证签名信封，并将结果映射为宿主运行时的三个分支之一。
"""

from __future__ import annotations

import threading
from typing import Any, List, Mapping, Optional

from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from loguru import logger

from src.server.config import Config, config
from . import core
from .schemas import (
    Decision,
    NodeOutcome,
    OutcomesResponse,
    ProcessRequest,
    ProcessResponse,
    ResolvedResponse,
    ResolveErrorKind,
    ResolveResult,
    to_outcome,
)
from .store import PendingResponseStore, pending_store


class NodeProcessError(RuntimeError):
    """节点处理失败，宿主运行时应将其视为处理错误而不是普通的拒绝。"""


class ReturnNode:
    """
    带外认证返回节点。公钥在构造时加载一次，之后对所有请求只读共享。
    """

    def __init__(
        self,
        public_key: PublicKeyTypes,
        store: PendingResponseStore,
        *,
        response_id_key: str = "oob_response_id",
        store_error_policy: str = "reject",
    ) -> None:
        if store_error_policy not in ("reject", "raise"):
            raise ValueError(f"未知的存储错误处理策略: {store_error_policy}")
        self._public_key = public_key
        self._store = store
        self.response_id_key = response_id_key
        self.store_error_policy = store_error_policy

    @classmethod
    def from_config(cls, settings: Config, store: PendingResponseStore) -> "ReturnNode":
        """
        根据配置构造节点。证书加载失败时直接抛出，节点不会被创建。
        :raises CertificateLoadError: 服务方证书无法解析。
        """
        public_key = core.load_public_key(settings.service_cert.get_secret_value())
        logger.info(f"返回节点已加载服务方公钥: {type(public_key).__name__}")
        return cls(
            public_key,
            store,
            response_id_key=settings.response_id_key,
            store_error_policy=settings.store_error_policy,
        )

    def resolve(self, response_id: str) -> ResolveResult:
        """
        解析一次响应 ID。
        未作答时返回 Pending 且不移除记录；一旦观察到已作答的响应，
        无论后续成功与否，都会在返回前移除该记录。
        """
        try:
            future = self._store.get(response_id)
        except Exception as e:
            logger.error(f"获取待定响应失败 (ID: {response_id}): {e!r}")
            return ResolveResult.err(ResolveErrorKind.STORE_LOOKUP, str(e))

        if not future.done():
            return ResolveResult.ok(Decision.PENDING)

        try:
            return self._decide(response_id, future)
        finally:
            self._store.remove(response_id)

    def _decide(self, response_id: str, future) -> ResolveResult:
        try:
            response: ResolvedResponse = future.result()
        except Exception as e:
            logger.error(f"带外响应传输失败 (ID: {response_id}): {e!r}")
            return ResolveResult.ok(Decision.REJECTED)

        if not response.is_successful:
            logger.debug(f"认证响应 (ID: {response_id}) 状态码: {response.status_code}")
            return ResolveResult.ok(Decision.REJECTED)

        try:
            status = core.decode_status(response.body, self._public_key)
        except core.EnvelopeError as e:
            logger.error(f"认证响应 (ID: {response_id}) 违反协议: {e}")
            return ResolveResult.err(ResolveErrorKind.PROTOCOL_VIOLATION, str(e))

        logger.debug(f"认证响应 (ID: {response_id}): {status}")
        if status == core.ACCEPT_STATUS:
            return ResolveResult.ok(Decision.ACCEPTED)
        return ResolveResult.ok(Decision.REJECTED)

    def process(self, shared_state: Mapping[str, Any]) -> NodeOutcome:
        """
        宿主运行时入口：从共享状态读取响应 ID，返回分支名称。
        :raises NodeProcessError: 共享状态缺少响应 ID、响应违反协议，
            或存储错误策略为 raise 时查询失败。
        """
        response_id = shared_state.get(self.response_id_key)
        if not isinstance(response_id, str) or not response_id:
            raise NodeProcessError(f"共享状态中缺少 {self.response_id_key}")

        result = self.resolve(response_id)
        if result.is_ok:
            return to_outcome(result.decision)
        if result.error is ResolveErrorKind.STORE_LOOKUP and self.store_error_policy == "reject":
            return NodeOutcome.FALSE
        # 不向调用方透露解析细节
        raise NodeProcessError(f"节点处理失败: {result.error.value}")

    @staticmethod
    def outcomes() -> List[NodeOutcome]:
        return [NodeOutcome.TRUE, NodeOutcome.FALSE, NodeOutcome.UNANSWERED]


_NODE: Optional[ReturnNode] = None
_LOCK = threading.Lock()


def init_node(
    settings: Optional[Config] = None,
    store: Optional[PendingResponseStore] = None,
) -> ReturnNode:
    """构造并登记进程内的返回节点实例。"""
    global _NODE
    node = ReturnNode.from_config(settings or config, store or pending_store)
    with _LOCK:
        _NODE = node
    return node


def get_node() -> ReturnNode:
    with _LOCK:
        node = _NODE
    if node is None:
        raise RuntimeError("返回节点尚未初始化")
    return node


def process_service(req: ProcessRequest) -> ProcessResponse:
    """
    处理宿主运行时的一次轮询。
    :param req: 包含共享状态的请求对象。
    :return: 包含分支名称的响应对象。
    :raises NodeProcessError: 见 ReturnNode.process。
    """
    return ProcessResponse(outcome=get_node().process(req.shared_state))


def outcomes_service() -> OutcomesResponse:
    return OutcomesResponse(outcomes=ReturnNode.outcomes())
