"""
带外认证返回节点的数据模型定义。

公开接口：
    - Decision: 单次调用的三值决策
    - NodeOutcome: 暴露给宿主运行时的分支名称
    - to_outcome: 决策到分支名称的纯映射
    - ResolvedResponse: 待定响应存储产出的传输层响应
    - Envelope / InnerPayload: 签名信封及其内部载荷
    - ResolveErrorKind / ResolveResult: 解析器内部使用的带标签结果
    - ProcessRequest / ProcessResponse / OutcomesResponse: HTTP 接口模型
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class Decision(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PENDING = "pending"


class NodeOutcome(str, Enum):
    """宿主运行时据此选择下一步的分支名称。"""

    TRUE = "true"
    FALSE = "false"
    UNANSWERED = "unanswered"


_OUTCOMES: Dict[Decision, NodeOutcome] = {
    Decision.ACCEPTED: NodeOutcome.TRUE,
    Decision.REJECTED: NodeOutcome.FALSE,
    Decision.PENDING: NodeOutcome.UNANSWERED,
}


def to_outcome(decision: Decision) -> NodeOutcome:
    return _OUTCOMES[decision]


class ResolvedResponse(BaseModel):
    """
    带外响应方作答后，由待定响应存储保存的传输层响应。
    """
    status_code: int
    body: str  # 原始响应实体

    @property
    def is_successful(self) -> bool:
        return 200 <= self.status_code < 300


class Envelope(BaseModel):
    """
    签名信封：payload 为 Base64 编码的 JSON，signature 为 Base64 编码的签名。
    """
    payload: str
    signature: str
    algorithm: str  # "sha256"，其余任意值按 SHA-1 处理


class InnerPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    auth_status: str = Field(alias="authStatus")


class ResolveErrorKind(str, Enum):
    STORE_LOOKUP = "store_lookup"
    PROTOCOL_VIOLATION = "protocol_violation"


class ResolveResult(BaseModel):
    """
    解析结果：要么是一个决策（Ok），要么是一类错误（Err），二者恰有其一。
    """
    decision: Decision | None = None
    error: ResolveErrorKind | None = None
    detail: str | None = None

    @classmethod
    def ok(cls, decision: Decision) -> "ResolveResult":
        return cls(decision=decision)

    @classmethod
    def err(cls, kind: ResolveErrorKind, detail: str | None = None) -> "ResolveResult":
        return cls(error=kind, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.error is None


class ProcessRequest(BaseModel):
    """
    宿主运行时提交的共享状态，其中包含之前会话写入的响应 ID。
    """
    shared_state: Dict[str, Any]


class ProcessResponse(BaseModel):
    outcome: NodeOutcome


class OutcomesResponse(BaseModel):
    outcomes: List[NodeOutcome]
