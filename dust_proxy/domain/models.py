"""解析流程中使用的统一数据模型。

- ResolutionRequest: 一次代理请求（prompt + assistantId）。
- ConversationHandle: Dust 创建会话后返回的会话句柄。
- AgentMessage: 最终返回给插件的助手消息。
- ResolutionOutcome: 轮询/流式两种解析器共同产出的结果，
  由 api.normalizer 映射为 HTTP 响应。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Union


Visibility = Literal["visible", "deleted"]


@dataclass(frozen=True)
class ResolutionRequest:
    """经过校验的调用方输入，整个解析过程中不可变。"""

    prompt: str
    assistant_id: str
    strategy: Optional[str] = None


@dataclass
class ConversationHandle:
    conversation_id: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentMessage:
    """助手回复。

    - 轮询模式下从会话快照中整体读取，raw 保存上游原始消息对象；
    - 流式模式下由事件增量拼装，raw 为空。
    """

    id: str
    content: str
    visibility: Visibility = "visible"
    raw: Optional[Dict[str, Any]] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AgentMessage":
        return cls(
            id=payload.get("sId") or payload.get("id") or "",
            content=payload.get("content") or "",
            visibility=payload.get("visibility") or "visible",
            raw=payload,
        )

    def to_payload(self) -> Dict[str, Any]:
        if self.raw is not None:
            return dict(self.raw)
        return {
            "sId": self.id,
            "type": "agent_message",
            "content": self.content,
            "visibility": self.visibility,
        }


@dataclass
class Success:
    conversation_id: str
    message: AgentMessage
    # 会话快照（不含 content），用于回显会话元数据
    conversation: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Timeout:
    conversation_id: Optional[str]
    attempts: int
    conversation_url: Optional[str] = None


@dataclass
class UpstreamFailure:
    status_code: int
    body: str
    error: str = "Dust API error (create)"


@dataclass
class NoContent:
    conversation_id: Optional[str] = None


ResolutionOutcome = Union[Success, Timeout, UpstreamFailure, NoContent]
