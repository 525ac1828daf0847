"""流式解析器。

以 stream=true 创建会话，逐行读取 `data: <json>` 记录并聚合为一条最终消息：

- user_message_new: 记录会话快照（用于回显会话 ID 等元数据）；
- agent_message_new: 非空内容追加到缓冲区（增量）；
- agent_message_success: 用完整内容替换缓冲区（最终文本）；
- 其他事件忽略。

空行、非 data 行以及无法解析的 JSON 只会被跳过，不会中断整个解析。
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from dust_proxy.domain.exceptions import ClientDisconnectedError, UpstreamTimeoutError
from dust_proxy.domain.models import AgentMessage, NoContent, ResolutionOutcome, ResolutionRequest, Success, Timeout
from dust_proxy.infrastructure.logging.logger import logger
from dust_proxy.providers.base import DustApi
from dust_proxy.resolution.initiator import ConversationInitiator
from dust_proxy.resolution.registry import ResolverProfile

DATA_PREFIX = "data:"

USER_MESSAGE_NEW = "user_message_new"
AGENT_MESSAGE_NEW = "agent_message_new"
AGENT_MESSAGE_SUCCESS = "agent_message_success"


def parse_event_line(line: str) -> Optional[Dict[str, Any]]:
    """解析单行记录，无法识别时返回 None。"""

    if not line:
        return None
    data_str = line.strip()
    if not data_str.startswith(DATA_PREFIX):
        return None
    data_str = data_str[len(DATA_PREFIX):].strip()
    if not data_str or data_str == "[DONE]":
        return None
    try:
        event = json.loads(data_str)
    except json.JSONDecodeError:
        logger.debug("stream.malformed_line", extra={"extra": {"line": data_str[:200]}})
        return None
    if not isinstance(event, dict):
        return None
    return event


def _event_message(event: Dict[str, Any]) -> Dict[str, Any]:
    message = event.get("message")
    return message if isinstance(message, dict) else {}


@dataclass
class StreamAccumulator:
    """按事件类型聚合助手消息。"""

    content: str = ""
    message_id: Optional[str] = None
    conversation: Dict[str, Any] = field(default_factory=dict)
    conversation_id: Optional[str] = None
    events_seen: int = 0

    def apply(self, event: Dict[str, Any]) -> None:
        self.events_seen += 1
        kind = event.get("type")
        if not self.conversation_id and event.get("conversationId"):
            self.conversation_id = event["conversationId"]

        if kind == USER_MESSAGE_NEW:
            snapshot = event.get("conversation")
            if isinstance(snapshot, dict):
                self.conversation = snapshot
                self.conversation_id = snapshot.get("sId") or self.conversation_id
        elif kind == AGENT_MESSAGE_NEW:
            message = _event_message(event)
            if message.get("content"):
                self.content += message["content"]
                self.message_id = message.get("sId") or message.get("id") or self.message_id
        elif kind == AGENT_MESSAGE_SUCCESS:
            message = _event_message(event)
            if message.get("content"):
                # 最终完整文本，覆盖之前的增量
                self.content = message["content"]
                self.message_id = message.get("sId") or message.get("id") or self.message_id

    def outcome(self) -> ResolutionOutcome:
        if not self.content:
            return NoContent(conversation_id=self.conversation_id)
        message = AgentMessage(
            id=self.message_id or f"msg-{uuid4().hex}",
            content=self.content,
            visibility="visible",
        )
        conversation = dict(self.conversation)
        if self.conversation_id:
            conversation.setdefault("sId", self.conversation_id)
        return Success(conversation_id=self.conversation_id or "", message=message, conversation=conversation)


class StreamResolver:
    """读取 Dust 流式响应并聚合为一条最终消息。

    读取受 profile.deadline 约束：超过截止时间后关闭流并返回 Timeout，
    避免上游迟迟不关闭连接时无限期占用资源。
    调用方断开连接时同样关闭流。
    """

    def __init__(
        self,
        client: DustApi,
        initiator: ConversationInitiator,
        profile: ResolverProfile,
        clock: Callable[[], float] = time.monotonic,
        cancelled: Callable[[], bool] = lambda: False,
    ):
        self.name = profile.name
        self._client = client
        self._initiator = initiator
        self._profile = profile
        self._clock = clock
        self._cancelled = cancelled

    def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        acc = StreamAccumulator()
        lines = self._initiator.open_stream(request)
        started = self._clock()
        lines_received = 0
        try:
            for line in lines:
                lines_received += 1
                if self._cancelled():
                    logger.warning(
                        "stream.client_disconnected",
                        extra={"extra": {"conversation_id": acc.conversation_id, "events": acc.events_seen}},
                    )
                    raise ClientDisconnectedError(code="CLIENT_DISCONNECTED", message="Client disconnected")
                if self._clock() - started > self._profile.deadline:
                    logger.error(
                        "stream.deadline_exceeded",
                        extra={"extra": {
                            "conversation_id": acc.conversation_id,
                            "deadline": self._profile.deadline,
                            "events": acc.events_seen,
                        }},
                    )
                    return self._timeout(acc)
                event = parse_event_line(line)
                if event is not None:
                    acc.apply(event)
        except UpstreamTimeoutError as e:
            # 尚未收到任何数据时属于创建阶段失败，交给上层按 504 处理
            if lines_received == 0:
                raise
            logger.error(
                "stream.read_timeout",
                extra={"extra": {"conversation_id": acc.conversation_id, "error": e.message}},
            )
            return self._timeout(acc)
        finally:
            close = getattr(lines, "close", None)
            if close is not None:
                close()

        result = acc.outcome()
        logger.info(
            "stream.done",
            extra={"extra": {
                "conversation_id": acc.conversation_id,
                "events": acc.events_seen,
                "length": len(acc.content),
                "outcome": type(result).__name__,
            }},
        )
        return result

    def _timeout(self, acc: StreamAccumulator) -> Timeout:
        url = self._client.conversation_url(acc.conversation_id) if acc.conversation_id else None
        return Timeout(conversation_id=acc.conversation_id, attempts=1, conversation_url=url)
