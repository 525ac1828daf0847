"""轮询解析器。

状态机：WAITING(n) → WAITING(n+1) | SUCCESS | TIMEOUT。
每次尝试先固定等待 delay 秒，再拉取完整会话；
单次拉取失败只记录日志并进入下一次尝试，与正常未命中共用同一计数器。
调用方断开连接后不再发起新的拉取。
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from dust_proxy.domain.exceptions import ApiError, ClientDisconnectedError, NetworkError
from dust_proxy.domain.models import AgentMessage, ResolutionOutcome, ResolutionRequest, Success, Timeout
from dust_proxy.infrastructure.logging.logger import logger
from dust_proxy.providers.base import DustApi
from dust_proxy.resolution.initiator import ConversationInitiator
from dust_proxy.resolution.registry import ResolverProfile

AGENT_MESSAGE_TYPE = "agent_message"


def flatten_content(content: Any) -> List[Dict[str, Any]]:
    """把 conversation.content（消息分组的列表）展开为一维消息列表。"""

    messages: List[Dict[str, Any]] = []
    for group in content or []:
        if isinstance(group, list):
            messages.extend(m for m in group if isinstance(m, dict))
        elif isinstance(group, dict):
            messages.append(group)
    return messages


def last_agent_message(messages: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """返回最后一条内容非空的助手消息（假定消息按时间顺序排列）。"""

    found = None
    for msg in messages:
        if msg.get("type") == AGENT_MESSAGE_TYPE and msg.get("content"):
            found = msg
    return found


class PollResolver:
    """按固定间隔轮询 Dust 会话，直到出现助手回复或次数用尽。"""

    def __init__(
        self,
        client: DustApi,
        initiator: ConversationInitiator,
        profile: ResolverProfile,
        sleep: Callable[[float], None] = time.sleep,
        cancelled: Callable[[], bool] = lambda: False,
    ):
        self.name = profile.name
        self._client = client
        self._initiator = initiator
        self._profile = profile
        self._sleep = sleep
        self._cancelled = cancelled

    def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        handle = self._initiator.create(request)
        conversation_id = handle.conversation_id
        max_attempts = self._profile.max_attempts

        for attempt in range(1, max_attempts + 1):
            self._log(logging.INFO, "poll.attempt", conversation_id, attempt=attempt, max_attempts=max_attempts)
            self._sleep(self._profile.delay)
            if self._cancelled():
                self._log(logging.WARNING, "poll.client_disconnected", conversation_id, attempt=attempt)
                raise ClientDisconnectedError(code="CLIENT_DISCONNECTED", message="Client disconnected")

            try:
                data = self._client.get_conversation(conversation_id)
            except (ApiError, NetworkError) as e:
                self._log(
                    logging.WARNING,
                    "poll.fetch_failed",
                    conversation_id,
                    attempt=attempt,
                    status=e.http_status,
                    error=e.message,
                )
                continue

            conversation = data.get("conversation") or {}
            messages = flatten_content(conversation.get("content"))
            found = last_agent_message(messages)
            if found is not None:
                message = AgentMessage.from_payload(found)
                self._log(
                    logging.INFO,
                    "poll.success",
                    conversation_id,
                    attempt=attempt,
                    message_id=message.id,
                    length=len(message.content),
                )
                return Success(conversation_id=conversation_id, message=message, conversation=conversation)

            self._log(logging.INFO, "poll.pending", conversation_id, attempt=attempt, messages=len(messages))

        self._log(
            logging.ERROR,
            "poll.timeout",
            conversation_id,
            attempts=max_attempts,
            waited_seconds=self._profile.worst_case_wait,
        )
        return Timeout(
            conversation_id=conversation_id,
            attempts=max_attempts,
            conversation_url=self._client.conversation_url(conversation_id),
        )

    @staticmethod
    def _log(level: int, message: str, conversation_id: str, **fields: Any) -> None:
        payload = {"conversation_id": conversation_id}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
