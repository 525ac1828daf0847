"""会话发起方：构造 Dust “创建会话”请求。"""

from typing import Any, Dict, Iterator

from dust_proxy.domain.exceptions import ApiError
from dust_proxy.domain.models import ConversationHandle, ResolutionRequest
from dust_proxy.infrastructure.logging.logger import logger
from dust_proxy.providers.base import DustApi

TITLE_PREFIX_LENGTH = 50


class ConversationInitiator:
    """把 ResolutionRequest 转换为 Dust 会话创建调用。

    创建始终是非阻塞的（blocking=false），失败时不重试。
    """

    def __init__(self, client: DustApi, cfg):
        self._client = client
        self._settings = cfg

    def build_payload(self, request: ResolutionRequest, stream: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "message": {
                "content": request.prompt,
                "mentions": [],
                "context": {
                    "timezone": self._settings.message_timezone,
                    "username": self._settings.message_username,
                },
            },
            "assistantId": request.assistant_id,
            "blocking": False,
            "title": f"{self._settings.title_prefix}{request.prompt[:TITLE_PREFIX_LENGTH]}...",
        }
        if stream:
            payload["stream"] = True
        return payload

    def create(self, request: ResolutionRequest) -> ConversationHandle:
        data = self._client.create_conversation(self.build_payload(request))
        conversation = data.get("conversation") or {}
        conversation_id = conversation.get("sId") if isinstance(conversation, dict) else None
        if not conversation_id:
            raise ApiError(
                code="MALFORMED_RESPONSE",
                message="Dust API error (create)",
                http_status=502,
                details="conversation.sId missing from create response",
            )
        logger.info("initiator.created", extra={"extra": {"conversation_id": conversation_id}})
        return ConversationHandle(conversation_id=conversation_id, raw=data)

    def open_stream(self, request: ResolutionRequest) -> Iterator[str]:
        logger.info("initiator.stream_open", extra={"extra": {"assistant_id": request.assistant_id}})
        return self._client.iter_stream_lines(self.build_payload(request, stream=True))
