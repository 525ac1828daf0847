"""把 ResolutionOutcome 映射为返回给插件的 HTTP 响应。"""

from dataclasses import dataclass
from typing import Any, Dict

from dust_proxy.domain.models import NoContent, ResolutionOutcome, Success, Timeout, UpstreamFailure

TIMEOUT_ERROR = "Timeout: assistant did not respond in time"
NO_CONTENT_ERROR = "No agent response found"


@dataclass
class NormalizedResponse:
    status_code: int
    body: Dict[str, Any]


def normalize(outcome: ResolutionOutcome) -> NormalizedResponse:
    """按结果类型生成状态码与响应体。

    成功时会话的 content 被替换为只包含最终助手消息的单元素列表，
    其余历史消息全部丢弃以减小响应体积。
    """

    if isinstance(outcome, Success):
        conversation = dict(outcome.conversation)
        conversation["content"] = [[outcome.message.to_payload()]]
        return NormalizedResponse(200, {"conversation": conversation})
    if isinstance(outcome, Timeout):
        return NormalizedResponse(
            408,
            {
                "error": TIMEOUT_ERROR,
                "debug": {
                    "conversationId": outcome.conversation_id,
                    "attempts": outcome.attempts,
                    "conversationUrl": outcome.conversation_url,
                },
            },
        )
    if isinstance(outcome, UpstreamFailure):
        return NormalizedResponse(outcome.status_code, {"error": outcome.error, "details": outcome.body})
    if isinstance(outcome, NoContent):
        return NormalizedResponse(500, {"error": NO_CONTENT_ERROR, "debug": {"conversationId": outcome.conversation_id}})
    raise TypeError(f"Unsupported outcome: {outcome!r}")
