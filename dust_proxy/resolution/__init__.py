"""响应解析层：发起会话并把异步回复解析为单个结果。"""

import time
from typing import Callable, Optional

from dust_proxy.providers.base import DustApi
from dust_proxy.resolution.base import Resolver
from dust_proxy.resolution.initiator import ConversationInitiator
from dust_proxy.resolution.poll import PollResolver
from dust_proxy.resolution.registry import ResolverProfile, get_profile
from dust_proxy.resolution.stream import StreamResolver


def _never_cancelled() -> bool:
    return False


def create_resolver(
    client: DustApi,
    cfg,
    strategy: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
    cancelled: Optional[Callable[[], bool]] = None,
) -> Resolver:
    """根据策略名创建解析器，默认取配置中的 default_strategy。

    cancelled 返回 True 表示调用方已断开，解析器会尽快停止。
    """

    cancelled = cancelled or _never_cancelled
    profile = get_profile(strategy or cfg.default_strategy, cfg)
    initiator = ConversationInitiator(client, cfg)
    if profile.kind == "stream":
        return StreamResolver(client, initiator, profile, cancelled=cancelled)
    return PollResolver(client, initiator, profile, sleep=sleep, cancelled=cancelled)


__all__ = [
    "ConversationInitiator",
    "PollResolver",
    "Resolver",
    "ResolverProfile",
    "StreamResolver",
    "create_resolver",
]
