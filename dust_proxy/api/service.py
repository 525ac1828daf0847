"""对外代理服务模块。

提供 handle_proxy_request 供 HTTP 层调用：校验输入、检查配置、
选择解析策略、等待助手回复并归一化为 (状态码, 响应体)。
任何异常都不会逃逸出本函数。
"""

import time
import traceback
from typing import Any, Callable, Dict, Optional, Tuple

from dust_proxy.api.normalizer import normalize
from dust_proxy.config.settings import settings
from dust_proxy.domain.exceptions import ApiError, BusinessError, ConfigurationError, ValidationError
from dust_proxy.domain.models import ResolutionOutcome, ResolutionRequest, UpstreamFailure
from dust_proxy.infrastructure.logging.logger import logger
from dust_proxy.providers import DustApi, create_client
from dust_proxy.resolution import create_resolver
from dust_proxy.resolution.registry import get_profile

MISSING_FIELDS_ERROR = "Missing required fields: prompt and assistantId"
MISSING_CREDENTIALS_ERROR = "Server configuration error: missing Dust credentials"


def parse_request(body: Any, cfg) -> ResolutionRequest:
    """校验调用方请求体并构造 ResolutionRequest。

    Raises:
        ValidationError: 缺少 prompt/assistantId 或策略名未知。
    """

    if not isinstance(body, dict):
        raise ValidationError(code="MISSING_FIELDS", message=MISSING_FIELDS_ERROR)
    prompt = body.get("prompt")
    assistant_id = body.get("assistantId")
    if not isinstance(prompt, str) or not prompt or not isinstance(assistant_id, str) or not assistant_id:
        raise ValidationError(code="MISSING_FIELDS", message=MISSING_FIELDS_ERROR)
    strategy = body.get("strategy")
    if strategy is not None:
        if not isinstance(strategy, str):
            raise ValidationError(code="UNKNOWN_STRATEGY", message="Field 'strategy' must be a string")
        # 提前校验，确保未知策略不会触发任何上游调用
        get_profile(strategy, cfg)
    return ResolutionRequest(prompt=prompt, assistant_id=assistant_id, strategy=strategy)


def ensure_configured(cfg) -> None:
    if not getattr(cfg, "dust_api_key", None) or not getattr(cfg, "dust_workspace_id", None):
        raise ConfigurationError(code="MISSING_CREDENTIALS", message=MISSING_CREDENTIALS_ERROR)


def resolve(
    request: ResolutionRequest,
    client: DustApi,
    cfg,
    sleep: Optional[Callable[[float], None]] = None,
    cancelled: Optional[Callable[[], bool]] = None,
) -> ResolutionOutcome:
    """运行一次完整的解析，上游创建失败转换为 UpstreamFailure。"""

    resolver = create_resolver(client, cfg, request.strategy, sleep=sleep or time.sleep, cancelled=cancelled)
    logger.info(
        "proxy.resolve",
        extra={"extra": {"strategy": resolver.name, "assistant_id": request.assistant_id, "prompt_length": len(request.prompt)}},
    )
    try:
        return resolver.resolve(request)
    except ApiError as e:
        logger.error(
            "proxy.upstream_error",
            extra={"extra": {"status": e.http_status, "code": e.code, "details": e.extra.get("details")}},
        )
        return UpstreamFailure(status_code=e.http_status, body=e.extra.get("details") or "", error=e.message)


def handle_proxy_request(
    body: Any,
    cfg=None,
    client: Optional[DustApi] = None,
    sleep: Optional[Callable[[float], None]] = None,
    cancelled: Optional[Callable[[], bool]] = None,
) -> Tuple[int, Dict[str, Any]]:
    """处理一次代理请求。

    Args:
        body: 调用方 JSON 请求体（{prompt, assistantId, strategy?}）
        cfg: 配置对象（可选，默认全局 settings）
        client: Dust 客户端（可选，默认按配置创建）
        sleep: 轮询等待函数（可选，测试中替换）
        cancelled: 调用方是否已断开（可选）

    Returns:
        (HTTP 状态码, JSON 响应体)
    """
    cfg = cfg or settings
    try:
        request = parse_request(body, cfg)
        ensure_configured(cfg)
        outcome = resolve(request, client or create_client(cfg), cfg, sleep=sleep, cancelled=cancelled)
        response = normalize(outcome)
        logger.info("proxy.response", extra={"extra": {"status": response.status_code}})
        return response.status_code, response.body
    except BusinessError as e:
        logger.warning(
            f"Proxy request rejected: {e.message}",
            extra={"extra": {"code": e.code, "status": e.http_status}},
        )
        return e.http_status, e.to_payload()
    except Exception as e:
        logger.error(f"Proxy request failed: {e}", exc_info=True)
        payload: Dict[str, Any] = {"error": "Internal server error", "message": str(e)}
        if getattr(cfg, "expose_stack_trace", False):
            payload["stack"] = traceback.format_exc()
        return 500, payload
