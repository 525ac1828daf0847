"""Dust 会话 API 适配器。

本模块负责：

1. 拼接工作区范围的 URL 并附带 Bearer 认证。
2. 调用 HTTP 接口并把网络/API 异常转换为 domain.exceptions 中的类型。
3. 流式创建会话时逐行产出响应体，由 resolution.stream 负责解析。

除本模块外，项目中没有任何代码直接访问 Dust。
"""

import json
from typing import Any, Dict, Iterator

import httpx

from dust_proxy.config.settings import settings
from dust_proxy.domain.exceptions import (
    ApiError,
    ConfigurationError,
    NetworkError,
    RateLimitError,
    UpstreamTimeoutError,
)


class DustClient:
    """Dust 客户端实现。"""

    name = "dust"

    def __init__(self, cfg=settings):
        # cfg 里包含凭据、base_url、超时等配置
        self._settings = cfg

    # ---- 会话 ----

    def create_conversation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._ensure_credentials()
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    self._conversations_url(),
                    json=payload,
                    headers=self._headers(json_body=True),
                )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(code="UPSTREAM_TIMEOUT", message="Dust API timeout (create)", details=str(e))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message="Dust API unreachable (create)", details=str(e))
        self._raise_for_status(resp, "create")
        return self._json(resp, "create")

    def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        self._ensure_credentials()
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.get(
                    f"{self._conversations_url()}/{conversation_id}",
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(code="UPSTREAM_TIMEOUT", message="Dust API timeout (fetch)", details=str(e))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message="Dust API unreachable (fetch)", details=str(e))
        self._raise_for_status(resp, "fetch")
        return self._json(resp, "fetch")

    # ---- 流式 ----

    def iter_stream_lines(self, payload: Dict[str, Any]) -> Iterator[str]:
        """流式创建会话并逐行产出响应体。

        生成器被关闭（close）时会同时退出 httpx 的上下文并释放连接，
        调用方可以借此在截止时间到达时提前结束读取。
        """

        self._ensure_credentials()
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    self._conversations_url(),
                    json=payload,
                    headers=self._headers(json_body=True),
                ) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                        self._raise_for_status(resp, "create")
                    for line in resp.iter_lines():
                        yield line
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(code="UPSTREAM_TIMEOUT", message="Dust API timeout (stream)", details=str(e))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message="Dust API unreachable (stream)", details=str(e))

    def conversation_url(self, conversation_id: str) -> str:
        base = self._settings.dust_app_url.rstrip("/")
        return f"{base}/w/{self._settings.dust_workspace_id}/conversation/{conversation_id}"

    # ---- 辅助方法 ----

    def _ensure_credentials(self) -> None:
        if not getattr(self._settings, "dust_api_key", None) or not getattr(self._settings, "dust_workspace_id", None):
            raise ConfigurationError(
                code="MISSING_CREDENTIALS",
                message="Server configuration error: missing Dust credentials",
            )

    def _conversations_url(self) -> str:
        base = self._settings.dust_base_url.rstrip("/")
        return f"{base}/w/{self._settings.dust_workspace_id}/assistant/conversations"

    def _headers(self, json_body: bool = False) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._settings.dust_api_key}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    @staticmethod
    def _raise_for_status(resp, stage: str) -> None:
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT",
                message=f"Dust API error ({stage})",
                http_status=429,
                details=resp.text,
            )
        if resp.status_code >= 400:
            raise ApiError(
                code="API_ERROR",
                message=f"Dust API error ({stage})",
                http_status=resp.status_code,
                details=resp.text,
            )

    @staticmethod
    def _json(resp, stage: str) -> Dict[str, Any]:
        try:
            data = resp.json()
        except json.JSONDecodeError:
            raise ApiError(
                code="MALFORMED_RESPONSE",
                message=f"Dust API returned invalid JSON ({stage})",
                http_status=502,
                details=resp.text,
            )
        if not isinstance(data, dict):
            raise ApiError(
                code="MALFORMED_RESPONSE",
                message=f"Dust API returned invalid JSON ({stage})",
                http_status=502,
                details=resp.text,
            )
        return data
