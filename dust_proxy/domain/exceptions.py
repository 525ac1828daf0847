"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
由 api.service 统一捕获并转换为 JSON 响应。
"""

from typing import Any, Dict


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_FIELDS"）。
        message: 返回给调用方的错误信息。
        http_status: 映射到 HTTP 时使用的状态码，默认 400。
        extra: 其他补充字段（例如上游原始响应 details）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.extra.get("details") is not None:
            payload["details"] = self.extra["details"]
        return payload


class ValidationError(BusinessError):
    """调用方输入校验失败（缺少字段、未知策略等）。"""


class ConfigurationError(BusinessError):
    """服务端配置缺失，例如未设置 Dust 凭据。"""

    def __init__(self, code: str, message: str, http_status: int = 500, **extra):
        super().__init__(code, message, http_status, **extra)


class ApiError(BusinessError):
    """Dust API 返回非 2xx 时抛出，http_status 为上游原始状态码。"""


class RateLimitError(ApiError):
    """Dust 限流（429），与 ApiError 一样原样透传状态码。"""


class NetworkError(BusinessError):
    """网络层错误，例如 DNS 失败、连接被拒绝。"""

    def __init__(self, code: str, message: str, http_status: int = 502, **extra):
        super().__init__(code, message, http_status, **extra)


class UpstreamTimeoutError(NetworkError):
    """等待 Dust 响应超时（连接或读取）。"""

    def __init__(self, code: str, message: str, http_status: int = 504, **extra):
        super().__init__(code, message, http_status, **extra)


class ClientDisconnectedError(BusinessError):
    """调用方已断开连接，解析提前终止（响应不会被读取）。"""

    def __init__(self, code: str, message: str, http_status: int = 499, **extra):
        super().__init__(code, message, http_status, **extra)
