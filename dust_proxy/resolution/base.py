"""解析器抽象接口。

轮询与流式两种实现都遵循同一协议，api.service 只依赖此协议，
后续新增策略（例如 webhook 推送）时无需改动发起方与响应归一化逻辑。
"""

from typing import Protocol

from dust_proxy.domain.models import ResolutionOutcome, ResolutionRequest


class Resolver(Protocol):
    """解析器协议。

    - name: 策略名称，用于日志。
    - resolve(request): 创建会话并等待助手最终回复，返回 ResolutionOutcome。
      上游创建失败时抛出 ApiError，由调用方转换为 UpstreamFailure。
    """

    name: str

    def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        ...
