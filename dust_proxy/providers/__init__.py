"""Dust API 集成层。

该包下的模块负责：
- 定义 Dust API 抽象接口 (base)。
- 提供基于 httpx 的具体实现 (dust_client)。
"""

from dust_proxy.config.settings import settings
from dust_proxy.providers.base import DustApi
from dust_proxy.providers.dust_client import DustClient


def create_client(cfg=None) -> DustApi:
    """创建 Dust 客户端，默认使用全局 settings。"""

    return DustClient(cfg or settings)


__all__ = ["DustApi", "DustClient", "create_client"]
