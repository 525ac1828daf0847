"""Dust Figma Proxy 顶层包。

该包把 Figma 插件的一次同步请求转发给 Dust 助手，
并通过轮询或流式读取等待助手的最终回复，
包括配置加载、领域模型、Dust API 适配、响应解析与 HTTP 入口。
"""

from dust_proxy.api.service import handle_proxy_request

__all__ = ["handle_proxy_request"]
