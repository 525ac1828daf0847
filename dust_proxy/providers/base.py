"""Dust API 抽象接口。

解析器不直接依赖 httpx，而是依赖此协议：

- DustClient 是基于 httpx 的真实实现。
- 测试中可以用任意实现了相同方法的假对象替换。
"""

from typing import Any, Dict, Iterator, Protocol


class DustApi(Protocol):
    """Dust 会话 API 客户端协议。

    实现者需要提供：
    - create_conversation(payload): 非流式创建会话，返回响应 JSON。
    - get_conversation(conversation_id): 获取会话完整快照。
    - iter_stream_lines(payload): 以流式方式创建会话，逐行产出响应体。
    - conversation_url(conversation_id): 会话在 Dust Web 界面中的地址。
    """

    name: str

    def create_conversation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        ...

    def iter_stream_lines(self, payload: Dict[str, Any]) -> Iterator[str]:
        ...

    def conversation_url(self, conversation_id: str) -> str:
        ...
