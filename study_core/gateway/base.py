"""模型网关抽象接口。

会话层不直接依赖 httpx，而是依赖此协议：open_stream 是一个异步上下文管理器，
进入时完成请求与状态码检查（失败抛出 RateLimitError / QuotaExhaustedError /
TransportError），产出一个带 aiter_bytes() 的响应对象，退出时释放连接。
"""

from typing import AsyncContextManager, AsyncIterator, Optional, Protocol, Sequence

from study_core.domain.models import ChatMessage


class StreamingResponse(Protocol):
    status_code: int

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...


class ModelGateway(Protocol):
    def open_stream(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        model: Optional[str] = None,
    ) -> AsyncContextManager[StreamingResponse]:
        ...
