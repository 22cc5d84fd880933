"""模型网关客户端。

本模块负责：

1. 把 transcript 消息与 system prompt 组装成 OpenAI 兼容的 chat/completions 请求。
2. 以流式方式发送请求，检查状态码并映射为统一的业务异常。
3. 把连接与读取过程中的 httpx 异常包装为 NetworkError。

SSE 的具体解析交给 streaming.sse_parser，这里只负责传输。
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import httpx

from study_core.domain.exceptions import (
    ApiError,
    NetworkError,
    QuotaExhaustedError,
    RateLimitError,
    ValidationError,
)
from study_core.domain.models import ChatMessage
from study_core.gateway.registry import GATEWAY_CONFIG, get_model_config
from study_core.streaming.sse_parser import SSEStreamParser


class GatewayClient:
    """模型网关客户端实现。

    - settings: 提供 gateway_api_key、gateway_base_url、http_timeout、default_model。
    - transport: 可选的 httpx 传输层，测试时传入 httpx.MockTransport。
    """

    name = "gateway"

    def __init__(self, settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        self._transport = transport

    @asynccontextmanager
    async def open_stream(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        model: Optional[str] = None,
    ) -> AsyncIterator[httpx.Response]:
        """发起一次流式对话请求，产出已通过状态码检查的响应。"""

        api_key = getattr(self._settings, "gateway_api_key", None)
        if not api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="GATEWAY_API_KEY not set")
        payload = self._build_payload(messages, system_prompt, model)
        base = getattr(self._settings, "gateway_base_url", None) or GATEWAY_CONFIG.base_url
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout,
                transport=self._transport,
                trust_env=False,
            ) as client:
                async with client.stream(
                    "POST",
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                ) as resp:
                    await self._raise_for_status(resp)
                    yield resp
        except httpx.RequestError as e:
            # 连接失败、超时以及流式读取中途断开都会落到这里
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    async def stream_deltas(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        model: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """逐个产出模型增量文本。"""

        async with self.open_stream(messages, system_prompt, model) as resp:
            async for delta in SSEStreamParser(resp.aiter_bytes()):
                yield delta

    def _build_payload(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        model: Optional[str],
    ) -> Dict[str, Any]:
        model_cfg = get_model_config(model or getattr(self._settings, "default_model", "study-chat"))
        msgs = [{"role": "system", "content": system_prompt}]
        msgs.extend(m.to_payload() for m in messages)
        return {
            "model": model_cfg.provider_model,
            "messages": msgs,
            "temperature": model_cfg.default_temperature,
            "stream": True,
        }

    @staticmethod
    async def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMITED", message="Gateway rate limit", http_status=429)
        if resp.status_code == 402:
            raise QuotaExhaustedError(code="QUOTA_EXHAUSTED", message="Gateway credits exhausted", http_status=402)
        if resp.status_code >= 400:
            body = (await resp.aread()).decode("utf-8", errors="replace")
            raise ApiError(code="API_ERROR", message=body or resp.reason_phrase, http_status=resp.status_code)
