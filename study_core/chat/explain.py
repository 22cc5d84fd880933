"""讲解功能：对一段选中文本做一次性流式讲解，不经过 ChatSession。"""

from typing import AsyncIterator

from study_core.domain.models import ChatMessage
from study_core.gateway.base import ModelGateway
from study_core.prompts import ExplainRequest, build_explain_user_message, compose_explain_prompt
from study_core.streaming.sse_parser import SSEStreamParser


async def stream_explanation(
    gateway: ModelGateway,
    request: ExplainRequest,
    model: str = "explain",
) -> AsyncIterator[str]:
    """一次性讲解：不维护 transcript，只把增量文本逐个产出。"""

    messages = [ChatMessage(role="user", content=build_explain_user_message(request))]
    async with gateway.open_stream(messages, compose_explain_prompt(request), model=model) as resp:
        async for delta in SSEStreamParser(resp.aiter_bytes()):
            yield delta


async def explain(gateway: ModelGateway, request: ExplainRequest, model: str = "explain") -> str:
    parts = [delta async for delta in stream_explanation(gateway, request, model=model)]
    return "".join(parts)
