"""对外 HTTP 服务。

两个端点形状相同：服务端根据请求体生成 system prompt，把消息转发到模型网关，
再把网关的 SSE 字节流原样回传给前端。网关的 429/402 会映射为带 error 字段的 JSON。
"""

import logging
from contextlib import AsyncExitStack
from typing import AsyncIterator, List, Literal, Optional, Sequence

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from study_core.domain.exceptions import BusinessError, QuotaExhaustedError, RateLimitError
from study_core.domain.models import ChatMessage, PreferenceProfile
from study_core.gateway import create_gateway
from study_core.gateway.base import ModelGateway
from study_core.infrastructure.logging.logger import log_event
from study_core.prompts import ExplainRequest, build_explain_user_message, compose_explain_prompt, compose_system_prompt


class ChatMessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ProfileIn(BaseModel):
    primary_purpose: Optional[str] = None
    knowledge_level: Optional[str] = None
    explanation_style: Optional[str] = None
    response_length: Optional[str] = None
    learning_preference: Optional[str] = None


class ChatRequestIn(BaseModel):
    messages: List[ChatMessageIn] = Field(default_factory=list)
    profile: Optional[ProfileIn] = None


class ExplainRequestIn(BaseModel):
    topic: str
    style: str
    adaptToBackground: bool = True
    userKnowledgeLevel: Optional[str] = None
    userDomain: Optional[str] = None
    action: Literal["explain", "simpler", "examples"] = "explain"
    previousExplanation: Optional[str] = None


_gateway: Optional[ModelGateway] = None


def get_gateway() -> ModelGateway:
    """获取默认网关客户端（单例）。"""
    global _gateway
    if _gateway is None:
        _gateway = create_gateway()
    return _gateway


def _error_response(error: BusinessError) -> JSONResponse:
    if isinstance(error, RateLimitError):
        return JSONResponse({"error": "Rate limit exceeded. Please try again in a moment."}, status_code=429)
    if isinstance(error, QuotaExhaustedError):
        return JSONResponse({"error": "AI credits exhausted. Please add credits to continue."}, status_code=402)
    return JSONResponse({"error": "Failed to get AI response"}, status_code=500)


async def _proxy_stream(
    gateway: ModelGateway,
    messages: Sequence[ChatMessage],
    system_prompt: str,
    model: str,
    endpoint: str,
):
    stack = AsyncExitStack()
    try:
        resp = await stack.enter_async_context(gateway.open_stream(messages, system_prompt, model=model))
    except BusinessError as e:
        await stack.aclose()
        log_event(logging.WARNING, "Gateway error", {"endpoint": endpoint}, code=e.code, http_status=e.http_status)
        return _error_response(e)

    async def body() -> AsyncIterator[bytes]:
        try:
            async for chunk in resp.aiter_bytes():
                yield chunk
        except Exception as e:
            # 响应头已发出，只能记录并提前结束流
            log_event(logging.WARNING, "Upstream stream aborted", {"endpoint": endpoint}, error=repr(e))
        finally:
            await stack.aclose()

    return StreamingResponse(body(), media_type="text/event-stream")


def create_app() -> FastAPI:
    app = FastAPI(title="Study Assistant")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.post("/chat")
    async def chat(payload: ChatRequestIn, gateway: ModelGateway = Depends(get_gateway)):
        profile = PreferenceProfile(**payload.profile.model_dump()) if payload.profile else None
        messages = [ChatMessage(role=m.role, content=m.content) for m in payload.messages]
        return await _proxy_stream(gateway, messages, compose_system_prompt(profile), "study-chat", "chat")

    @app.post("/explain")
    async def explain(payload: ExplainRequestIn, gateway: ModelGateway = Depends(get_gateway)):
        request = ExplainRequest(
            topic=payload.topic,
            style=payload.style,
            adapt_to_background=payload.adaptToBackground,
            user_knowledge_level=payload.userKnowledgeLevel,
            user_domain=payload.userDomain,
            action=payload.action,
            previous_explanation=payload.previousExplanation,
        )
        messages = [ChatMessage(role="user", content=build_explain_user_message(request))]
        return await _proxy_stream(gateway, messages, compose_explain_prompt(request), "explain", "explain")

    return app


app = create_app()
