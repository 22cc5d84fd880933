"""聊天会话核心模块。

一个 ChatSession 对应一个已认证用户，负责：

- 会话启动时从 HistoryStore 载入历史（失败时降级为空 transcript）。
- send：乐观追加用户消息 → 异步持久化 → 组装请求（完整 transcript +
  偏好档案生成的 system prompt）→ 调用模型网关 → 逐片段更新同一条
  assistant 消息 → 流结束后持久化 assistant 消息并回填 persisted_id。
- clear：先删除持久化历史，成功后再清空本地 transcript。

状态机：idle -> sending -> streaming -> idle。非 idle 状态下 send/clear 都是空操作。
所有网关/存储失败都在会话边界内消化，通过一次 "error" 事件通知显示层。
close() 只取消会话自己持有的 send task，send 返回 status="cancelled" 的结果。
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, TypeVar
from uuid import uuid4

from study_core.domain.exceptions import (
    ApiError,
    BusinessError,
    PersistenceError,
    TransportError,
)
from study_core.domain.history import HistoryStore
from study_core.domain.models import Message, PreferenceProfile
from study_core.gateway.base import ModelGateway
from study_core.infrastructure.logging.logger import log_event
from study_core.prompts import compose_system_prompt
from study_core.streaming.sse_parser import SSEStreamParser


T = TypeVar("T")


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SENDING = "sending"
    STREAMING = "streaming"
    CLEARING = "clearing"


@dataclass
class SessionEvent:
    """推送给显示层的 transcript 变化事件。

    kind:
        - "appended": 新消息追加到 transcript 末尾。
        - "updated": 流式中的 assistant 消息内容增长。
        - "persisted": 消息获得了持久化 id。
        - "cleared": transcript 已清空。
        - "error": 一次用户可见的失败（每个失败操作恰好一次）。
    """

    kind: Literal["appended", "updated", "persisted", "cleared", "error"]
    message: Optional[Message] = None
    error: Optional[BusinessError] = None


@dataclass
class SendResult:
    status: Literal["completed", "failed", "rejected", "cancelled"]
    user_message: Optional[Message] = None
    assistant_message: Optional[Message] = None
    error: Optional[BusinessError] = None


@dataclass
class _InFlightReply:
    """正在生成的 assistant 回复：累积缓冲与它对应的那一条消息。"""

    buffer: str = ""
    message: Optional[Message] = None


Listener = Callable[[SessionEvent], None]


class ChatSession:
    def __init__(
        self,
        user_id: str,
        store: HistoryStore,
        gateway: ModelGateway,
        profile: Optional[PreferenceProfile] = None,
        listener: Optional[Listener] = None,
        model: Optional[str] = None,
    ):
        self._user_id = user_id
        self._store = store
        self._gateway = gateway
        self._profile = profile
        self._listener = listener
        self._model = model
        self._messages: List[Message] = []
        self._state = SessionState.IDLE
        self._started = False
        self._task: Optional[asyncio.Task] = None
        self._close_requested = False
        self._log_ctx: Dict[str, Any] = {"user_id": user_id}

    @property
    def messages(self) -> tuple:
        return tuple(self._messages)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is not SessionState.IDLE

    @property
    def profile(self) -> Optional[PreferenceProfile]:
        return self._profile

    def update_profile(self, profile: Optional[PreferenceProfile]) -> None:
        """替换偏好档案，下一次 send 生效。"""

        self._profile = profile

    async def load_history(self) -> List[Message]:
        """载入历史记录，只能在第一次 send/clear 之前调用一次。"""

        if self._started:
            raise RuntimeError("load_history must be called once, before any other operation")
        self._started = True
        self._state = SessionState.LOADING
        try:
            records = await self._call_store("READ", self._store.load_history(self._user_id))
        except PersistenceError as e:
            log_event(logging.WARNING, "Failed to load history", self._log_ctx, code=e.code, error=e.message)
            records = []
        finally:
            self._state = SessionState.IDLE

        for record in records:
            self._append(
                Message(
                    role=record.role,
                    content=record.content,
                    persisted_id=record.id,
                    created_at=record.created_at,
                )
            )
        log_event(logging.INFO, "Loaded history", self._log_ctx, message_count=len(records))
        return list(self._messages)

    async def send(self, text: str) -> SendResult:
        content = (text or "").strip()
        if not content or self.busy:
            return SendResult(status="rejected")

        self._started = True
        self._state = SessionState.SENDING
        self._close_requested = False
        log_ctx = dict(self._log_ctx, trace_id=f"tr-{uuid4().hex}")
        user_msg = Message(role="user", content=content)
        self._append(user_msg)
        outgoing = [m.to_chat_message() for m in self._messages]
        reply = _InFlightReply()

        # send 周期跑在会话自己的 task 里，close() 只取消它，不影响调用方
        task = asyncio.create_task(self._send_cycle(user_msg, outgoing, reply, log_ctx))
        self._task = task
        try:
            return await task
        except asyncio.CancelledError:
            if not (self._close_requested and task.cancelled()):
                raise
            log_event(logging.INFO, "Send cancelled", log_ctx, received_chars=len(reply.buffer))
            return SendResult(status="cancelled", user_message=user_msg, assistant_message=reply.message)
        finally:
            self._task = None
            self._close_requested = False
            self._state = SessionState.IDLE

    async def _send_cycle(
        self,
        user_msg: Message,
        outgoing: list,
        reply: _InFlightReply,
        log_ctx: Dict[str, Any],
    ) -> SendResult:
        # 不等待用户消息落盘就发请求；回填按对象引用进行，不影响 transcript 顺序
        persist_user = asyncio.create_task(self._persist(user_msg, log_ctx))
        system_prompt = compose_system_prompt(self._profile)
        error: Optional[BusinessError] = None

        try:
            await self._stream_reply(outgoing, system_prompt, reply, log_ctx)
        except BusinessError as e:
            error = e
        except Exception as e:
            log_event(logging.ERROR, "Unexpected error while streaming", log_ctx, error=repr(e))
            error = TransportError(code="UNEXPECTED_ERROR", message=str(e))

        # close() 取消 send 时，已发出的用户消息写入照常完成
        await asyncio.shield(persist_user)

        if error is not None:
            # 已收到的部分回复保留在 transcript 中，但不作为完整回复持久化
            log_event(
                logging.WARNING,
                "Send failed",
                log_ctx,
                code=error.code,
                http_status=error.http_status,
                received_chars=len(reply.buffer),
            )
            self._report(error)
            return SendResult(
                status="failed",
                user_message=user_msg,
                assistant_message=reply.message,
                error=error,
            )

        if reply.message is not None:
            await self._persist(reply.message, log_ctx)

        log_event(
            logging.INFO,
            "Completed send",
            log_ctx,
            user_message_id=user_msg.persisted_id,
            assistant_message_id=reply.message.persisted_id if reply.message else None,
            reply_chars=len(reply.buffer),
        )
        return SendResult(status="completed", user_message=user_msg, assistant_message=reply.message)

    async def clear(self) -> bool:
        """删除该用户的全部历史；存储失败时本地 transcript 保持不变。"""

        if self.busy:
            return False
        self._started = True
        self._state = SessionState.CLEARING
        try:
            await self._call_store("DELETE", self._store.clear_history(self._user_id))
        except PersistenceError as e:
            log_event(logging.WARNING, "Failed to clear history", self._log_ctx, code=e.code, error=e.message)
            self._report(e)
            return False
        finally:
            self._state = SessionState.IDLE

        self._messages.clear()
        self._emit(SessionEvent(kind="cleared"))
        log_event(logging.INFO, "Cleared history", self._log_ctx)
        return True

    def close(self) -> None:
        """中止进行中的 send（取消网络读取并释放连接），已持久化的内容不回滚。"""

        task = self._task
        if task is not None and not task.done():
            self._close_requested = True
            task.cancel()

    async def _stream_reply(
        self,
        outgoing: list,
        system_prompt: str,
        reply: _InFlightReply,
        log_ctx: Dict[str, Any],
    ) -> None:
        log_event(
            logging.INFO,
            "Calling gateway",
            log_ctx,
            model=self._model,
            message_count=len(outgoing),
        )
        async with self._gateway.open_stream(outgoing, system_prompt, model=self._model) as resp:
            body = getattr(resp, "aiter_bytes", None)
            if body is None:
                raise ApiError(code="MISSING_BODY", message="Gateway response has no body")
            self._state = SessionState.STREAMING
            parser = SSEStreamParser(body(), log_ctx)
            async for fragment in parser:
                self._apply_fragment(reply, fragment)

        if not parser.done and parser.fragments == 0:
            raise TransportError(code="EMPTY_STREAM", message="Stream ended before any content arrived")
        if not parser.done:
            log_event(logging.INFO, "Stream ended without [DONE]", log_ctx, fragments=parser.fragments)

    def _apply_fragment(self, reply: _InFlightReply, fragment: str) -> None:
        reply.buffer += fragment
        if reply.message is None:
            reply.message = Message(role="assistant", content=reply.buffer)
            self._append(reply.message)
        else:
            reply.message.content = reply.buffer
            self._emit(SessionEvent(kind="updated", message=reply.message))

    async def _persist(self, message: Message, log_ctx: Dict[str, Any]) -> bool:
        try:
            record = await self._call_store(
                "WRITE",
                self._store.save_message(self._user_id, message.role, message.content),
            )
        except PersistenceError as e:
            # 未落盘的消息仍留在本会话中，不自动重试
            log_event(
                logging.WARNING,
                "Failed to persist message",
                log_ctx,
                role=message.role,
                client_temp_id=message.client_temp_id,
                code=e.code,
            )
            return False
        message.persisted_id = record.id
        self._emit(SessionEvent(kind="persisted", message=message))
        return True

    @staticmethod
    async def _call_store(op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(code=f"STORE_{op}_ERROR", message=str(e)) from e

    def _append(self, message: Message) -> None:
        self._messages.append(message)
        self._emit(SessionEvent(kind="appended", message=message))

    def _report(self, error: BusinessError) -> None:
        self._emit(SessionEvent(kind="error", error=error))

    def _emit(self, event: SessionEvent) -> None:
        if self._listener is not None:
            self._listener(event)
