"""SSE 事件流解析器。

输入是一个异步字节流（任意切分），输出是按顺序的增量文本片段。
协议约定（OpenAI 风格 chat-completion delta）：

- 按 \\n 分行；以 ":" 开头的注释行、空行、以及不以 "data: " 开头的行都忽略。
- "data: [DONE]" 表示正常结束，立即停止，不做 JSON 解析。
- 其余 data 行解析 JSON，取 choices[0].delta.content；缺失则不产出片段。

字节按增量 UTF-8 解码，多字节字符被切开时残余字节跨读取保留。
解析器只能迭代一次，每个流都要新建实例。
"""

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Optional

from study_core.domain.exceptions import StreamProtocolError
from study_core.infrastructure.logging.logger import log_event
from study_core.streaming.line_buffer import Line, LineBuffer


DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class _Done(Exception):
    pass


def extract_delta(payload: Any) -> Optional[str]:
    """从一条 chunk JSON 中取出 choices[0].delta.content。"""

    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class SSEStreamParser:
    """把字节流解析为 delta 文本的异步迭代器。

    Attributes:
        done: 是否观察到了 [DONE] 结束标记。
        fragments: 已产出的片段数量。
        skipped_lines: 因 JSON 损坏被跳过的行数。
    """

    def __init__(self, byte_stream: AsyncIterable[bytes], log_ctx: Optional[dict] = None):
        self._stream = byte_stream
        self._log_ctx = dict(log_ctx or {})
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._lines = LineBuffer()
        self._started = False
        self.done = False
        self.fragments = 0
        self.skipped_lines = 0

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("SSEStreamParser can only be iterated once")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        try:
            async for chunk in self._stream:
                self._lines.feed(self._decode(chunk, final=False))
                while True:
                    line = self._lines.pop_line()
                    if line is None:
                        break
                    fragment = self._handle_line(line, at_eof=False)
                    if fragment:
                        self.fragments += 1
                        yield fragment
            # 流自然结束：刷新解码器残余，并把缓冲中剩余的行按同样规则再处理一遍
            self._lines.feed(self._decode(b"", final=True))
            for line in self._lines.drain():
                fragment = self._handle_line(line, at_eof=True)
                if fragment:
                    self.fragments += 1
                    yield fragment
        except _Done:
            self.done = True

    def _decode(self, chunk: bytes, final: bool) -> str:
        try:
            return self._decoder.decode(chunk, final=final)
        except UnicodeDecodeError as e:
            raise StreamProtocolError(code="STREAM_DECODE_ERROR", message=str(e))

    def _handle_line(self, line: Line, at_eof: bool) -> Optional[str]:
        text = line.text
        if not text.strip() or text.startswith(":"):
            return None
        if not text.startswith(DATA_PREFIX):
            return None
        data = text[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            raise _Done()
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            if not line.terminated:
                # 流已结束，最后一段仍不是合法 JSON：事件被截断
                raise StreamProtocolError(code="STREAM_INCOMPLETE_EVENT", message=str(e))
            if line.retried or at_eof:
                # 已没有更多字节可等：判定为损坏事件，跳过但不中断整个流
                self.skipped_lines += 1
                log_event(logging.WARNING, "Skipped malformed stream event", self._log_ctx, error=str(e))
                return None
            self._lines.push_back(line)
            return None
        return extract_delta(payload)
