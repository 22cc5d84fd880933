"""SSE 流解析。

- line_buffer: 跨网络读取的行重组缓冲（支持单次回推重试）。
- sse_parser: 把字节流解码为模型增量文本（delta）序列。
"""

from study_core.streaming.line_buffer import Line, LineBuffer
from study_core.streaming.sse_parser import SSEStreamParser, extract_delta

__all__ = ["Line", "LineBuffer", "SSEStreamParser", "extract_delta"]
