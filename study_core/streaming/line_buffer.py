"""行重组缓冲。

网络读取的边界是任意的，一次读取可能只带来半行。LineBuffer 负责：

1. feed(text) 追加已解码文本。
2. pop_line() 只在遇到换行符时才返回一整行（去掉结尾的 \\r）。
3. push_back(line) 把一行连同换行符放回缓冲头部，并在下一次 feed 之前
   停止出行，即“等更多字节到了再试一次”。
4. drain() 在流结束时把剩余内容全部交出；没有换行结尾的最后一段标记为
   terminated=False，表示它可能被截断。

每一行最多回推一次：被回推过的行再次取出时 retried=True，
调用方据此区分“不完整，再等等”与“确实损坏，跳过”，保证不会死循环。
"""

from typing import List, NamedTuple, Optional


class Line(NamedTuple):
    text: str
    retried: bool = False
    # 只有 drain() 交出的最后一段可能没有换行结尾
    terminated: bool = True


class LineBuffer:
    def __init__(self) -> None:
        self._buffer = ""
        self._stalled = False
        # 缓冲头部那一行是否为回推行
        self._head_retried = False

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def stalled(self) -> bool:
        return self._stalled

    def feed(self, text: str) -> None:
        if text:
            self._buffer += text
            self._stalled = False

    def pop_line(self) -> Optional[Line]:
        if self._stalled:
            return None
        idx = self._buffer.find("\n")
        if idx == -1:
            return None
        text = self._buffer[:idx]
        self._buffer = self._buffer[idx + 1:]
        retried, self._head_retried = self._head_retried, False
        return Line(_strip_cr(text), retried)

    def push_back(self, line: Line) -> None:
        if line.retried:
            raise ValueError("line has already been retried once")
        self._buffer = line.text + "\n" + self._buffer
        self._head_retried = True
        self._stalled = True

    def drain(self) -> List[Line]:
        """交出全部剩余行并清空缓冲，用于流结束时的最后一次处理。"""

        rest, self._buffer = self._buffer, ""
        head_retried, self._head_retried = self._head_retried, False
        self._stalled = False
        pieces = rest.split("\n")
        lines: List[Line] = []
        for i, text in enumerate(pieces):
            if not text:
                continue
            terminated = i < len(pieces) - 1
            lines.append(Line(_strip_cr(text), head_retried and i == 0, terminated))
        return lines


def _strip_cr(text: str) -> str:
    return text[:-1] if text.endswith("\r") else text
