import random

import pytest

from study_core.domain.exceptions import StreamProtocolError
from study_core.streaming.sse_parser import SSEStreamParser, extract_delta
from study_core.tests.fakes import sse, sse_line


async def _chunks(parts):
    for part in parts:
        yield part


async def _collect(parts):
    parser = SSEStreamParser(_chunks(parts))
    fragments = [f async for f in parser]
    return parser, fragments


def _split(data: bytes, sizes):
    out, i = [], 0
    for size in sizes:
        if i >= len(data):
            break
        out.append(data[i:i + size])
        i += size
    if i < len(data):
        out.append(data[i:])
    return out


@pytest.mark.asyncio
async def test_hi_there_with_blank_line_separators():
    body = (
        b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'
        b'data: {"choices":[{"delta":{"content":" there"}}]}\n\n'
        b"data: [DONE]\n"
    )
    parser, fragments = await _collect([body])
    assert fragments == ["Hi", " there"]
    assert parser.done
    assert parser.fragments == 2


@pytest.mark.asyncio
async def test_fragments_survive_every_chunking():
    contents = ["Hel", "lo, ", "wörld ", "世界", " 🎉", "!"]
    body = sse(*contents)
    expected = "".join(contents)

    # 逐字节切分（必然切开多字节字符与 "data: " 前缀）
    _, fragments = await _collect([body[i:i + 1] for i in range(len(body))])
    assert "".join(fragments) == expected

    rng = random.Random(1234)
    for _ in range(50):
        sizes = [rng.randint(1, 17) for _ in range(len(body))]
        parser, fragments = await _collect(_split(body, sizes))
        assert "".join(fragments) == expected
        assert parser.done


@pytest.mark.asyncio
async def test_split_inside_data_prefix():
    line = sse_line("split").encode()
    _, fragments = await _collect([b"dat", line[3:], b"data: [DONE]\n"])
    assert fragments == ["split"]


@pytest.mark.asyncio
async def test_done_stops_reading_immediately():
    consumed = []

    async def stream():
        for part in [sse("a"), sse_line("after").encode()]:
            consumed.append(part)
            yield part

    parser = SSEStreamParser(stream())
    fragments = [f async for f in parser]
    assert fragments == ["a"]
    assert len(consumed) == 1


@pytest.mark.asyncio
async def test_ignores_comments_blank_and_foreign_lines():
    body = (
        b": keep-alive\n"
        b"\n"
        b"event: message\n"
        b"id: 7\n"
        b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n'
        b'data: {"choices":[{"delta":{"content":""}}]}\n'
        b'data: {"choices":[]}\n'
        b'data: {"choices":[{"delta":{"content":"ok"}}]}\r\n'
        b"data: [DONE]\n"
    )
    _, fragments = await _collect([body])
    assert fragments == ["ok"]


@pytest.mark.asyncio
async def test_unterminated_last_line_is_flushed():
    body = sse_line("a") + sse_line("b").rstrip("\n")
    parser, fragments = await _collect([body.encode()])
    assert fragments == ["a", "b"]
    assert not parser.done


@pytest.mark.asyncio
async def test_malformed_line_is_skipped_after_retry():
    parts = [b"data: {not json\n", sse("ok", done=False), b"data: [DONE]\n"]
    parser, fragments = await _collect(parts)
    assert fragments == ["ok"]
    assert parser.skipped_lines == 1
    assert parser.done


@pytest.mark.asyncio
async def test_malformed_line_in_single_chunk_stream_is_skipped():
    body = b"data: {oops\n" + sse("fine")
    parser, fragments = await _collect([body])
    assert fragments == ["fine"]
    assert parser.skipped_lines == 1


@pytest.mark.asyncio
async def test_truncated_final_event_is_protocol_error():
    body = sse("a", done=False) + b'data: {"choices":[{"delta":{"cont'
    parser = SSEStreamParser(_chunks([body]))
    fragments = []
    with pytest.raises(StreamProtocolError):
        async for f in parser:
            fragments.append(f)
    assert fragments == ["a"]


@pytest.mark.asyncio
async def test_invalid_utf8_is_protocol_error():
    with pytest.raises(StreamProtocolError):
        await _collect([b"data: \xff\xfe\n"])


@pytest.mark.asyncio
async def test_transport_error_propagates():
    async def broken():
        yield sse("a", done=False)
        raise ConnectionResetError("peer reset")

    parser = SSEStreamParser(broken())
    fragments = []
    with pytest.raises(ConnectionResetError):
        async for f in parser:
            fragments.append(f)
    assert fragments == ["a"]


@pytest.mark.asyncio
async def test_parser_is_single_use():
    parser = SSEStreamParser(_chunks([sse("x")]))
    assert [f async for f in parser] == ["x"]
    with pytest.raises(RuntimeError):
        parser.__aiter__()


def test_extract_delta_shapes():
    assert extract_delta({"choices": [{"delta": {"content": "x"}}]}) == "x"
    assert extract_delta({"choices": [{"delta": {}}]}) is None
    assert extract_delta({"choices": [{"message": {"content": "x"}}]}) is None
    assert extract_delta({"choices": "nope"}) is None
    assert extract_delta([1, 2]) is None
