"""
Streaming conversion tests: OpenAI SSE bytes in, Anthropic SSE records out.
"""

import json

import pytest

from relay_library.anthropic_compat.models import (
    ContentBlockDeltaEvent,
    ErrorEvent,
    MessageStopEvent,
    streaming_event_adapter,
)
from relay_library.anthropic_compat.streaming import (
    SSELineBuffer,
    convert_openai_chunk,
    convert_openai_stream_to_anthropic,
)


def _chunk(delta=None, finish_reason=None):
    choice = {"index": 0, "delta": delta or {}}
    if finish_reason:
        choice["finish_reason"] = finish_reason
    payload = {"id": "chunk_1", "object": "chat.completion.chunk", "choices": [choice]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


DONE = b"data: [DONE]\n\n"


class _Source:
    """Async byte source that records whether it was closed."""

    def __init__(self, chunks, fail_after=None):
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self.closed = False
        self.consumed = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._fail_after is not None and self.consumed >= self._fail_after:
            raise ConnectionError("backend connection reset")
        if self.consumed >= len(self._chunks):
            raise StopAsyncIteration
        chunk = self._chunks[self.consumed]
        self.consumed += 1
        return chunk

    async def aclose(self):
        self.closed = True


async def _collect(source):
    return [record async for record in convert_openai_stream_to_anthropic(source)]


def _parse(record):
    event_line, data_line, blank, end = record.split("\n")
    assert event_line.startswith("event: ")
    assert data_line.startswith("data: ")
    assert blank == "" and end == ""
    event_type = event_line[len("event: "):]
    data = json.loads(data_line[len("data: "):])
    assert data["type"] == event_type
    return data


# =============================================================================
# LINE BUFFER
# =============================================================================


def test_line_buffer_holds_incomplete_fragment():
    buffer = SSELineBuffer()
    assert buffer.feed(b"data: {\"a\"") == []
    assert buffer.pending == 'data: {"a"'
    assert buffer.feed(b":1}\n\ndata: x") == ['data: {"a":1}', ""]
    assert buffer.pending == "data: x"
    assert buffer.flush() == ["data: x"]
    assert buffer.pending == ""


def test_line_buffer_decodes_multibyte_across_chunks():
    encoded = "data: héllo 世界\n".encode("utf-8")
    buffer = SSELineBuffer()
    lines = []
    for i in range(len(encoded)):
        lines.extend(buffer.feed(encoded[i:i + 1]))
    assert lines == ["data: héllo 世界"]


def test_line_buffer_strips_carriage_returns():
    buffer = SSELineBuffer()
    assert buffer.feed(b"data: 1\r\n\r\n") == ["data: 1", ""]


def test_line_buffer_flush_when_empty():
    assert SSELineBuffer().flush() == []


# =============================================================================
# PER-CHUNK DERIVATION
# =============================================================================


def test_text_delta_chunk():
    event = convert_openai_chunk({"choices": [{"index": 0, "delta": {"content": "Hello"}}]})
    assert event.model_dump() == {
        "type": "content_block_delta",
        "index": 0,
        "delta": {"type": "text_delta", "text": "Hello"},
    }


def test_tool_call_chunk():
    event = convert_openai_chunk(
        {
            "choices": [
                {
                    "index": 0,
                    "delta": {
                        "tool_calls": [
                            {"id": "call_123", "type": "function", "function": {"name": "calculator", "arguments": '{"a":1}'}}
                        ]
                    },
                }
            ]
        }
    )
    assert event.model_dump() == {
        "type": "content_block_delta",
        "index": 0,
        "delta": {"type": "input_json_delta", "partial_json": '{"a":1}'},
    }


def test_text_wins_over_tool_calls_and_finish_reason():
    event = convert_openai_chunk(
        {
            "choices": [
                {
                    "delta": {"content": "hi", "tool_calls": [{"function": {"arguments": "{}"}}]},
                    "finish_reason": "stop",
                }
            ]
        }
    )
    assert event.delta.type == "text_delta"


def test_finish_reason_chunk():
    event = convert_openai_chunk({"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]})
    assert event.model_dump() == {"type": "message_stop"}


@pytest.mark.parametrize(
    "chunk",
    [
        {"choices": []},
        {"choices": [{"index": 0, "delta": {"role": "assistant"}}]},
        {"choices": [{"index": 0, "delta": {"content": ""}}]},
        {"choices": [{"index": 0, "delta": {"tool_calls": []}}]},
        {"object": "chat.completion.chunk"},
        [1, 2, 3],
        "text",
    ],
)
def test_chunks_without_derivable_event(chunk):
    assert convert_openai_chunk(chunk) is None


# =============================================================================
# STREAM
# =============================================================================


@pytest.mark.asyncio
async def test_content_then_finish_then_done_yields_two_stops():
    source = _Source(
        [
            _chunk({"role": "assistant", "content": "Hel"}),
            _chunk({"content": "lo"}),
            _chunk({}, finish_reason="stop"),
            DONE,
        ]
    )
    events = [_parse(r) for r in await _collect(source)]

    assert [e["type"] for e in events] == [
        "content_block_delta",
        "content_block_delta",
        "message_stop",
        "message_stop",
    ]
    assert events[0]["delta"] == {"type": "text_delta", "text": "Hel"}
    assert events[1]["delta"] == {"type": "text_delta", "text": "lo"}
    assert source.closed is True


@pytest.mark.asyncio
async def test_record_framing_is_exact():
    records = await _collect(_Source([_chunk({"content": "Hi"}), DONE]))
    assert records == [
        'event: content_block_delta\ndata: {"type":"content_block_delta","index":0,'
        '"delta":{"type":"text_delta","text":"Hi"}}\n\n',
        'event: message_stop\ndata: {"type":"message_stop"}\n\n',
    ]


@pytest.mark.asyncio
async def test_malformed_line_does_not_end_stream():
    source = _Source(
        [
            _chunk({"content": "before"}),
            b"data: {this is not json\n\n",
            _chunk({"content": "after"}),
            DONE,
        ]
    )
    events = [_parse(r) for r in await _collect(source)]
    assert [e.get("delta", {}).get("text") for e in events] == ["before", "after", None]
    assert events[-1]["type"] == "message_stop"


@pytest.mark.asyncio
async def test_chunk_boundaries_do_not_change_output():
    body = b"".join(
        [
            _chunk({"content": "héllo "}),
            _chunk({"content": "世界"}),
            _chunk({"tool_calls": [{"index": 0, "function": {"arguments": '{"q":'}}]}),
            _chunk({}, finish_reason="tool_calls"),
            DONE,
        ]
    )
    whole = await _collect(_Source([body]))
    byte_by_byte = await _collect(_Source([body[i:i + 1] for i in range(len(body))]))
    sevens = await _collect(_Source([body[i:i + 7] for i in range(0, len(body), 7)]))

    assert whole == byte_by_byte == sevens
    assert [_parse(r)["type"] for r in whole] == [
        "content_block_delta",
        "content_block_delta",
        "content_block_delta",
        "message_stop",
        "message_stop",
    ]
    assert _parse(whole[1])["delta"]["text"] == "世界"
    assert _parse(whole[2])["delta"] == {"type": "input_json_delta", "partial_json": '{"q":'}


@pytest.mark.asyncio
async def test_done_terminates_reading():
    source = _Source([_chunk({"content": "a"}) + DONE + _chunk({"content": "ignored"}), _chunk({"content": "never read"})])
    events = [_parse(r) for r in await _collect(source)]
    assert [e["type"] for e in events] == ["content_block_delta", "message_stop"]
    assert source.consumed == 1
    assert source.closed is True


@pytest.mark.asyncio
async def test_non_data_lines_are_ignored():
    source = _Source([b": keep-alive\n\n", b"event: ping\n", b"id: 7\n", _chunk({"content": "x"}), DONE])
    events = [_parse(r) for r in await _collect(source)]
    assert [e["type"] for e in events] == ["content_block_delta", "message_stop"]


@pytest.mark.asyncio
async def test_crlf_framed_backend():
    source = _Source([_chunk({"content": "x"}).replace(b"\n", b"\r\n"), b"data: [DONE]\r\n\r\n"])
    events = [_parse(r) for r in await _collect(source)]
    assert [e["type"] for e in events] == ["content_block_delta", "message_stop"]


@pytest.mark.asyncio
async def test_stream_without_terminator_ends_quietly():
    source = _Source([_chunk({"content": "x"}), b'data: {"choices":[{"delta":{"content":"tail"}}]}'])
    events = [_parse(r) for r in await _collect(source)]
    assert [e["type"] for e in events] == ["content_block_delta", "content_block_delta"]
    assert events[1]["delta"]["text"] == "tail"
    assert source.closed is True


@pytest.mark.asyncio
async def test_backend_failure_emits_error_event_and_closes():
    source = _Source([_chunk({"content": "partial"}), _chunk({"content": "lost"})], fail_after=1)
    events = [_parse(r) for r in await _collect(source)]
    assert [e["type"] for e in events] == ["content_block_delta", "error"]
    assert events[1]["error"] == {"type": "api_error", "message": "backend connection reset"}
    assert source.closed is True


@pytest.mark.asyncio
async def test_consumer_disconnect_closes_backend():
    source = _Source([_chunk({"content": "one"}), _chunk({"content": "two"}), DONE])
    stream = convert_openai_stream_to_anthropic(source)
    first = await stream.__anext__()
    assert _parse(first)["delta"]["text"] == "one"

    await stream.aclose()
    assert source.closed is True
    assert source.consumed == 1


@pytest.mark.asyncio
async def test_plain_async_generator_source():
    async def source():
        yield _chunk({"content": "gen"})
        yield DONE

    events = [_parse(r) for r in await _collect(source())]
    assert [e["type"] for e in events] == ["content_block_delta", "message_stop"]


@pytest.mark.asyncio
async def test_emitted_events_match_event_models():
    source = _Source([_chunk({"content": "x"}), _chunk({}, finish_reason="stop"), DONE])
    records = await _collect(source)
    parsed = [streaming_event_adapter.validate_python(_parse(r)) for r in records]
    assert isinstance(parsed[0], ContentBlockDeltaEvent)
    assert isinstance(parsed[1], MessageStopEvent)
    assert isinstance(parsed[2], MessageStopEvent)


@pytest.mark.asyncio
async def test_error_event_matches_event_model():
    source = _Source([], fail_after=0)
    records = await _collect(source)
    assert len(records) == 1
    assert isinstance(streaming_event_adapter.validate_python(_parse(records[0])), ErrorEvent)


@pytest.mark.asyncio
async def test_lone_surrogate_text_is_escaped_in_record():
    source = _Source(
        [
            b'data: {"choices":[{"delta":{"content":"\\ud83d"}}]}\n\n',
            _chunk({"content": "ok"}),
            DONE,
        ]
    )
    records = await _collect(source)

    for record in records:
        record.encode("utf-8")
    assert '"text":"\\ud83d"' in records[0]
    assert [_parse(r)["type"] for r in records] == [
        "content_block_delta",
        "content_block_delta",
        "message_stop",
    ]
    assert _parse(records[1])["delta"]["text"] == "ok"


@pytest.mark.asyncio
async def test_deeply_nested_line_is_skipped():
    source = _Source(
        [
            b"data: " + b"[" * 100000 + b"\n\n",
            _chunk({"content": "after"}),
            DONE,
        ]
    )
    events = [_parse(r) for r in await _collect(source)]

    assert [e["type"] for e in events] == ["content_block_delta", "message_stop"]
    assert events[0]["delta"]["text"] == "after"
    assert source.closed is True


def test_package_exports_only_emitted_event_models():
    import relay_library.anthropic_compat as compat

    for name in ("ContentBlockDeltaEvent", "MessageStopEvent", "ErrorEvent"):
        assert name in compat.__all__
    for name in ("MessageStartEvent", "ContentBlockStartEvent", "ContentBlockStopEvent", "MessageDeltaEvent"):
        assert name not in compat.__all__
