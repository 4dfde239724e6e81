"""
Anthropic SSE streaming conversion.

This module handles the conversion of OpenAI SSE streaming format to Anthropic's
streaming event format.

The backend sends ``data: <json>`` records and a closing ``data: [DONE]``.
Each backend chunk yields at most one Anthropic event, written as
``event: <type>\\ndata: <json>\\n\\n`` as soon as it is derived.

All backend deltas are placed on a single content block at index 0. Multiple
interleaved blocks (text followed by tool calls, parallel tool calls) are not
separated; clients see one logical block.

A chunk with a finish_reason produces ``message_stop`` and the ``[DONE]``
terminator produces another one. Clients receive two ``message_stop`` events
on a normal stream and should treat the second one as a no-op.

This conversion is framework-agnostic and operates on async iterators.
"""

import codecs
import json
import logging
from typing import Any, AsyncGenerator, AsyncIterator, List, Optional, Tuple, Union

from pydantic import BaseModel

from .errors import API_ERROR, create_error_event, format_sse_event
from .models import ContentBlockDeltaEvent, InputJsonDelta, MessageStopEvent, TextDelta

# Module logger
_logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class SSELineBuffer:
    """
    Splits a byte stream into complete text lines.

    Bytes are decoded incrementally, so a multi-byte character split across
    two chunks decodes correctly. The only state carried between chunks is
    ``pending``: the trailing fragment that has not seen its newline yet.

    Thread-safety: This class is NOT thread-safe. Each stream should have
    its own instance.
    """

    __slots__ = ("_decoder", "pending")

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.pending = ""

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Add a chunk and return every line it completed, without line endings."""
        if isinstance(chunk, str):
            self.pending += chunk
        else:
            self.pending += self._decoder.decode(chunk)
        *lines, self.pending = self.pending.split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        """Return the unterminated last line, if any, and reset."""
        self.pending += self._decoder.decode(b"", final=True)
        line, self.pending = self.pending.rstrip("\r"), ""
        return [line] if line else []


def _format_event(event: BaseModel) -> str:
    data = event.model_dump()
    return format_sse_event(data["type"], data)


def convert_openai_chunk(chunk: Any) -> Optional[BaseModel]:
    """
    Derive the Anthropic event for one parsed OpenAI stream chunk.

    Text wins over tool call arguments, which win over a finish reason. A chunk
    with none of them (for example a role-only delta) yields None.
    """
    if not isinstance(chunk, dict):
        return None

    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None

    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        delta = {}

    content = delta.get("content")
    if content:
        return ContentBlockDeltaEvent(index=0, delta=TextDelta(text=str(content)))

    tool_calls = delta.get("tool_calls")
    if isinstance(tool_calls, list) and tool_calls:
        tool_call = tool_calls[0] if isinstance(tool_calls[0], dict) else {}
        function = tool_call.get("function")
        if not isinstance(function, dict):
            function = {}
        arguments = function.get("arguments") or ""
        return ContentBlockDeltaEvent(index=0, delta=InputJsonDelta(partial_json=str(arguments)))

    if choice.get("finish_reason"):
        return MessageStopEvent()

    return None


def _convert_line(line: str) -> Tuple[Optional[str], bool]:
    """Return the SSE record for one backend line and whether the stream is done."""
    if not line.startswith(DATA_PREFIX):
        return None, False

    data = line[len(DATA_PREFIX):]
    if data.startswith(" "):
        data = data[1:]

    if data.strip() == DONE_MARKER:
        return _format_event(MessageStopEvent()), True

    try:
        chunk = json.loads(data)
    except (ValueError, RecursionError) as e:
        _logger.warning(f"Skipping malformed stream chunk: {e}")
        return None, False

    event = convert_openai_chunk(chunk)
    if event is None:
        return None, False
    return _format_event(event), False


async def convert_openai_stream_to_anthropic(
    openai_stream: AsyncIterator[Union[bytes, str]],
) -> AsyncGenerator[str, None]:
    """
    Convert an OpenAI SSE byte stream to Anthropic SSE format.

    Args:
        openai_stream: Async iterator yielding raw backend body chunks

    Yields:
        Anthropic-formatted SSE event strings

    Error handling:
        - Malformed JSON lines are logged and skipped
        - Any other failure is reported as one ``error`` event
        - The backend iterator is always closed when this generator ends,
          including when the consumer disconnects
    """
    buffer = SSELineBuffer()
    finished = False

    try:
        async for chunk in openai_stream:
            for line in buffer.feed(chunk):
                record, finished = _convert_line(line)
                if record:
                    yield record
                if finished:
                    break
            if finished:
                break

        if not finished:
            for line in buffer.flush():
                record, finished = _convert_line(line)
                if record:
                    yield record
            if not finished:
                _logger.debug("Backend stream ended without [DONE]")

    except Exception as e:
        _logger.error(f"Stream processing error: {e}", exc_info=True)
        yield create_error_event(API_ERROR, str(e) or type(e).__name__)

    finally:
        aclose = getattr(openai_stream, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as e:
                _logger.warning(f"Error closing backend stream: {e}")
        _logger.debug("Anthropic stream closed")
