"""
Anthropic Messages API Pydantic models.

This module contains the Pydantic models for the source side of the relay:
content blocks, messages, tools, the final message response and the
streaming events emitted to Anthropic clients.

Content blocks form a closed union discriminated on ``type``. Every translation
site dispatches over the same four block classes, so a new block kind shows up
as an unhandled branch wherever blocks are consumed.

These models are framework-agnostic and can be used independently of FastAPI.
"""

import time
import uuid
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


def generate_id(prefix: str = "msg") -> str:
    """Generate a unique ID: millisecond timestamp plus a random suffix."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


# =============================================================================
# CONTENT BLOCKS
# =============================================================================


class TextBlock(BaseModel):
    """Anthropic text content block."""

    type: Literal["text"] = "text"
    text: str


class ImageSource(BaseModel):
    """Image source for Anthropic vision. Accepted, never translated."""

    type: Literal["base64", "url"] = "base64"
    media_type: Optional[str] = None
    data: Optional[str] = None
    url: Optional[str] = None


class ImageBlock(BaseModel):
    """Anthropic image content block."""

    type: Literal["image"] = "image"
    source: ImageSource


class ToolUseBlock(BaseModel):
    """Anthropic tool use content block (in assistant messages)."""

    type: Literal["tool_use"] = "tool_use"
    id: str = Field(default_factory=lambda: generate_id("toolu"))
    name: str
    input: Any  # normally an object


class ToolResultBlock(BaseModel):
    """Anthropic tool result content block (in user messages)."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: Optional[str] = None
    content: Any = None
    is_error: Optional[bool] = None


ContentBlock = Annotated[
    Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock],
    Field(discriminator="type"),
]

content_block_adapter: TypeAdapter = TypeAdapter(ContentBlock)


# =============================================================================
# TOOLS
# =============================================================================


class AnthropicTool(BaseModel):
    """
    Anthropic tool definition.

    ``input_schema`` is kept as a plain mapping so that the JSON schema reaches
    the backend exactly as the client wrote it.
    """

    name: str = Field(min_length=1)
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object"})


class ToolChoice(BaseModel):
    """Anthropic tool choice specification."""

    type: Literal["auto", "any", "tool"]
    name: Optional[str] = None  # Only for type="tool"


# =============================================================================
# RESPONSE
# =============================================================================


class Usage(BaseModel):
    """Token usage information."""

    input_tokens: int = 0
    output_tokens: int = 0


StopReason = Literal["end_turn", "max_tokens", "stop_sequence", "tool_use"]


class AnthropicMessagesResponse(BaseModel):
    """
    Anthropic Messages API response format.

    ``model`` always carries the model name the client asked for, never the
    backend model it was mapped to.
    """

    id: str = Field(default_factory=lambda: generate_id("msg"))
    type: Literal["message"] = "message"
    role: Literal["assistant"] = "assistant"
    content: List[ContentBlock]
    model: str
    stop_reason: StopReason = "end_turn"
    stop_sequence: Optional[str] = None
    usage: Usage


# =============================================================================
# STREAMING EVENTS
# =============================================================================


class MessageStartEvent(BaseModel):
    """message_start event data."""

    type: Literal["message_start"] = "message_start"
    message: Dict[str, Any]


class ContentBlockStartEvent(BaseModel):
    """content_block_start event data."""

    type: Literal["content_block_start"] = "content_block_start"
    index: int
    content_block: Dict[str, Any]


class TextDelta(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    text: str


class InputJsonDelta(BaseModel):
    type: Literal["input_json_delta"] = "input_json_delta"
    partial_json: str


class ContentBlockDeltaEvent(BaseModel):
    """content_block_delta event data."""

    type: Literal["content_block_delta"] = "content_block_delta"
    index: int = 0
    delta: Union[TextDelta, InputJsonDelta]


class ContentBlockStopEvent(BaseModel):
    """content_block_stop event data."""

    type: Literal["content_block_stop"] = "content_block_stop"
    index: int


class MessageDeltaEvent(BaseModel):
    """message_delta event data."""

    type: Literal["message_delta"] = "message_delta"
    delta: Dict[str, Any]
    usage: Optional[Dict[str, int]] = None


class MessageStopEvent(BaseModel):
    """message_stop event data."""

    type: Literal["message_stop"] = "message_stop"


class ErrorDetail(BaseModel):
    type: str
    message: str


class ErrorEvent(BaseModel):
    """error event data. Same shape as the non-streaming error envelope."""

    type: Literal["error"] = "error"
    error: ErrorDetail


# Union of all streaming event types
StreamingEvent = Union[
    MessageStartEvent,
    ContentBlockStartEvent,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageDeltaEvent,
    MessageStopEvent,
    ErrorEvent,
]

streaming_event_adapter: TypeAdapter = TypeAdapter(
    Annotated[StreamingEvent, Field(discriminator="type")]
)
