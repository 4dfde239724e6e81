"""
Anthropic Compatibility Layer for the relay.

This module provides a translation layer that allows Anthropic API clients
to reach a backend that only speaks OpenAI-style chat completions.

The layer handles:
- Validation: minimum request shape before translation
- Model mapping: Claude model names → backend model names
- Request translation: Anthropic Messages API → OpenAI Chat Completions
- Response translation: OpenAI Chat Completions → Anthropic Messages API
- Streaming conversion: OpenAI SSE format → Anthropic SSE format
- Error envelopes: uniform Anthropic error bodies and SSE error events

Usage:
    from relay_library.anthropic_compat import (
        validate_request,
        request_to_openai,
        response_from_openai,
        convert_openai_stream_to_anthropic,
    )
"""

from .models import (
    # Response models
    AnthropicMessagesResponse,
    # Content blocks
    TextBlock,
    ImageBlock,
    ImageSource,
    ToolUseBlock,
    ToolResultBlock,
    ContentBlock,
    # Tools
    AnthropicTool,
    ToolChoice,
    # Usage
    Usage,
    # Streaming events
    ContentBlockDeltaEvent,
    MessageStopEvent,
    ErrorEvent,
    StreamingEvent,
    TextDelta,
    InputJsonDelta,
)

from .result import ConversionResult

from .model_mapping import map_model

from .validation import validate_request

from .translator import (
    request_to_openai,
    response_from_openai,
)

from .streaming import (
    convert_openai_stream_to_anthropic,
    convert_openai_chunk,
    SSELineBuffer,
)

from .errors import (
    ProxyError,
    create_error_event,
    error_envelope,
    INVALID_REQUEST_ERROR,
    CONVERSION_ERROR,
    CONFIGURATION_ERROR,
    API_ERROR,
    NOT_FOUND,
    INTERNAL_ERROR,
)

__all__ = [
    # Response models
    "AnthropicMessagesResponse",
    # Content blocks
    "TextBlock",
    "ImageBlock",
    "ImageSource",
    "ToolUseBlock",
    "ToolResultBlock",
    "ContentBlock",
    # Tools
    "AnthropicTool",
    "ToolChoice",
    # Usage
    "Usage",
    # Streaming events
    "ContentBlockDeltaEvent",
    "MessageStopEvent",
    "ErrorEvent",
    "StreamingEvent",
    "TextDelta",
    "InputJsonDelta",
    # Results and validation
    "ConversionResult",
    "validate_request",
    "map_model",
    # Translator functions
    "request_to_openai",
    "response_from_openai",
    # Streaming functions
    "convert_openai_stream_to_anthropic",
    "convert_openai_chunk",
    "SSELineBuffer",
    # Errors
    "ProxyError",
    "create_error_event",
    "error_envelope",
    "INVALID_REQUEST_ERROR",
    "CONVERSION_ERROR",
    "CONFIGURATION_ERROR",
    "API_ERROR",
    "NOT_FOUND",
    "INTERNAL_ERROR",
]
