"""
Anthropic ↔ OpenAI format translator.

This module provides bidirectional translation between Anthropic's Messages API format
and the OpenAI-style Chat Completions format spoken by the backend.

The translation layer is framework-agnostic and operates on dictionaries,
making it usable in any Python context.

Translation Flow:
1. Anthropic Request → OpenAI Request (request_to_openai)
2. OpenAI Response → Anthropic Response (response_from_openai)

The backend only accepts flat string messages, so block-structured content is
flattened into text. Tool calls and tool results become bracketed text lines;
images are dropped. Both functions return a ConversionResult instead of
raising.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .model_mapping import map_model
from .models import (
    AnthropicMessagesResponse,
    AnthropicTool,
    ImageBlock,
    TextBlock,
    ToolChoice,
    ToolResultBlock,
    ToolUseBlock,
    Usage,
    content_block_adapter,
)
from .result import ConversionResult

_logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.7

FINISH_REASON_MAPPING = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
    "content_filter": "stop_sequence",
}


def _dumps(value: Any) -> str:
    """Compact JSON, the way the backend and Anthropic clients write it."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


# =============================================================================
# REQUEST TRANSLATION: Anthropic → OpenAI
# =============================================================================


def _flatten_block(block: Any, msg_index: int, block_index: int) -> Optional[str]:
    """Render one content block as a text line, or None when it carries no text."""
    try:
        parsed = content_block_adapter.validate_python(block)
    except ValidationError:
        block_type = block.get("type") if isinstance(block, dict) else type(block).__name__
        _logger.warning(
            f"Message at index {msg_index}, content {block_index}: "
            f"unsupported content type {block_type}"
        )
        return None

    if isinstance(parsed, TextBlock):
        return parsed.text or None

    if isinstance(parsed, ToolUseBlock):
        return f"[Tool Call: {parsed.name}({_dumps(parsed.input)})]"

    if isinstance(parsed, ToolResultBlock):
        if isinstance(parsed.content, str):
            result = parsed.content
        elif parsed.content is None:
            result = ""
        else:
            result = _dumps(parsed.content)
        return f"[Tool Result: {result}]"

    if isinstance(parsed, ImageBlock):
        _logger.warning(
            f"Message at index {msg_index}, content {block_index}: "
            f"image content is not carried to the backend"
        )
        return None

    raise TypeError(f"Unhandled content block {type(parsed).__name__}")


def _convert_anthropic_message_to_openai(
    msg: Any, msg_index: int
) -> Optional[Dict[str, str]]:
    """
    Convert a single Anthropic message to one flat OpenAI message.

    Returns None when the message has no text left after flattening; empty turns
    are dropped rather than forwarded.
    """
    if not isinstance(msg, dict):
        _logger.warning(f"Message at index {msg_index} is not an object, skipping")
        return None

    role = msg.get("role")
    if role not in ("user", "assistant"):
        _logger.warning(f"Message at index {msg_index} has role {role!r}, defaulting to 'user'")

    content = msg.get("content")
    if isinstance(content, str):
        text = content
    elif isinstance(content, list):
        text_parts: List[str] = []
        for block_index, block in enumerate(content):
            line = _flatten_block(block, msg_index, block_index)
            if line is not None:
                text_parts.append(line)
        text = "\n".join(text_parts)
    else:
        text = ""

    if not text.strip():
        _logger.warning(f"Message at index {msg_index} has empty content, dropping it")
        return None

    return {
        "role": "assistant" if role == "assistant" else "user",
        "content": text,
    }


def _convert_system_prompt(system: Union[str, List[Any], None]) -> str:
    """System prompts may be a string or a list of text blocks."""
    if isinstance(system, str):
        return system
    if isinstance(system, list):
        return "\n".join(
            str(block.get("text", ""))
            for block in system
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
        )
    return ""


def _convert_anthropic_tools_to_openai(
    tools: List[Any]
) -> List[Dict[str, Any]]:
    """
    Convert Anthropic tool definitions to OpenAI function format.

    The input schema is passed through untouched. Tools without a name are
    skipped.
    """
    openai_tools = []

    for i, tool in enumerate(tools):
        if not isinstance(tool, dict):
            _logger.warning(f"Tool at index {i} is not an object, skipping")
            continue

        schema = tool.get("input_schema")
        if not isinstance(schema, dict):
            schema = {"type": "object"}
        try:
            parsed = AnthropicTool.model_validate({**tool, "input_schema": schema})
        except ValidationError:
            _logger.warning(f"Tool at index {i} is missing a valid 'name', skipping")
            continue

        openai_tools.append(
            {
                "type": "function",
                "function": {
                    "name": parsed.name,
                    "description": parsed.description or "",
                    "parameters": schema,
                },
            }
        )

    return openai_tools


def _convert_anthropic_tool_choice_to_openai(
    tool_choice: Union[Dict[str, Any], str, None]
) -> Optional[Union[str, Dict[str, Any]]]:
    """
    Convert Anthropic tool_choice to OpenAI format.

    "any" has no OpenAI equivalent that works across backends and is widened to
    "auto". An absent or empty choice stays absent.
    """
    if not tool_choice:
        return None

    if isinstance(tool_choice, str):
        tool_choice = {"type": tool_choice}

    try:
        choice = ToolChoice.model_validate(tool_choice)
    except ValidationError:
        _logger.warning(f"Unrecognized tool_choice {tool_choice!r}, using 'auto'")
        return "auto"

    if choice.type == "tool" and choice.name:
        return {"type": "function", "function": {"name": choice.name}}

    return "auto"


def request_to_openai(anthropic_request: Dict[str, Any]) -> ConversionResult[Dict[str, Any]]:
    """
    Convert an Anthropic Messages API request to OpenAI Chat Completions format.

    The request is expected to have passed validate_request().

    Args:
        anthropic_request: Dictionary containing Anthropic request parameters

    Returns:
        ConversionResult holding the OpenAI request dictionary
    """
    try:
        model = anthropic_request["model"]
        openai_model = map_model(model)
        _logger.info(f"Mapped {model} to {openai_model}")

        openai_messages: List[Dict[str, str]] = []

        system_text = _convert_system_prompt(anthropic_request.get("system"))
        if system_text:
            openai_messages.append({"role": "system", "content": system_text})

        for index, msg in enumerate(anthropic_request["messages"]):
            converted = _convert_anthropic_message_to_openai(msg, index)
            if converted is not None:
                openai_messages.append(converted)

        max_tokens = anthropic_request.get("max_tokens")
        temperature = anthropic_request.get("temperature")

        openai_request: Dict[str, Any] = {
            "model": openai_model,
            "messages": openai_messages,
            "max_tokens": max_tokens if max_tokens is not None else DEFAULT_MAX_TOKENS,
            # 0 is a valid temperature and must survive
            "temperature": temperature if temperature is not None else DEFAULT_TEMPERATURE,
        }

        top_p = anthropic_request.get("top_p")
        if top_p is not None:
            openai_request["top_p"] = top_p

        stop_sequences = anthropic_request.get("stop_sequences")
        if stop_sequences:
            openai_request["stop"] = list(stop_sequences)

        if anthropic_request.get("stream") is True:
            openai_request["stream"] = True

        tools = anthropic_request.get("tools")
        if isinstance(tools, list) and tools:
            openai_tools = _convert_anthropic_tools_to_openai(tools)
            if openai_tools:
                openai_request["tools"] = openai_tools
                tool_choice = _convert_anthropic_tool_choice_to_openai(
                    anthropic_request.get("tool_choice")
                )
                if tool_choice is not None:
                    openai_request["tool_choice"] = tool_choice

        _logger.info(
            f"Converted request: {len(openai_messages)} messages, "
            f"max_tokens: {openai_request['max_tokens']}, "
            f"tools: {len(openai_request.get('tools', []))}"
        )
        return ConversionResult.ok(openai_request)

    except Exception as e:
        _logger.error(f"Error converting Anthropic request to OpenAI format: {e}", exc_info=True)
        return ConversionResult.fail(f"Request conversion failed: {e}")


# =============================================================================
# RESPONSE TRANSLATION: OpenAI → Anthropic
# =============================================================================


def _parse_tool_arguments(arguments: Any) -> Dict[str, Any]:
    """
    Decode a tool call's string-encoded arguments.

    The encoding is under the backend's control, so anything that is not a JSON
    object decodes to an empty input instead of failing the response.
    """
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError):
        _logger.warning(f"Malformed tool call arguments, using empty input: {arguments!r}")
        return {}
    if not isinstance(parsed, dict):
        _logger.warning(f"Tool call arguments are not an object, using empty input: {arguments!r}")
        return {}
    return parsed


def _convert_openai_message_to_anthropic(
    message: Dict[str, Any]
) -> List[Union[TextBlock, ToolUseBlock]]:
    """Tool calls first, then text. Never returns an empty list."""
    blocks: List[Union[TextBlock, ToolUseBlock]] = []

    for tool_call in message.get("tool_calls") or []:
        function = tool_call.get("function") or {}
        block_args = {
            "name": str(function.get("name", "")),
            "input": _parse_tool_arguments(function.get("arguments")),
        }
        if tool_call.get("id"):
            block_args["id"] = str(tool_call["id"])
        blocks.append(ToolUseBlock(**block_args))

    content = message.get("content")
    if content:
        blocks.append(TextBlock(text=str(content)))

    return blocks if blocks else [TextBlock(text="")]


def _convert_openai_finish_reason_to_anthropic(finish_reason: Optional[str]) -> str:
    """Convert OpenAI finish_reason to Anthropic stop_reason."""
    return FINISH_REASON_MAPPING.get(finish_reason, "end_turn")


def response_from_openai(
    openai_response: Dict[str, Any], original_model: str
) -> ConversionResult[AnthropicMessagesResponse]:
    """
    Convert an OpenAI Chat Completions response to Anthropic Messages format.

    Args:
        openai_response: Dictionary containing OpenAI response
        original_model: The model name from the original Anthropic request

    Returns:
        ConversionResult holding the Anthropic response
    """
    try:
        error = openai_response.get("error")
        if error:
            if isinstance(error, dict):
                message = error.get("message") or "Unknown error from backend API"
            else:
                message = str(error)
            return ConversionResult.fail(message)

        choices = openai_response.get("choices") or []
        if not choices:
            return ConversionResult.fail("No response choices from backend API")

        choice = choices[0]
        message = choice.get("message") or {}
        content = _convert_openai_message_to_anthropic(message)

        stop_reason = "tool_use" if message.get("tool_calls") else "end_turn"
        finish_reason = choice.get("finish_reason")
        if finish_reason:
            stop_reason = _convert_openai_finish_reason_to_anthropic(finish_reason)

        openai_usage = openai_response.get("usage") or {}
        anthropic_response = AnthropicMessagesResponse(
            content=content,
            model=original_model,
            stop_reason=stop_reason,
            stop_sequence=None,
            usage=Usage(
                input_tokens=openai_usage.get("prompt_tokens") or 0,
                output_tokens=openai_usage.get("completion_tokens") or 0,
            ),
        )
        return ConversionResult.ok(anthropic_response)

    except Exception as e:
        _logger.error(f"Error converting OpenAI response to Anthropic format: {e}", exc_info=True)
        return ConversionResult.fail(f"Response conversion failed: {e}")
