"""Minimum shape checks run on an inbound request before translation."""

from typing import Any

from .result import ConversionResult

MISSING_MODEL = "Missing required field: model"
INVALID_MESSAGES = "Missing or invalid messages field"
EMPTY_MESSAGES = "Messages array cannot be empty"


def validate_request(anthropic_request: Any) -> ConversionResult[None]:
    """
    Check that a decoded request names a model and carries at least one message.

    Checks run in order and stop at the first failure. Nothing else is
    required; the translator degrades on every other missing field.
    """
    if not isinstance(anthropic_request, dict):
        anthropic_request = {}

    model = anthropic_request.get("model")
    if not isinstance(model, str) or not model:
        return ConversionResult.fail(MISSING_MODEL)

    messages = anthropic_request.get("messages")
    if not isinstance(messages, list):
        return ConversionResult.fail(INVALID_MESSAGES)

    if len(messages) == 0:
        return ConversionResult.fail(EMPTY_MESSAGES)

    return ConversionResult.ok()
