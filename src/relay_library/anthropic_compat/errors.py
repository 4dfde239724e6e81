"""
Error taxonomy for the relay.

Every failure that reaches a client is rendered in Anthropic's envelope:

    {"type": "error", "error": {"type": "<kind>", "message": "<text>"}}

Non-streaming failures carry an HTTP status. Failures after a stream has
started are sent in-band as an ``error`` SSE event instead.
"""

import json
from typing import Any, Dict, Optional

from .models import ErrorDetail, ErrorEvent

# =============================================================================
# ERROR KINDS
# =============================================================================

INVALID_REQUEST_ERROR = "invalid_request_error"
CONVERSION_ERROR = "conversion_error"
CONFIGURATION_ERROR = "configuration_error"
API_ERROR = "api_error"
NOT_FOUND = "not_found"
INTERNAL_ERROR = "internal_error"

DEFAULT_STATUS = {
    INVALID_REQUEST_ERROR: 400,
    CONVERSION_ERROR: 400,
    CONFIGURATION_ERROR: 500,
    API_ERROR: 502,
    NOT_FOUND: 404,
    INTERNAL_ERROR: 500,
}

MAX_ERROR_MESSAGE_LENGTH = 10_000


class ProxyError(Exception):
    """A failure with a known error kind and HTTP status."""

    def __init__(self, error_type: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        if status_code is None:
            status_code = DEFAULT_STATUS.get(error_type, 500)
        self.status_code = status_code

    def to_envelope(self) -> Dict[str, Any]:
        return error_envelope(self.error_type, self.message)


def error_envelope(error_type: str, error_message: str) -> Dict[str, Any]:
    """Build the Anthropic error envelope as a plain dictionary."""
    if not error_type:
        error_type = API_ERROR
    if not error_message:
        error_message = "An unknown error occurred"

    # Truncate long error messages
    if len(error_message) > MAX_ERROR_MESSAGE_LENGTH:
        error_message = error_message[:MAX_ERROR_MESSAGE_LENGTH] + "... (truncated)"

    event = ErrorEvent(error=ErrorDetail(type=str(error_type), message=str(error_message)))
    return event.model_dump()


def format_sse_event(event_type: str, data: Dict[str, Any]) -> str:
    """Format one SSE record: ``event: <type>\\ndata: <json>\\n\\n``."""
    return f"event: {event_type}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"


def create_error_event(error_type: str, error_message: str) -> str:
    """
    Create an Anthropic-format error event.

    Args:
        error_type: Error type (e.g., "api_error", "invalid_request_error")
        error_message: Human-readable error message

    Returns:
        SSE-formatted error event string
    """
    return format_sse_event("error", error_envelope(error_type, error_message))
