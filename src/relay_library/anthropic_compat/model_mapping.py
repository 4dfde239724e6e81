"""
Claude model name → backend model name mapping.

Lookup is exact first, then by family token, then a default tier. New dated
snapshots and unseen naming schemes therefore always resolve to something.
"""

import logging
from types import MappingProxyType
from typing import Mapping, Tuple

_logger = logging.getLogger(__name__)


# =============================================================================
# TIERS
# =============================================================================

FLAGSHIP_MODEL = "google/gemini-2.5-pro"
BALANCED_MODEL = "google/gemini-2.5-flash"
LITE_MODEL = "google/gemini-2.5-flash-lite"

DEFAULT_MODEL = BALANCED_MODEL

MODEL_MAPPING: Mapping[str, str] = MappingProxyType(
    {
        # Claude 3 Opus
        "claude-3-opus": FLAGSHIP_MODEL,
        "claude-3-opus-20240229": FLAGSHIP_MODEL,
        "claude-3-opus-latest": FLAGSHIP_MODEL,
        # Claude 3 / 3.5 / 3.7 Sonnet
        "claude-3-sonnet": BALANCED_MODEL,
        "claude-3-sonnet-20240229": BALANCED_MODEL,
        "claude-3.5-sonnet": BALANCED_MODEL,
        "claude-3.5-sonnet-20240620": BALANCED_MODEL,
        "claude-3.5-sonnet-20241022": BALANCED_MODEL,
        "claude-3-5-sonnet-20240620": BALANCED_MODEL,
        "claude-3-5-sonnet-20241022": BALANCED_MODEL,
        "claude-3-5-sonnet-latest": BALANCED_MODEL,
        "claude-3-7-sonnet-20250219": BALANCED_MODEL,
        "claude-3-7-sonnet-latest": BALANCED_MODEL,
        # Claude 3 / 3.5 Haiku
        "claude-3-haiku": LITE_MODEL,
        "claude-3-haiku-20240307": LITE_MODEL,
        "claude-3-5-haiku-20241022": LITE_MODEL,
        "claude-3-5-haiku-latest": LITE_MODEL,
        # Claude 4 family
        "claude-4-opus": FLAGSHIP_MODEL,
        "claude-4-sonnet": BALANCED_MODEL,
        "claude-4-haiku": LITE_MODEL,
        "claude-opus-4-20250514": FLAGSHIP_MODEL,
        "claude-opus-4-1-20250805": FLAGSHIP_MODEL,
        "claude-sonnet-4-20250514": BALANCED_MODEL,
        "claude-sonnet-4-5-20250929": BALANCED_MODEL,
        "claude-haiku-4-5-20251001": LITE_MODEL,
    }
)

# Checked in order: the most capable family wins when a name contains several.
FAMILY_TOKENS: Tuple[Tuple[str, str], ...] = (
    ("opus", FLAGSHIP_MODEL),
    ("sonnet", BALANCED_MODEL),
    ("haiku", LITE_MODEL),
)


def map_model(claude_model: str) -> str:
    """Return the backend model for a Claude model name. Never fails."""
    mapped = MODEL_MAPPING.get(claude_model)
    if mapped:
        return mapped

    lower_model = (claude_model or "").lower()
    for token, backend_model in FAMILY_TOKENS:
        if token in lower_model:
            _logger.debug(f"Model '{claude_model}' matched family '{token}'")
            return backend_model

    _logger.debug(f"Model '{claude_model}' not recognized, using {DEFAULT_MODEL}")
    return DEFAULT_MODEL
