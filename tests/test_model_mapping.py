import pytest

from relay_library.anthropic_compat.model_mapping import (
    BALANCED_MODEL,
    FLAGSHIP_MODEL,
    LITE_MODEL,
    MODEL_MAPPING,
    map_model,
)


def test_known_models_map_to_their_tier():
    assert map_model("claude-3-sonnet") == "google/gemini-2.5-flash"
    assert map_model("claude-3-opus") == "google/gemini-2.5-pro"
    assert map_model("claude-3-haiku") == "google/gemini-2.5-flash-lite"
    assert map_model("claude-3.5-sonnet-20240620") == "google/gemini-2.5-flash"
    assert map_model("claude-3-opus-20240229") == FLAGSHIP_MODEL
    assert map_model("claude-3-haiku-20240307") == LITE_MODEL


def test_every_table_entry_is_returned_exactly():
    for claude_model, backend_model in MODEL_MAPPING.items():
        assert map_model(claude_model) == backend_model


@pytest.mark.parametrize(
    "claude_model, expected",
    [
        ("claude-unknown-opus", FLAGSHIP_MODEL),
        ("claude-unknown-sonnet", BALANCED_MODEL),
        ("claude-unknown-haiku", LITE_MODEL),
        ("Claude-OPUS-5-20270101", FLAGSHIP_MODEL),
        ("claude-haiku-9", LITE_MODEL),
    ],
)
def test_family_token_fallback(claude_model, expected):
    assert map_model(claude_model) == expected


def test_most_capable_family_wins_when_several_tokens_present():
    assert map_model("haiku-sonnet-opus") == FLAGSHIP_MODEL
    assert map_model("haiku-sonnet") == BALANCED_MODEL


def test_unknown_models_use_balanced_tier():
    assert map_model("unknown-model") == BALANCED_MODEL
    assert map_model("") == BALANCED_MODEL
    assert map_model("gpt-4o") == BALANCED_MODEL


def test_mapping_table_is_read_only():
    with pytest.raises(TypeError):
        MODEL_MAPPING["claude-3-opus"] = LITE_MODEL
