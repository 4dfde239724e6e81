import pytest

from relay_library.anthropic_compat.validation import validate_request


def test_accepts_minimal_request():
    result = validate_request(
        {"model": "claude-3-sonnet", "messages": [{"role": "user", "content": "Hello"}]}
    )
    assert result.success is True
    assert result.error is None


def test_rejects_missing_model():
    result = validate_request({"messages": [{"role": "user", "content": "Hello"}]})
    assert result.success is False
    assert result.error == "Missing required field: model"


def test_rejects_empty_model():
    result = validate_request({"model": "", "messages": [{"role": "user", "content": "Hello"}]})
    assert result.error == "Missing required field: model"


@pytest.mark.parametrize("messages", [None, "Hello", {"role": "user"}, 3])
def test_rejects_missing_or_non_list_messages(messages):
    body = {"model": "claude-3-sonnet"}
    if messages is not None:
        body["messages"] = messages
    result = validate_request(body)
    assert result.success is False
    assert result.error == "Missing or invalid messages field"


def test_rejects_empty_messages():
    result = validate_request({"model": "claude-3-sonnet", "messages": []})
    assert result.success is False
    assert result.error == "Messages array cannot be empty"


def test_model_is_checked_before_messages():
    result = validate_request({"messages": []})
    assert result.error == "Missing required field: model"


def test_non_object_body_is_missing_model():
    result = validate_request(["not", "an", "object"])
    assert result.error == "Missing required field: model"


def test_other_fields_are_not_required():
    result = validate_request(
        {"model": "anything", "messages": [{"content": 42}], "max_tokens": "lots"}
    )
    assert result.success is True
