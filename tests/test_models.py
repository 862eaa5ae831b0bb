"""Tests for notesummarizer/models.py — config, wire models and errors."""

import dataclasses

import pytest
from pydantic import ValidationError

from notesummarizer.models import (
    Attachment,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Config,
    HttpStatusError,
    InputError,
    PipelineError,
    Stage,
)


def test_config_strips_trailing_slashes():
    assert Config(base_url="https://api.example/v1/", model="m", api_key="k").base_url == (
        "https://api.example/v1"
    )
    assert Config(base_url="https://api.example/v1", model="m", api_key="k").base_url == (
        "https://api.example/v1"
    )


def test_config_defaults():
    config = Config(base_url="u", model="m", api_key="k")
    assert config.header_template == "<h2>AI Generated Summary ({{modelName}})</h2>"
    assert config.temperature is None
    assert config.max_tokens is None
    assert config.top_p is None
    assert config.skip_existing_check is False
    assert config.min_text_length == 100


def test_config_is_immutable():
    config = Config(base_url="u", model="m", api_key="k")
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.model = "other"


def test_attachment_support_by_content_type():
    assert Attachment(id="a", library_id=1, content_type="application/pdf").is_supported
    assert Attachment(id="a", library_id=1, content_type="text/html").is_supported
    assert not Attachment(id="a", library_id=1, content_type="image/png").is_supported


def test_request_serialization_omits_unset_options():
    request = ChatCompletionRequest(
        model="m", messages=[ChatMessage(role="user", content="p")]
    )
    assert request.model_dump(exclude_none=True) == {
        "model": "m",
        "messages": [{"role": "user", "content": "p"}],
        "temperature": 0.3,
    }


def test_response_rejects_non_string_content():
    with pytest.raises(ValidationError):
        ChatCompletionResponse.model_validate({"choices": [{"message": {"content": 1}}]})


def test_response_ignores_extra_fields():
    response = ChatCompletionResponse.model_validate(
        {"id": "x", "usage": {}, "choices": [{"finish_reason": "stop", "message": {"content": "hi"}}]}
    )
    assert response.choices[0].message.content == "hi"


def test_pipeline_error_message_has_error_prefix():
    cause = InputError("No item selected.")
    error = PipelineError(Stage.RESOLVE_TARGET, cause)
    assert str(error) == "Error: No item selected."
    assert error.cause is cause
    assert error.stage is Stage.RESOLVE_TARGET


def test_http_status_error_attributes():
    error = HttpStatusError("msg", 429, "Too Many Requests", "slow down")
    assert (error.status_code, error.reason, error.detail) == (429, "Too Many Requests", "slow down")
    assert str(error) == "msg"
