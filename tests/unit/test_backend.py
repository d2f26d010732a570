from __future__ import annotations

import json
from typing import Any, Dict

import pytest

from ep.models import (
    BackendRateLimitedError,
    BackendResponseFormatError,
    BackendTimeoutError,
    BackendTransportError,
    CompletionRequest,
    OpenAIChatBackend,
    parse_json_payload,
)


def test_parse_json_payload_plain_object() -> None:
    assert parse_json_payload('{"success": true, "activities": []}') == {"success": True, "activities": []}


def test_parse_json_payload_strips_code_fence_and_trailing_commas() -> None:
    raw = '```json\n{"success": true, "activities": [1, 2,],}\n```'
    assert parse_json_payload(raw) == {"success": True, "activities": [1, 2]}


def test_parse_json_payload_extracts_object_from_chatter() -> None:
    raw = 'Sure! Here is the preset: {"name": "Brace } inside", "ok": true} Hope this helps.'
    assert parse_json_payload(raw) == {"name": "Brace } inside", "ok": True}


def test_parse_json_payload_normalises_smart_quotes() -> None:
    raw = "{“name”: “Preset”}"
    assert parse_json_payload(raw) == {"name": "Preset"}


def test_parse_json_payload_repairs_embedded_object_with_trailing_commas() -> None:
    raw = "Result follows.\n{\"activities\": [{\"title\": \"Setup\",},],} Done."
    assert parse_json_payload(raw) == {"activities": [{"title": "Setup"}]}


@pytest.mark.parametrize("raw", ["", "   ", "definitely not json", "{'success': True}", "```json\n{broken\n```"])
def test_parse_json_payload_rejects_garbage(raw: str) -> None:
    with pytest.raises(BackendResponseFormatError):
        parse_json_payload(raw)


def test_completion_request_payload_shape() -> None:
    request = CompletionRequest(
        system_prompt="system",
        user_prompt="user",
        temperature=0.6,
        max_output_tokens=100,
        metadata={"stage": "expand", "long": "x" * 600},
    )

    payload = request.to_payload("gpt-test")

    assert payload["model"] == "gpt-test"
    assert payload["messages"][0] == {"role": "system", "content": "system"}
    assert payload["temperature"] == 0.6
    assert payload["max_tokens"] == 100
    assert payload["response_format"] == {"type": "json_object"}
    assert payload["metadata"]["stage"] == "expand"
    assert payload["metadata"]["long"].endswith("...")
    assert len(payload["metadata"]["long"]) == 512


def _chat_envelope(content: str) -> str:
    return json.dumps({"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]})


def test_openai_backend_extracts_message_content() -> None:
    captured: Dict[str, Any] = {}

    def transport(payload: Dict[str, Any]) -> str:
        captured.update(payload)
        return _chat_envelope('{"success": true}')

    backend = OpenAIChatBackend(model="gpt-4o-mini", transport=transport)
    text = backend.complete("sys", "usr", temperature=0.0, max_output_tokens=64)

    assert text == '{"success": true}'
    assert captured["model"] == "gpt-4o-mini"
    assert captured["temperature"] == 0.0
    assert captured["max_tokens"] == 64


def test_openai_backend_passes_through_bare_completion_text() -> None:
    backend = OpenAIChatBackend(transport=lambda _: '{"success": true, "activities": []}')
    assert backend.complete("s", "u", temperature=0.6) == '{"success": true, "activities": []}'


def test_openai_backend_maps_error_envelopes() -> None:
    def rate_limited(_: Dict[str, Any]) -> str:
        return json.dumps({"error": {"type": "rate_limit_error", "message": "slow down"}})

    def server_error(_: Dict[str, Any]) -> str:
        return json.dumps({"error": {"type": "server_error", "message": "boom"}})

    with pytest.raises(BackendRateLimitedError):
        OpenAIChatBackend(transport=rate_limited).complete("s", "u", temperature=0.0)
    with pytest.raises(BackendTransportError):
        OpenAIChatBackend(transport=server_error).complete("s", "u", temperature=0.0)


def test_openai_backend_maps_timeouts() -> None:
    def slow(_: Dict[str, Any]) -> str:
        raise TimeoutError("read timed out")

    with pytest.raises(BackendTimeoutError):
        OpenAIChatBackend(transport=slow, timeout=1.0).complete("s", "u", temperature=0.0)


def test_openai_backend_rejects_empty_choices() -> None:
    backend = OpenAIChatBackend(transport=lambda _: json.dumps({"choices": []}))
    with pytest.raises(BackendResponseFormatError):
        backend.complete("s", "u", temperature=0.0)


def test_openai_backend_requires_key_for_http_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ValueError):
        OpenAIChatBackend()
