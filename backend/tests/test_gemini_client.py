from __future__ import annotations

import json

import httpx
import pytest

from health_assistant import ContentBlocked, GeminiClient, ProviderCallError, QuotaExceeded, classify_failure


def _client(handler) -> GeminiClient:
    return GeminiClient(
        "test-gemini-key",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )


def test_generate_content_posts_prompt_and_joins_text_parts():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "candidates": [
                    {
                        "content": {"role": "model", "parts": [{"text": "Stay "}, {"text": "hydrated."}]},
                        "finishReason": "STOP",
                    }
                ]
            },
        )

    text = _client(handler).generate_content("gemini-2.5-flash", "What should I drink?")
    assert text == "Stay hydrated."
    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-2.5-flash:generateContent"
    assert seen["key"] == "test-gemini-key"
    assert seen["body"] == {"contents": [{"role": "user", "parts": [{"text": "What should I drink?"}]}]}


def test_http_error_includes_status_for_classification():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}},
        )

    with pytest.raises(ProviderCallError) as exc_info:
        _client(handler).generate_content("gemini-2.5-flash", "hi")
    error = exc_info.value
    assert error.status_code == 429
    assert error.status == "RESOURCE_EXHAUSTED"
    assert str(error) == "[429 RESOURCE_EXHAUSTED] Resource has been exhausted"
    assert classify_failure(str(error)) is QuotaExceeded


def test_blocked_prompt_raises_safety_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    with pytest.raises(ProviderCallError) as exc_info:
        _client(handler).generate_content("gemini-2.5-flash", "hi")
    assert classify_failure(str(exc_info.value)) is ContentBlocked


def test_safety_finish_without_text_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": [{"finishReason": "SAFETY"}]})

    with pytest.raises(ProviderCallError, match="SAFETY"):
        _client(handler).generate_content("gemini-2.5-flash", "hi")


def test_no_candidates_returns_empty_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []})

    assert _client(handler).generate_content("gemini-2.5-flash", "hi") == ""


def test_transport_failure_is_reported_as_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Name or service not known", request=request)

    with pytest.raises(ProviderCallError, match="^network error"):
        _client(handler).generate_content("gemini-2.5-flash", "hi")


def test_list_models_strips_prefix_and_keeps_methods():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert str(request.url) == "https://gemini.test/v1beta/models"
        return httpx.Response(
            200,
            json={
                "models": [
                    {
                        "name": "models/gemini-2.5-flash",
                        "displayName": "Gemini 2.5 Flash",
                        "supportedGenerationMethods": ["generateContent", "countTokens"],
                    },
                    {"name": "models/embedding-001", "supportedGenerationMethods": ["embedContent"]},
                ]
            },
        )

    models = _client(handler).list_models()
    assert models == [
        {"name": "gemini-2.5-flash", "displayName": "Gemini 2.5 Flash", "methods": ["generateContent", "countTokens"]},
        {"name": "embedding-001", "displayName": None, "methods": ["embedContent"]},
    ]


def test_key_prefix_never_exposes_full_key():
    client = GeminiClient("AIzaSyVerySecretValue")
    assert client.key_prefix == "AIzaSy..."
    assert "VerySecret" not in client.key_prefix
