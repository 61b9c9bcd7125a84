from __future__ import annotations

from typing import Any, Protocol

import httpx

from .errors import ProviderCallError

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
_BLOCKING_FINISH_REASONS = {"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII", "RECITATION"}


class ContentProvider(Protocol):
    provider_name: str

    def generate_content(self, model: str, prompt: str) -> str: ...


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    status = ""
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            status = str(err.get("status") or "").strip()
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                message = msg.strip()
        else:
            msg = payload.get("message")
            if isinstance(msg, str) and msg.strip():
                message = msg.strip()
    prefix = f"[{response.status_code} {status}]" if status else f"[{response.status_code}]"
    return f"{prefix} {message or response.reason_phrase}".strip()


def _provider_error_status(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        status = payload["error"].get("status")
        return str(status) if status else None
    return None


def _coerce_candidate_text(response_json: dict[str, Any]) -> str:
    feedback = response_json.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        raise ProviderCallError(f"Prompt was blocked: {feedback['blockReason']}")

    candidates = response_json.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    texts: list[str] = []
    for part in parts or []:
        if isinstance(part, dict) and isinstance(part.get("text"), str):
            texts.append(part["text"])
    text = "".join(texts)
    finish_reason = str(candidate.get("finishReason") or "")
    if not text.strip() and finish_reason in _BLOCKING_FINISH_REASONS:
        raise ProviderCallError(f"Response was blocked: finish reason {finish_reason}")
    return text


class GeminiClient:
    """Minimal client for the Generative Language REST API."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = GEMINI_API_BASE,
        timeout_seconds: float = 25.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def key_prefix(self) -> str:
        return f"{self.api_key[:6]}..." if self.api_key else ""

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout_seconds, connect=8.0),
            transport=self._transport,
        )

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        try:
            with self._client() as client:
                response = client.request(method, f"{self.base_url}/{path}", headers=headers, json=payload)
        except httpx.TransportError as exc:
            raise ProviderCallError(f"network error: {exc.__class__.__name__}: {exc}") from exc
        if response.status_code >= 400:
            raise ProviderCallError(
                _provider_error_message(response),
                status_code=response.status_code,
                status=_provider_error_status(response),
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderCallError(f"Provider returned a non-JSON body (HTTP {response.status_code})") from exc
        if not isinstance(body, dict):
            raise ProviderCallError("Provider returned an unexpected payload")
        return body

    def generate_content(self, model: str, prompt: str) -> str:
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        body = self._request("POST", f"models/{model}:generateContent", payload)
        return _coerce_candidate_text(body)

    def list_models(self) -> list[dict[str, Any]]:
        body = self._request("GET", "models")
        models: list[dict[str, Any]] = []
        for item in body.get("models") or []:
            if not isinstance(item, dict):
                continue
            models.append(
                {
                    "name": str(item.get("name") or "").replace("models/", "", 1),
                    "displayName": item.get("displayName"),
                    "methods": list(item.get("supportedGenerationMethods") or []),
                }
            )
        return models
