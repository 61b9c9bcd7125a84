from __future__ import annotations

from .models import ModelAttempt


class InputValidationError(ValueError):
    """Malformed request data, rejected before any provider call."""


class ProviderCallError(Exception):
    """One generate-content call failed at the transport or provider level."""

    def __init__(self, message: str, *, status_code: int | None = None, status: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status = status


class AnalysisShapeError(ValueError):
    """Provider text did not contain a usable symptom analysis object."""


class ProviderExhausted(Exception):
    """Every configured model identifier failed for one request."""

    kind = "ProviderExhausted"
    status_code = 500
    user_message = "Failed to generate response. Please try again."

    def __init__(
        self,
        detail: str,
        attempts: list[ModelAttempt] | None = None,
        *,
        message: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.attempts = list(attempts or [])
        self.message = message or self.user_message


class InvalidCredentials(ProviderExhausted):
    kind = "InvalidCredentials"
    status_code = 500
    user_message = (
        "Invalid API key. Please check your Gemini API configuration. "
        "Create a key in Google AI Studio: https://aistudio.google.com/app/apikey"
    )


class QuotaExceeded(ProviderExhausted):
    kind = "QuotaExceeded"
    status_code = 429
    user_message = "API quota exceeded. Please try again later."


class AccessDenied(ProviderExhausted):
    kind = "AccessDenied"
    status_code = 403
    user_message = (
        "API access denied. Please check your API key permissions and billing status, "
        "and make sure the Generative Language API is enabled."
    )


class ContentBlocked(ProviderExhausted):
    kind = "ContentBlocked"
    status_code = 400
    user_message = "Content was blocked by safety filters. Please rephrase your question."


class NetworkError(ProviderExhausted):
    kind = "NetworkError"
    status_code = 503
    user_message = "Network error. Please check your internet connection."


# First matching rule wins.
_CLASSIFICATION_RULES: tuple[tuple[type[ProviderExhausted], tuple[str, ...]], ...] = (
    (InvalidCredentials, ("api key", "api_key", "invalid_api_key", "invalid key")),
    (QuotaExceeded, ("quota", "rate limit", "resource_exhausted", "resource exhausted")),
    (AccessDenied, ("permission_denied", "permission denied", "403")),
    (ContentBlocked, ("safety", "blocked")),
    (
        NetworkError,
        (
            "network",
            "fetch",
            "enotfound",
            "econnrefused",
            "connection refused",
            "name resolution",
            "dns",
        ),
    ),
)


def classify_failure(detail: str) -> type[ProviderExhausted]:
    lowered = (detail or "").lower()
    for error_type, keywords in _CLASSIFICATION_RULES:
        if any(keyword in lowered for keyword in keywords):
            return error_type
    return ProviderExhausted


def exhausted_error(
    last_error: Exception | None,
    attempts: list[ModelAttempt],
    *,
    fallback_message: str | None = None,
) -> ProviderExhausted:
    """Build the error surfaced after the whole model list failed.

    Only the last attempt is classified. Shape failures never match a
    provider rule and always surface as plain ``ProviderExhausted``.
    """
    detail = str(last_error) if last_error is not None else "No model identifiers configured."
    if last_error is None or isinstance(last_error, AnalysisShapeError):
        error_type: type[ProviderExhausted] = ProviderExhausted
    else:
        error_type = classify_failure(detail)
    message = fallback_message if error_type is ProviderExhausted else None
    return error_type(detail, attempts, message=message)
