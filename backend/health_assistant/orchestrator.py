from __future__ import annotations

from typing import Callable, Sequence, TypeVar

from loguru import logger

from .errors import InputValidationError, ProviderCallError, exhausted_error
from .extraction import parse_symptom_analysis
from .models import (
    DEFAULT_CHAT_MODELS,
    DEFAULT_SYMPTOM_MODELS,
    CHAT_ROLES,
    HISTORY_WINDOW,
    MAX_AGE,
    SEVERITY_LEVELS,
    AttemptTrace,
    ChatTurn,
    SymptomAnalysis,
    SymptomInput,
)
from .prompts import build_chat_prompt, build_symptom_prompt
from .provider import ContentProvider

T = TypeVar("T")


def _require_text(text: str) -> str:
    if not text or not text.strip():
        raise ProviderCallError("Model returned an empty response")
    return text


def validate_symptoms(symptoms: Sequence[SymptomInput], age: int | None) -> None:
    if not symptoms:
        raise InputValidationError("At least one symptom is required")
    for index, symptom in enumerate(symptoms):
        if not symptom.name.strip():
            raise InputValidationError(f"Symptom {index + 1} is missing a name")
        if symptom.severity not in SEVERITY_LEVELS:
            raise InputValidationError(
                f"Symptom {index + 1} severity must be one of {', '.join(SEVERITY_LEVELS)}"
            )
        if not symptom.duration.strip():
            raise InputValidationError(f"Symptom {index + 1} is missing a duration")
    if age is not None and not 0 < age <= MAX_AGE:
        raise InputValidationError(f"Age must be a whole number between 1 and {MAX_AGE}")


def validate_history(history: Sequence[ChatTurn]) -> None:
    for index, turn in enumerate(history):
        if turn.role not in CHAT_ROLES:
            raise InputValidationError(f"History entry {index + 1} has an invalid role")


class ResponseOrchestrator:
    """Runs prompts against an ordered list of models until one succeeds.

    Holds no per-request state, so one instance is shared by all requests.
    """

    def __init__(
        self,
        provider: ContentProvider,
        *,
        chat_models: Sequence[str] = DEFAULT_CHAT_MODELS,
        symptom_models: Sequence[str] = DEFAULT_SYMPTOM_MODELS,
        history_window: int = HISTORY_WINDOW,
    ) -> None:
        self.provider = provider
        self.chat_models = tuple(chat_models)
        self.symptom_models = tuple(symptom_models)
        self.history_window = history_window

    def _run_fallback(
        self,
        *,
        operation: str,
        models: Sequence[str],
        prompt: str,
        parse: Callable[[str], T],
        fallback_message: str | None = None,
    ) -> T:
        trace = AttemptTrace()
        last_error: Exception | None = None
        for model in models:
            try:
                logger.debug("{} trying model {}", operation, model)
                text = self.provider.generate_content(model, prompt)
                result = parse(text)
            except Exception as exc:
                logger.warning("{} model {} failed: {}", operation, model, exc)
                trace.record_failure(model, str(exc))
                last_error = exc
                continue
            trace.record_success(model)
            logger.info("{} answered by model {}", operation, model)
            return result

        error = exhausted_error(last_error, trace.attempts, fallback_message=fallback_message)
        logger.error(
            "{} exhausted {} model(s); classified as {}: {}",
            operation,
            len(trace.attempts),
            error.kind,
            error.detail,
        )
        raise error

    def answer_question(self, message: str, history: Sequence[ChatTurn] = ()) -> str:
        if not message or not message.strip():
            raise InputValidationError("Message is required")
        validate_history(history)
        prompt = build_chat_prompt(message, history, self.history_window)
        return self._run_fallback(
            operation="chat",
            models=self.chat_models,
            prompt=prompt,
            parse=_require_text,
        )

    def analyze_symptoms(
        self,
        symptoms: Sequence[SymptomInput],
        age: int | None = None,
        gender: str | None = None,
        additional_info: str | None = None,
    ) -> SymptomAnalysis:
        validate_symptoms(symptoms, age)
        prompt = build_symptom_prompt(
            symptoms,
            age=age,
            gender=gender,
            additional_info=additional_info,
        )
        return self._run_fallback(
            operation="symptom-check",
            models=self.symptom_models,
            prompt=prompt,
            parse=parse_symptom_analysis,
            fallback_message="Failed to analyze symptoms with AI. Please try again.",
        )
