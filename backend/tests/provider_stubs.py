from __future__ import annotations

from typing import Callable, Union

Outcome = Union[str, Exception, Callable[[str], str]]


class ScriptedProvider:
    """Returns a scripted outcome per model and records every call."""

    provider_name = "stub"

    def __init__(self, outcomes: dict[str, Outcome] | None = None, default: Outcome | None = None) -> None:
        self.outcomes = dict(outcomes or {})
        self.default = default
        self.calls: list[tuple[str, str]] = []

    @property
    def called_models(self) -> list[str]:
        return [model for model, _ in self.calls]

    @property
    def last_prompt(self) -> str:
        return self.calls[-1][1]

    def generate_content(self, model: str, prompt: str) -> str:
        self.calls.append((model, prompt))
        outcome = self.outcomes.get(model, self.default)
        if outcome is None:
            raise RuntimeError(f"[404 NOT_FOUND] models/{model} is not found")
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(prompt)
        return outcome


def echo_prompt(prompt: str) -> str:
    return prompt


VALID_ANALYSIS_TEXT = (
    '{"probableConditions": ["Common cold", "Influenza", "Allergic rhinitis"], '
    '"urgencyLevel": "low", '
    '"recommendations": ["Rest", "Stay hydrated"], '
    '"selfCareAdvice": ["Drink fluids", "Sleep well"], '
    '"whenToSeeDoctor": "If fever lasts more than 3 days.", '
    '"detailedAnalysis": "Symptoms are consistent with a mild viral infection."}'
)
