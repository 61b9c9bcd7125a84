from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

HISTORY_WINDOW = 10
MAX_AGE = 150

CHAT_ROLES = ("user", "assistant")

SEVERITY_LEVELS = ("mild", "moderate", "severe")
URGENCY_LEVELS = ("low", "medium", "high", "emergency")

# Newest/most capable first; the tail entries are older or experimental fallbacks.
DEFAULT_CHAT_MODELS = (
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-flash-latest",
    "gemini-2.5-pro",
    "gemini-pro-latest",
    "gemini-2.0-flash-exp",
)
DEFAULT_SYMPTOM_MODELS = (
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-flash-latest",
)


@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str
    timestamp: str | None = None

    @property
    def speaker(self) -> str:
        return "User" if self.role == "user" else "Assistant"


@dataclass(frozen=True)
class SymptomInput:
    name: str
    severity: str
    duration: str

    def as_dict(self) -> dict[str, str]:
        return {"name": self.name, "severity": self.severity, "duration": self.duration}


@dataclass(frozen=True)
class SymptomAnalysis:
    probable_conditions: list[str]
    urgency_level: str
    recommendations: list[str]
    self_care_advice: list[str]
    when_to_see_doctor: str
    detailed_analysis: str
    raw_response: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "probableConditions": list(self.probable_conditions),
            "urgencyLevel": self.urgency_level,
            "recommendations": list(self.recommendations),
            "selfCareAdvice": list(self.self_care_advice),
            "whenToSeeDoctor": self.when_to_see_doctor,
            "detailedAnalysis": self.detailed_analysis,
            "rawResponse": self.raw_response,
        }


@dataclass
class ModelAttempt:
    model_identifier: str
    outcome: str
    error_detail: str | None = None


@dataclass
class AttemptTrace:
    attempts: list[ModelAttempt] = field(default_factory=list)

    def record_success(self, model: str) -> None:
        self.attempts.append(ModelAttempt(model_identifier=model, outcome="success"))

    def record_failure(self, model: str, detail: str) -> None:
        self.attempts.append(ModelAttempt(model_identifier=model, outcome="failure", error_detail=detail))
