from __future__ import annotations

from typing import Sequence

from .models import HISTORY_WINDOW, ChatTurn, SymptomInput

CHAT_PREAMBLE = (
    "You are a helpful medical AI assistant. Provide accurate, compassionate health information and guidance.\n"
    "Always remind users to consult healthcare professionals for serious concerns or diagnosis.\n"
    "Be empathetic, clear, and provide actionable advice when appropriate.\n"
    "If asked about emergency situations, advise to seek immediate medical attention."
)

SYMPTOM_RESPONSE_SHAPE = """{
  "probableConditions": ["condition1", "condition2", "condition3"],
  "urgencyLevel": "low|medium|high|emergency",
  "recommendations": ["recommendation1", "recommendation2"],
  "selfCareAdvice": ["advice1", "advice2", "advice3"],
  "whenToSeeDoctor": "Detailed explanation of when to seek medical attention",
  "detailedAnalysis": "A comprehensive explanation of the symptoms and possible conditions"
}"""

SYMPTOM_GUIDELINES = """- List 3-5 probable conditions based on symptoms
- Urgency levels:
  * low: Minor issues, self-care appropriate
  * medium: Should see doctor within a few days
  * high: Should see doctor within 24 hours
  * emergency: Seek immediate medical attention
- Provide practical, actionable recommendations
- Include self-care tips that are safe and evidence-based
- Be clear about red flags that require immediate medical attention
- Always emphasize that this is not a diagnosis and professional medical advice should be sought"""


def render_history(history: Sequence[ChatTurn], window: int = HISTORY_WINDOW) -> str:
    recent = list(history)[-window:] if window > 0 else []
    return "\n".join(f"{turn.speaker}: {turn.content}" for turn in recent)


def build_chat_prompt(message: str, history: Sequence[ChatTurn], window: int = HISTORY_WINDOW) -> str:
    return (
        f"{CHAT_PREAMBLE}\n\n"
        "Previous conversation:\n"
        f"{render_history(history, window)}\n\n"
        f"User's current question: {message}\n\n"
        "Provide a helpful, informative response:"
    )


def build_symptom_prompt(
    symptoms: Sequence[SymptomInput],
    *,
    age: int | None = None,
    gender: str | None = None,
    additional_info: str | None = None,
) -> str:
    demographic_parts: list[str] = []
    if age:
        demographic_parts.append(f"Age: {age}")
    if gender:
        demographic_parts.append(f"Gender: {gender}")
    demographics = ", ".join(demographic_parts) if demographic_parts else "Not provided"
    symptom_list = "\n".join(
        f"- {symptom.name} ({symptom.severity} severity, duration: {symptom.duration})" for symptom in symptoms
    )
    return (
        "You are an experienced medical AI assistant. Analyze the following symptoms "
        "and provide a structured medical assessment.\n\n"
        "**Patient Information:**\n"
        f"{demographics}\n\n"
        "**Symptoms:**\n"
        f"{symptom_list}\n\n"
        "**Additional Information:**\n"
        f"{additional_info or 'None provided'}\n\n"
        "**Please provide a detailed analysis in the following JSON format:**\n"
        f"{SYMPTOM_RESPONSE_SHAPE}\n\n"
        "**Guidelines:**\n"
        f"{SYMPTOM_GUIDELINES}\n\n"
        "Respond ONLY with valid JSON, no additional text."
    )
