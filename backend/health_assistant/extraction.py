from __future__ import annotations

import json
from typing import Any

from .errors import AnalysisShapeError
from .models import URGENCY_LEVELS, SymptomAnalysis


def _balanced_object_end(text: str, start_idx: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start_idx, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return idx
    return None


def extract_json_object(raw_text: str) -> dict[str, Any] | None:
    text = (raw_text or "").strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
        if isinstance(payload, dict):
            return payload
    except json.JSONDecodeError:
        pass

    for start_idx in [idx for idx, char in enumerate(text) if char == "{"]:
        end_idx = _balanced_object_end(text, start_idx)
        if end_idx is None:
            continue
        candidate = text[start_idx : end_idx + 1]
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def _text_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        raise AnalysisShapeError(f"{field_name} must be a list, got {type(value).__name__}")
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(str(item) for item in value)
    return str(value)


def coerce_analysis(payload: dict[str, Any], raw_response: str) -> SymptomAnalysis:
    urgency = payload.get("urgencyLevel")
    normalized_urgency = urgency.strip().lower() if isinstance(urgency, str) else ""
    if normalized_urgency not in URGENCY_LEVELS:
        raise AnalysisShapeError(f"urgencyLevel must be one of {', '.join(URGENCY_LEVELS)}, got {urgency!r}")
    return SymptomAnalysis(
        probable_conditions=_text_list(payload.get("probableConditions"), "probableConditions"),
        urgency_level=normalized_urgency,
        recommendations=_text_list(payload.get("recommendations"), "recommendations"),
        self_care_advice=_text_list(payload.get("selfCareAdvice"), "selfCareAdvice"),
        when_to_see_doctor=_text(payload.get("whenToSeeDoctor")),
        detailed_analysis=_text(payload.get("detailedAnalysis")),
        raw_response=raw_response,
    )


def parse_symptom_analysis(raw_response: str) -> SymptomAnalysis:
    payload = extract_json_object(raw_response)
    if payload is None:
        raise AnalysisShapeError("No JSON object found in model response")
    return coerce_analysis(payload, raw_response)
