from __future__ import annotations

import pytest

from health_assistant import AnalysisShapeError
from health_assistant.extraction import coerce_analysis, extract_json_object, parse_symptom_analysis


def test_extracts_plain_json_document():
    assert extract_json_object('{"urgencyLevel": "low"}') == {"urgencyLevel": "low"}


def test_extracts_object_from_markdown_fence():
    raw = 'Sure!\n```json\n{"urgencyLevel": "high", "recommendations": ["See a GP"]}\n```\nTake care.'
    assert extract_json_object(raw) == {"urgencyLevel": "high", "recommendations": ["See a GP"]}


def test_braces_inside_strings_do_not_break_matching():
    raw = 'Result: {"detailedAnalysis": "pattern {a} and }", "urgencyLevel": "medium"} trailing }'
    assert extract_json_object(raw) == {"detailedAnalysis": "pattern {a} and }", "urgencyLevel": "medium"}


def test_skips_invalid_candidate_and_uses_next_object():
    raw = "{not json} then {\"urgencyLevel\": \"low\"}"
    assert extract_json_object(raw) == {"urgencyLevel": "low"}


@pytest.mark.parametrize("raw", ["", "   ", "no braces at all", "{unterminated", "[1, 2, 3]"])
def test_returns_none_without_an_object(raw):
    assert extract_json_object(raw) is None


def test_coerce_analysis_normalizes_urgency_and_fills_lists():
    analysis = coerce_analysis({"urgencyLevel": " Emergency "}, raw_response="raw")
    assert analysis.urgency_level == "emergency"
    assert analysis.probable_conditions == []
    assert analysis.recommendations == []
    assert analysis.self_care_advice == []
    assert analysis.when_to_see_doctor == ""
    assert analysis.raw_response == "raw"


def test_coerce_analysis_wraps_bare_string_list_fields():
    analysis = coerce_analysis(
        {"urgencyLevel": "medium", "recommendations": "See a doctor this week", "probableConditions": ["A", "", None]},
        raw_response="raw",
    )
    assert analysis.recommendations == ["See a doctor this week"]
    assert analysis.probable_conditions == ["A"]


@pytest.mark.parametrize("urgency", [None, "", "urgent", 3])
def test_coerce_analysis_rejects_invalid_urgency(urgency):
    with pytest.raises(AnalysisShapeError):
        coerce_analysis({"urgencyLevel": urgency}, raw_response="raw")


def test_coerce_analysis_rejects_non_list_list_field():
    with pytest.raises(AnalysisShapeError):
        coerce_analysis({"urgencyLevel": "low", "selfCareAdvice": {"tip": "rest"}}, raw_response="raw")


def test_as_dict_uses_api_field_names():
    analysis = parse_symptom_analysis('{"urgencyLevel": "low", "whenToSeeDoctor": "If worse"}')
    assert analysis.as_dict() == {
        "probableConditions": [],
        "urgencyLevel": "low",
        "recommendations": [],
        "selfCareAdvice": [],
        "whenToSeeDoctor": "If worse",
        "detailedAnalysis": "",
        "rawResponse": '{"urgencyLevel": "low", "whenToSeeDoctor": "If worse"}',
    }


def test_parse_symptom_analysis_without_object_raises():
    with pytest.raises(AnalysisShapeError):
        parse_symptom_analysis("The model refused to answer.")
