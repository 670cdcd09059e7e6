"""Tests for the response parser."""

import pytest

from scenecraft.errors import ParseLowConfidence
from scenecraft.parsing import ResponseParser, coerce_value, extract_labelled, parse, parse_profile
from scenecraft.registry import FieldSpec, get_workflow

CHARACTER = get_workflow("character")
SCENE = get_workflow("scene")
LOCATION = get_workflow("location")


def test_single_outstanding_field_takes_whole_reply() -> None:
    schema = [FieldSpec(name="name"), FieldSpec(name="ageRange", required=False)]
    result = parse("Sarah, mid-30s", schema, asked_field="name", answered={"ageRange"})

    assert result.extracted_fields == {"name": "Sarah, mid-30s"}
    assert result.confidence >= 0.9
    assert result.missing_required_fields == []


def test_single_field_without_asked_field() -> None:
    result = parse("Sarah", [FieldSpec(name="name")])
    assert result.extracted_fields == {"name": "Sarah"}
    assert result.confidence == pytest.approx(0.9)


def test_labelled_answer_to_asked_field_is_certain() -> None:
    result = parse("Name: Sarah Cole", CHARACTER.output_schema, asked_field="name")
    assert result.extracted_fields == {"name": "Sarah Cole"}
    assert result.confidence == 1.0


def test_volunteered_fields_lower_confidence() -> None:
    text = "**Name:** Sarah\n- Type: Protagonist\nGoal: find her sister"
    result = parse(text, CHARACTER.output_schema, asked_field="name")

    assert result.extracted_fields == {
        "name": "Sarah",
        "role": "lead",
        "goal": "find her sister",
    }
    assert result.confidence == pytest.approx(0.85)


def test_only_other_fields_answered() -> None:
    result = parse("Goal: revenge", CHARACTER.output_schema, asked_field="role")
    assert result.extracted_fields == {"goal": "revenge"}
    assert result.confidence == pytest.approx(0.6)
    assert "role" in result.missing_required_fields


def test_fallback_among_several_outstanding_fields() -> None:
    result = parse("Sarah, mid-30s", CHARACTER.output_schema, asked_field="name")
    assert result.extracted_fields == {"name": "Sarah, mid-30s"}
    assert result.confidence == pytest.approx(0.8)


def test_question_reply_has_low_confidence() -> None:
    result = parse("Do you mean her first name?", CHARACTER.output_schema, asked_field="name")
    assert result.extracted_fields == {}
    assert result.confidence == pytest.approx(0.2)
    with pytest.raises(ParseLowConfidence):
        result.require_usable(0.3)


@pytest.mark.parametrize("text", ["", "   ", "n/a", "None.", None, "-", "**"])
def test_unusable_input_never_raises(text) -> None:
    result = parse(text, CHARACTER.output_schema, asked_field="name")
    assert result.extracted_fields == {}
    assert result.confidence == 0.0
    assert "name" in result.missing_required_fields


def test_already_answered_fields_are_not_reextracted() -> None:
    result = parse(
        "Name: Someone Else\nGoal: revenge",
        CHARACTER.output_schema,
        asked_field="goal",
        answered=["name"],
    )
    assert result.extracted_fields == {"goal": "revenge"}
    assert result.confidence == 1.0


def test_heading_with_continuation_block() -> None:
    text = (
        "**Physical Introduction**\n"
        "Tall and wiry.\n"
        "Scar on her cheek.\n"
        "\n"
        "Personality: quiet"
    )
    result = parse(text, CHARACTER.output_schema, asked_field="appearance")
    assert result.extracted_fields["appearance"] == "Tall and wiry. Scar on her cheek."
    assert result.extracted_fields["personality"] == "quiet"


def test_foreign_label_ends_block() -> None:
    text = "Goal: find her sister\nMood: tense\nstill tense"
    found = extract_labelled(text, CHARACTER.output_schema)
    assert found == {"goal": "find her sister"}


def test_first_occurrence_wins() -> None:
    found = extract_labelled("Name: Sarah\nName: Jane", CHARACTER.output_schema)
    assert found == {"name": "Sarah"}


def test_integer_and_choice_coercion() -> None:
    act = SCENE.field("act")
    importance = SCENE.field("importance")
    setting = LOCATION.field("setting")

    assert coerce_value(act, "Act 2, the midpoint") == 2
    assert coerce_value(act, "the second act") is None
    assert coerce_value(importance, "It's a turning point") == "turning_point"
    assert coerce_value(setting, "Interior/exterior") == "INT/EXT"
    assert coerce_value(setting, "Outside, on the pier") == "EXT"
    assert coerce_value(CHARACTER.field("role"), "nobody knows") is None


def test_uncoercible_choice_is_not_extracted() -> None:
    result = parse("Role: complicated", CHARACTER.output_schema, asked_field="role")
    assert "role" not in result.extracted_fields


def test_parser_threshold_is_configurable() -> None:
    parser = ResponseParser(single_field_confidence=0.95)
    result = parser.parse("Sarah", [FieldSpec(name="name")])
    assert result.confidence == pytest.approx(0.95)


def test_parse_profile_sections() -> None:
    text = (
        "**Name:** Sarah Cole\n"
        "**Type:** Protagonist\n"
        "**Description:** SARAH COLE (30s) scans the diner before she sits.\n"
        "**Arc Notes:** Learns to let her partner in."
    )
    result = parse_profile(text, CHARACTER)
    assert result.extracted_fields == {
        "name": "Sarah Cole",
        "type": "lead",
        "description": "SARAH COLE (30s) scans the diner before she sits.",
        "arc_notes": "Learns to let her partner in.",
    }
