"""Tests for the workflow registry and branching helpers."""

import pytest

from scenecraft.contracts import EntityKind
from scenecraft.errors import WorkflowNotFound
from scenecraft.registry import (
    FieldSpec,
    OrderedQuestion,
    SkipRule,
    WorkflowDefinition,
    WorkflowRegistry,
    get_workflow,
    missing_required_fields,
    next_question,
    normalize_label,
    outstanding_fields,
)


def test_builtin_workflows_have_expected_question_counts() -> None:
    assert len(get_workflow("character").questions) == 8
    assert len(get_workflow(EntityKind.LOCATION).questions) == 8
    assert len(get_workflow("scene").questions) == 10


def test_unknown_kind_raises_workflow_not_found() -> None:
    registry = WorkflowRegistry()
    with pytest.raises(WorkflowNotFound):
        registry.get(EntityKind.CHARACTER)
    with pytest.raises(WorkflowNotFound) as exc_info:
        get_workflow("spaceship")
    assert exc_info.value.entity_kind == "spaceship"


def test_next_question_is_deterministic() -> None:
    workflow = get_workflow("character")
    answers = {"name": "Sarah", "role": "lead"}
    first = next_question(workflow, answers)
    second = next_question(workflow, dict(answers))
    assert first == second
    assert first.target_field == "appearance"


def test_next_question_returns_lowest_unanswered_index() -> None:
    workflow = get_workflow("character")
    # a volunteered later answer does not move past an earlier gap
    answers = {"name": "Sarah", "goal": "Find her sister"}
    assert next_question(workflow, answers).target_field == "role"


def test_minor_character_skips_relationships() -> None:
    workflow = get_workflow("character")
    answers = {
        "name": "Barista",
        "role": "minor",
        "appearance": "Apron, nose ring",
        "personality": "Hums while working",
        "goal": "Get through the shift",
        "flaw": "Gossips",
        "background": "Art student",
    }
    assert next_question(workflow, answers) is None
    assert missing_required_fields(workflow, answers) == []


def test_lead_character_is_asked_about_relationships() -> None:
    workflow = get_workflow("character")
    answers = {
        "name": "Sarah",
        "role": "lead",
        "appearance": "Tall",
        "personality": "Watchful",
        "goal": "Find her sister",
        "flaw": "Trusts no one",
        "background": "Ex-FBI",
    }
    assert next_question(workflow, answers).target_field == "relationships"


def test_missing_required_fields_ignores_optional_and_none_counts_as_missing() -> None:
    workflow = get_workflow("scene")
    answers = {"heading": "INT. DINER - NIGHT", "act": None}
    missing = missing_required_fields(workflow, answers)
    assert "act" in missing
    assert "heading" not in missing
    assert "dialogue" not in missing
    assert "twist" not in missing


def test_outstanding_fields_excludes_answered_and_skipped() -> None:
    workflow = get_workflow("scene")
    names = [spec.name for spec in outstanding_fields(workflow, {"importance": "minor"})]
    assert "importance" not in names
    assert "twist" not in names
    assert "heading" in names


def test_skip_rule_needs_exactly_one_condition() -> None:
    with pytest.raises(ValueError):
        SkipRule(field="role")
    with pytest.raises(ValueError):
        SkipRule(field="role", equals="minor", present=True)


def test_skip_rule_is_unsatisfied_until_field_answered() -> None:
    rule = SkipRule(field="role", one_of=["minor", "supporting"])
    assert not rule.is_satisfied({})
    assert rule.is_satisfied({"role": "supporting"})
    assert SkipRule(field="role", present=False).is_satisfied({"role": None})


def test_definition_rejects_unknown_target_field() -> None:
    with pytest.raises(ValueError):
        WorkflowDefinition(
            id="broken",
            entity_kind=EntityKind.SCENE,
            output_schema=[FieldSpec(name="heading")],
            questions=[OrderedQuestion(index=0, prompt="?", target_field="nope")],
        )


def test_definition_rejects_gaps_in_indexes() -> None:
    with pytest.raises(ValueError):
        WorkflowDefinition(
            id="broken",
            entity_kind=EntityKind.SCENE,
            output_schema=[FieldSpec(name="heading")],
            questions=[OrderedQuestion(index=1, prompt="?", target_field="heading")],
        )


def test_definition_rejects_empty_question_list() -> None:
    with pytest.raises(ValueError):
        WorkflowDefinition(
            id="empty",
            entity_kind=EntityKind.SCENE,
            output_schema=[FieldSpec(name="heading")],
            questions=[],
        )


def test_load_rejects_workflow_without_questions(tmp_path) -> None:
    path = tmp_path / "workflows.yaml"
    path.write_text(
        """
workflows:
  - id: empty-scene
    entity_kind: scene
    output_schema:
      - name: heading
    questions: []
"""
    )
    registry = WorkflowRegistry([get_workflow("scene")])
    with pytest.raises(ValueError):
        registry.load(path)
    assert registry.get("scene").id == "scene-interview"
    assert next_question(registry.get("scene"), {}).index == 0


def test_load_yaml_replaces_builtin(tmp_path) -> None:
    path = tmp_path / "workflows.yaml"
    path.write_text(
        """
workflows:
  - id: quick-location
    entity_kind: location
    output_schema:
      - name: name
      - name: look
        required: false
    questions:
      - index: 0
        prompt: Where are we?
        target_field: name
      - index: 1
        prompt: What does it look like?
        target_field: look
        required: false
"""
    )
    registry = WorkflowRegistry([get_workflow("location")])
    loaded = registry.load(path)

    assert [d.id for d in loaded] == ["quick-location"]
    assert registry.get("location").id == "quick-location"
    assert registry.kinds() == [EntityKind.LOCATION]


def test_load_invalid_yaml_raises_value_error(tmp_path) -> None:
    path = tmp_path / "workflows.yaml"
    path.write_text("workflows:\n  - id: missing-everything\n")
    with pytest.raises(ValueError):
        WorkflowRegistry().load(path)


def test_normalize_label() -> None:
    assert normalize_label("ageRange") == "age range"
    assert normalize_label("arc_notes") == "arc notes"
    assert normalize_label("  **INT/EXT** ") == "int ext"
