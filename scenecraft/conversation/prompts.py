"""Text the conversation machine sends to, and shows on behalf of, the assistant."""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

from ..contracts import FieldValue, Mode
from ..registry.models import FieldSpec, OrderedQuestion, WorkflowDefinition

MODE_INSTRUCTIONS: Dict[Mode, str] = {
    Mode.CHAT: (
        "You are a screenwriting assistant working inside a script editor. "
        "Answer concisely. When the writer asks for screenplay content, reply "
        "with the content only, formatted as Fountain."
    ),
    Mode.DIRECTOR: (
        "You are a film director giving notes on the writer's screenplay. "
        "Be concrete about blocking, pacing, shot choices and performance. "
        "Refer to the selected text when there is one."
    ),
    Mode.DIALOGUE: (
        "You write and punch up screenplay dialogue. Reply with dialogue only, "
        "the character name in capitals above each line."
    ),
}


def mode_instructions(mode: Mode) -> Optional[str]:
    return MODE_INSTRUCTIONS.get(mode)


def interview_instructions(
    workflow: WorkflowDefinition,
    question: OrderedQuestion,
    outstanding: Sequence[FieldSpec],
) -> str:
    """System prompt for one interview turn.

    The assistant restates the writer's answer as labelled lines so the
    response parser can pick it apart; volunteered fields use their own labels.
    """
    target = workflow.field(question.target_field)
    labels = ", ".join(spec.display_label for spec in outstanding)
    return (
        f"You are interviewing a screenwriter to build a {workflow.entity_kind.value}. "
        f'The question just asked was: "{question.prompt}"\n'
        f"Restate the writer's answer as labelled lines, starting with '{target.display_label}:'. "
        f"If the writer also answered other open points, add a line for each using "
        f"these labels: {labels}. Leave out anything the writer did not say. "
        "Do not ask the next question."
    )


def profile_request(workflow: WorkflowDefinition) -> str:
    return f"Write the finished {workflow.entity_kind.value} profile now."


def describe_fields(workflow: WorkflowDefinition, fields: Mapping[str, FieldValue]) -> str:
    parts = [
        f"{workflow.field(name).display_label}: {value}"
        for name, value in fields.items()
        if value is not None
    ]
    return "; ".join(parts)


def confirmation_message(workflow: WorkflowDefinition, fields: Mapping[str, FieldValue]) -> str:
    return f"Just to confirm, I recorded {describe_fields(workflow, fields)}."


def completion_message(workflow: WorkflowDefinition, answers: Mapping[str, FieldValue]) -> str:
    title = answers.get(workflow.output_schema[0].name)
    kind = workflow.entity_kind.value
    subject = f"{kind} '{title}'" if title else kind
    return f"Your {subject} is ready. Shall I add it to the document?"


def failure_message() -> str:
    return "The assistant could not answer just now. Retry to send your message again."
