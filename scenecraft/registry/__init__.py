"""Workflow registry: catalog of interview definitions and branching helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..contracts import EntityKind, FieldValue
from ..errors import WorkflowNotFound
from .builtin import BUILTIN_WORKFLOWS
from .intent import detect_workflow_intent, is_screenplay_content
from .models import (
    FieldSpec,
    OrderedQuestion,
    SkipRule,
    WorkflowDefinition,
    normalize_label,
)

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """Definitions keyed by entity kind. Later registrations replace earlier ones."""

    def __init__(self, definitions: Optional[List[WorkflowDefinition]] = None) -> None:
        self._workflows: Dict[EntityKind, WorkflowDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: WorkflowDefinition) -> None:
        if definition.entity_kind in self._workflows:
            logger.info(
                f"Replacing {definition.entity_kind.value} workflow with '{definition.id}'"
            )
        self._workflows[definition.entity_kind] = definition

    def get(self, entity_kind: Union[EntityKind, str]) -> WorkflowDefinition:
        try:
            kind = EntityKind(entity_kind)
        except ValueError:
            raise WorkflowNotFound(str(entity_kind)) from None
        definition = self._workflows.get(kind)
        if definition is None:
            raise WorkflowNotFound(kind.value)
        return definition

    def kinds(self) -> List[EntityKind]:
        return [kind for kind in EntityKind if kind in self._workflows]

    def definitions(self) -> List[WorkflowDefinition]:
        return [self._workflows[kind] for kind in self.kinds()]

    def load(self, path: Union[str, Path]) -> List[WorkflowDefinition]:
        """Register definitions from a YAML file with a top-level ``workflows`` list."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        try:
            loaded = [WorkflowDefinition(**item) for item in data.get("workflows", [])]
        except ValidationError as exc:
            raise ValueError(f"Invalid workflow definition in {path}: {exc}") from exc
        for definition in loaded:
            self.register(definition)
        logger.info(f"Loaded {len(loaded)} workflow definitions from {path}")
        return loaded


REGISTRY = WorkflowRegistry(list(BUILTIN_WORKFLOWS))


def get_workflow(entity_kind: Union[EntityKind, str]) -> WorkflowDefinition:
    """Return the registered workflow for ``entity_kind`` or raise ``WorkflowNotFound``."""
    return REGISTRY.get(entity_kind)


def register_workflow(definition: WorkflowDefinition) -> None:
    REGISTRY.register(definition)


def next_question(
    workflow: WorkflowDefinition, answers: Mapping[str, FieldValue]
) -> Optional[OrderedQuestion]:
    """Return the lowest-index unanswered question that is not skipped.

    ``None`` signals that the interview is complete. The result depends only on
    ``workflow`` and ``answers``.
    """
    for question in workflow.questions:
        if question.target_field in answers:
            continue
        if question.is_skipped(answers):
            continue
        return question
    return None


def outstanding_fields(
    workflow: WorkflowDefinition, answers: Mapping[str, FieldValue]
) -> List[FieldSpec]:
    """Fields still worth extracting: unanswered and not behind a satisfied skip rule."""
    skipped = {q.target_field for q in workflow.questions if q.is_skipped(answers)}
    return [
        spec
        for spec in workflow.output_schema
        if spec.name not in answers and spec.name not in skipped
    ]


def missing_required_fields(
    workflow: WorkflowDefinition, answers: Mapping[str, FieldValue]
) -> List[str]:
    """Required fields of non-skipped questions that have no value yet."""
    missing = []
    for question in workflow.questions:
        if not question.required or question.is_skipped(answers):
            continue
        if answers.get(question.target_field) is None:
            missing.append(question.target_field)
    return missing


__all__ = [
    "FieldSpec",
    "OrderedQuestion",
    "SkipRule",
    "WorkflowDefinition",
    "WorkflowRegistry",
    "REGISTRY",
    "detect_workflow_intent",
    "get_workflow",
    "is_screenplay_content",
    "missing_required_fields",
    "next_question",
    "normalize_label",
    "outstanding_fields",
    "register_workflow",
]
