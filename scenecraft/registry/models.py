"""Pydantic models describing interview workflow definitions."""

from __future__ import annotations

import re
from typing import Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..contracts import EntityKind, FieldValue


def normalize_label(value: str) -> str:
    """Lower-case ``value`` and collapse snake_case, camelCase and punctuation to spaces."""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", value)
    spaced = re.sub(r"[^A-Za-z0-9]+", " ", spaced)
    return " ".join(spaced.lower().split())


class FieldSpec(BaseModel):
    """One typed field collected by an interview."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: Optional[str] = None
    required: bool = True
    kind: Literal["text", "choice", "integer"] = "text"
    choices: Dict[str, List[str]] = Field(default_factory=dict)
    aliases: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_choices(self) -> "FieldSpec":
        if self.kind == "choice" and not self.choices:
            raise ValueError(f"choice field '{self.name}' needs at least one choice")
        return self

    @property
    def display_label(self) -> str:
        return self.label or normalize_label(self.name).capitalize()

    def label_keys(self) -> set[str]:
        """Normalised labels under which this field may appear in text."""
        keys = {normalize_label(self.name), normalize_label(self.display_label)}
        keys.update(normalize_label(alias) for alias in self.aliases)
        return keys


class SkipRule(BaseModel):
    """Declarative ``skipIf`` predicate evaluated against answers so far.

    Exactly one of ``equals``, ``one_of`` or ``present`` is set. A rule over a
    field that has not been answered yet is never satisfied.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    equals: Optional[FieldValue] = None
    one_of: Optional[List[FieldValue]] = None
    present: Optional[bool] = None

    @model_validator(mode="after")
    def _one_condition(self) -> "SkipRule":
        conditions = [self.equals is not None, self.one_of is not None, self.present is not None]
        if sum(conditions) != 1:
            raise ValueError("SkipRule needs exactly one of equals, one_of or present")
        return self

    def is_satisfied(self, answers: Mapping[str, FieldValue]) -> bool:
        if self.field not in answers:
            return False
        value = answers[self.field]
        if self.present is not None:
            return (value is not None) == self.present
        if self.equals is not None:
            return value == self.equals
        return value in (self.one_of or [])


class OrderedQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    prompt: str
    target_field: str
    required: bool = True
    placeholder: Optional[str] = None
    skip_if: Optional[SkipRule] = None

    def is_skipped(self, answers: Mapping[str, FieldValue]) -> bool:
        return self.skip_if is not None and self.skip_if.is_satisfied(answers)


class WorkflowDefinition(BaseModel):
    """Static description of one entity interview."""

    model_config = ConfigDict(frozen=True)

    id: str
    entity_kind: EntityKind
    questions: List[OrderedQuestion]
    output_schema: List[FieldSpec]
    profile_prompt: Optional[str] = None
    profile_schema: List[FieldSpec] = Field(default_factory=list)

    @field_validator("questions")
    @classmethod
    def _contiguous_indexes(cls, v: List[OrderedQuestion]) -> List[OrderedQuestion]:
        if not v:
            raise ValueError("a workflow needs at least one question")
        if [q.index for q in v] != list(range(len(v))):
            raise ValueError("question indexes must run 0..n-1 in order")
        return v

    @model_validator(mode="after")
    def _targets_exist(self) -> "WorkflowDefinition":
        names = {f.name for f in self.output_schema}
        for question in self.questions:
            if question.target_field not in names:
                raise ValueError(
                    f"question {question.index} targets unknown field '{question.target_field}'"
                )
            if question.skip_if and question.skip_if.field not in names:
                raise ValueError(
                    f"question {question.index} skip rule references unknown field "
                    f"'{question.skip_if.field}'"
                )
        return self

    def field(self, name: str) -> FieldSpec:
        for spec in self.output_schema:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def question_for(self, field_name: str) -> Optional[OrderedQuestion]:
        return next((q for q in self.questions if q.target_field == field_name), None)
