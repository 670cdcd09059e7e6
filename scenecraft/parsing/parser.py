"""Extract typed interview fields from free-form assistant text."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from ..constants import SINGLE_FIELD_THRESHOLD
from ..contracts import FieldValue, ParseResult
from ..registry.models import FieldSpec, WorkflowDefinition, normalize_label

logger = logging.getLogger(__name__)

# "Name: Sarah", "**Name:** Sarah", "- Arc Notes: ...", "> Type: lead"
_LABEL_RE = re.compile(
    r"^\s*(?:[-*•>]+\s+)?(?:#+\s*)?\**\s*"
    r"(?P<label>[A-Za-z][A-Za-z0-9 /&'()_-]{0,48}?)\s*\**\s*:\s*\**\s*"
    r"(?P<value>.*?)\s*\**\s*$"
)
# "**Physical Introduction**" or "## The Look" on a line of its own
_HEADING_RE = re.compile(
    r"^\s*(?:#+\s*|\*\*)(?P<label>[A-Za-z][^*:#\n]{0,48}?)\s*(?:\*\*)?\s*:?\s*$"
)

_PLACEHOLDERS = {"none", "n/a", "na", "skip", "nothing", "-", "no", "pass", "nope", "tbd"}

LABELLED_SINGLE = 1.0
LABELLED_WITH_VOLUNTEERED = 0.85
VOLUNTEERED_ONLY = 0.6
FALLBACK_AMONG_SEVERAL = 0.8
QUESTION_REPLY = 0.2


def _clean(value: str) -> str:
    value = value.strip().strip("*_`").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value


def _is_placeholder(value: str) -> bool:
    return value.lower().strip(" .!") in _PLACEHOLDERS or not value


def _match_choice(spec: FieldSpec, value: str) -> Optional[str]:
    """Canonical choice whose synonym appears earliest in ``value``; longest wins ties."""
    lowered = value.lower()
    best: Optional[tuple[int, int, str]] = None
    for canonical, synonyms in spec.choices.items():
        for synonym in [canonical, *synonyms]:
            pattern = rf"(?<![a-z0-9]){re.escape(synonym.lower())}(?![a-z0-9])"
            match = re.search(pattern, lowered)
            if match is None:
                continue
            rank = (match.start(), -len(synonym), canonical)
            if best is None or rank[:2] < best[:2]:
                best = rank
    return best[2] if best else None


def coerce_value(spec: FieldSpec, raw: str) -> FieldValue:
    """Convert ``raw`` to the field's type. ``None`` means no usable value."""
    value = _clean(raw)
    if _is_placeholder(value):
        return None
    if spec.kind == "integer":
        match = re.search(r"\d+", value)
        return int(match.group()) if match else None
    if spec.kind == "choice":
        return _match_choice(spec, value)
    return value


def extract_labelled(text: str, schema: Sequence[FieldSpec]) -> Dict[str, str]:
    """Return raw values of labelled lines (and their continuation blocks) per field."""
    index = {key: spec for spec in schema for key in spec.label_keys()}
    found: Dict[str, List[str]] = {}
    current: Optional[str] = None

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            if current and found[current]:
                current = None
            continue

        match = _LABEL_RE.match(line) or _HEADING_RE.match(line)
        if match:
            spec = index.get(normalize_label(match.group("label")))
            if spec is None:
                # someone else's label ends the running block
                current = None
                continue
            if spec.name in found:
                current = None
                continue
            value = (match.groupdict().get("value") or "").strip()
            found[spec.name] = [value] if value else []
            current = spec.name
            continue

        if current is not None:
            found[current].append(stripped)

    return {name: " ".join(parts) for name, parts in found.items() if parts}


class ResponseParser:
    """Heuristic extraction of interview answers. ``parse`` never raises."""

    def __init__(self, single_field_confidence: float = SINGLE_FIELD_THRESHOLD) -> None:
        self.single_field_confidence = single_field_confidence

    def parse(
        self,
        text: str,
        schema: Sequence[FieldSpec],
        asked_field: Optional[str] = None,
        answered: Iterable[str] = (),
    ) -> ParseResult:
        """Parse ``text`` against ``schema``.

        Args:
            text: Assistant reply, possibly unstructured.
            schema: Fields that may be extracted.
            asked_field: Field targeted by the question that was just asked.
            answered: Fields that already hold an answer; they are not re-extracted.
        """
        answered_set = set(answered)
        candidates = [spec for spec in schema if spec.name not in answered_set]
        try:
            extracted, confidence = self._extract(text or "", candidates, asked_field)
        except Exception:
            logger.exception("Response parsing failed; treating reply as unusable")
            extracted, confidence = {}, 0.0

        missing = [s.name for s in candidates if s.required and s.name not in extracted]
        logger.debug(
            f"Parsed fields={sorted(extracted)} missing={missing} confidence={confidence:.2f}"
        )
        return ParseResult(
            extracted_fields=extracted,
            missing_required_fields=missing,
            confidence=confidence,
        )

    def _extract(
        self, text: str, candidates: List[FieldSpec], asked_field: Optional[str]
    ) -> tuple[Dict[str, FieldValue], float]:
        by_name = {spec.name: spec for spec in candidates}
        extracted: Dict[str, FieldValue] = {}
        for name, raw in extract_labelled(text, candidates).items():
            value = coerce_value(by_name[name], raw)
            if value is not None:
                extracted[name] = value

        if extracted:
            if asked_field is None or asked_field in extracted:
                single = len(extracted) == 1
                return extracted, LABELLED_SINGLE if single else LABELLED_WITH_VOLUNTEERED
            return extracted, VOLUNTEERED_ONLY

        target = asked_field if asked_field in by_name else None
        if target is None and len(candidates) == 1:
            target = candidates[0].name
        if target is None:
            return {}, 0.0

        reply = _clean(text)
        if reply.endswith("?"):
            return {}, QUESTION_REPLY
        value = coerce_value(by_name[target], reply)
        if value is None:
            return {}, 0.0
        if len(candidates) == 1:
            return {target: value}, self.single_field_confidence
        return {target: value}, FALLBACK_AMONG_SEVERAL


_default_parser = ResponseParser()


def parse(
    text: str,
    schema: Sequence[FieldSpec],
    asked_field: Optional[str] = None,
    answered: Iterable[str] = (),
) -> ParseResult:
    """Module-level shortcut for :meth:`ResponseParser.parse`."""
    return _default_parser.parse(text, schema, asked_field=asked_field, answered=answered)


def parse_profile(text: str, workflow: WorkflowDefinition) -> ParseResult:
    """Extract the labelled profile sections a finished interview asks for."""
    return _default_parser.parse(text, workflow.profile_schema)
