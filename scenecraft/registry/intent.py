"""Lightweight text classifiers used around the chat flow."""

from __future__ import annotations

import re
from typing import Optional

from ..contracts import EntityKind

_CREATE_VERBS = r"(?:create|make|build|design|develop|add|start|write|come up with)"
_INTENT_RE = re.compile(
    rf"\b{_CREATE_VERBS}\b[^.?!]{{0,40}}?\b(?:a\s+|an\s+|the\s+|my\s+)?"
    r"(?:new\s+)?(character|location|scene)s?\b",
    re.IGNORECASE,
)

_ADVICE_RE = re.compile(
    r"\b(you should|you could|you might|try to|consider|think about|let me know|"
    r"if you want|would you like|feel free|here to help|happy to help)\b",
    re.IGNORECASE,
)
_META_RE = re.compile(
    r"\b(this could|this would|this might|the scene could|the character should|"
    r"you can have|to make this|to add|for this scene)\b",
    re.IGNORECASE,
)
_QUESTION_START_RE = re.compile(
    r"^(How|What|Where|When|Why|Should|Would|Could|Can|Do you|Are you|Is this)\b",
    re.IGNORECASE,
)
_EXPLANATION_START_RE = re.compile(
    r"^(To |Here's |This |If you|Sure,|Okay,|Alright,|Let me|I can|I'll|I've|I think|I would)",
    re.IGNORECASE,
)


def detect_workflow_intent(text: str) -> Optional[EntityKind]:
    """Return the entity kind the user asks to create, if any."""
    match = _INTENT_RE.search(text or "")
    if match is None:
        return None
    return EntityKind(match.group(1).lower())


def is_screenplay_content(text: str) -> bool:
    """Classify an assistant reply as insertable screenplay text.

    Anything that reads like discussion or advice is rejected; everything else
    (action lines, dialogue, descriptive prose) is treated as content.
    """
    trimmed = (text or "").strip()
    if len(trimmed) < 20:
        return False
    if trimmed.count("?") >= 2 or _QUESTION_START_RE.match(trimmed):
        return False
    if _ADVICE_RE.search(trimmed) or _META_RE.search(trimmed):
        return False
    if re.search(r"^\d+\.", trimmed, re.MULTILINE) or re.search(r"^[-•*]\s", trimmed, re.MULTILINE):
        return False
    if _EXPLANATION_START_RE.match(trimmed):
        return False
    return True
