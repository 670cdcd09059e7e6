"""Apply finished entities, generated assets and replies to the document."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Union

from .contracts import (
    ChatMessage,
    DocumentContext,
    EntityKind,
    EntityPayload,
    GenerationJob,
    JobStatus,
    MutationResult,
)
from .collaborators.base import DocumentEditor
from .errors import CollaboratorError, InvalidPayload, MutationApplyFailed

logger = logging.getLogger(__name__)

Insertable = Union[EntityPayload, GenerationJob, ChatMessage]


def submission_token(session_id: str, item: Insertable) -> str:
    """Identity of one logical insertion: the session plus the item's own id."""
    if isinstance(item, EntityPayload):
        return f"{session_id}:{item.entity_id}"
    if isinstance(item, GenerationJob):
        return f"{session_id}:{item.job_id}"
    return f"{session_id}:{item.id}"


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def _describe(payload: EntityPayload, profile_key: str, field: str) -> str:
    profile = payload.profile or {}
    return _text(profile.get(profile_key)) or _text(payload.fields.get(field))


def render_entity(payload: EntityPayload) -> str:
    fields = payload.fields
    if payload.kind is EntityKind.CHARACTER:
        name = (_text(fields.get("name")) or "UNNAMED").upper()
        age = _text(fields.get("age_range"))
        intro = f"{name} ({age})" if age else name
        description = _describe(payload, "description", "appearance")
        return f"{intro}, {description}" if description else intro
    if payload.kind is EntityKind.LOCATION:
        setting = _text(fields.get("setting")) or "INT"
        name = (_text(fields.get("name")) or "UNNAMED LOCATION").upper()
        description = _describe(payload, "description", "look")
        heading = f"{setting}. {name}"
        return f"{heading}\n\n{description}" if description else heading
    heading = _text(fields.get("heading")).upper() or "INT. UNTITLED"
    synopsis = _describe(payload, "synopsis", "action")
    return f"{heading}\n\n{synopsis}" if synopsis else heading


def render(item: Insertable) -> str:
    """Screenplay text for ``item``.

    Raises:
        InvalidPayload: ``item`` is a job without a finished asset.
    """
    if isinstance(item, EntityPayload):
        body = render_entity(item)
    elif isinstance(item, GenerationJob):
        if item.status is not JobStatus.SUCCEEDED or item.result is None:
            raise InvalidPayload(f"Job {item.job_id} has no result to insert ({item.status.value})")
        kind = (item.result.kind or item.kind).value
        body = f"[[{kind}: {item.result.url}]]"
    else:
        body = item.text.strip()
    return f"\n{body}\n"


class InsertionBridge:
    """Idempotent writer in front of the document collaborator.

    A submission token that has been applied once is never applied again;
    the stored result comes back flagged as a duplicate. Concurrent calls for
    the same token are serialized. A failed attempt records nothing, so the
    same item can be inserted again later.
    """

    def __init__(self, editor: DocumentEditor) -> None:
        self._editor = editor
        self._applied: Dict[str, MutationResult] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def was_applied(self, session_id: str, item: Insertable) -> bool:
        return submission_token(session_id, item) in self._applied

    async def insert(
        self, item: Insertable, context: DocumentContext, session_id: str
    ) -> MutationResult:
        token = submission_token(session_id, item)
        content = render(item)
        lock = self._locks.setdefault(token, asyncio.Lock())
        self._lock_users[token] = self._lock_users.get(token, 0) + 1
        try:
            result = await self._apply_once(token, content, context, lock)
        finally:
            self._release(token)
        return result

    def _release(self, token: str) -> None:
        users = self._lock_users[token] - 1
        if users:
            self._lock_users[token] = users
        else:
            del self._lock_users[token]
            self._locks.pop(token, None)

    async def _apply_once(
        self,
        token: str,
        content: str,
        context: DocumentContext,
        lock: asyncio.Lock,
    ) -> MutationResult:
        async with lock:
            applied = self._applied.get(token)
            if applied is not None:
                logger.info(f"Insertion {token} already applied; skipping duplicate")
                return applied.model_copy(update={"duplicate": True})

            position = context.cursor_position
            try:
                await self._editor.apply_mutation(context.document_id, content, position)
            except MutationApplyFailed:
                logger.error(f"Insertion {token} into {context.document_id} failed")
                raise
            except CollaboratorError as exc:
                logger.error(f"Insertion {token} into {context.document_id} failed: {exc}")
                raise MutationApplyFailed(str(exc)) from exc

            result = MutationResult(
                token=token,
                document_id=context.document_id,
                position=position,
                content=content,
            )
            self._applied[token] = result

        logger.info(f"Inserted {token} into {context.document_id} at {position}")
        return result
