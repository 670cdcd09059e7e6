"""In-process collaborators for tests and local use."""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..contracts import (
    AssetRef,
    ChatMessage,
    DocumentContext,
    GenerationKind,
    JobStatus,
    Role,
    Selection,
)
from ..errors import CollaboratorUnavailable, MutationApplyFailed
from .base import DocumentEditor, JobBackend, JobPoll, TextGenerator

ScriptedReply = Union[str, BaseException, Callable[[Sequence[ChatMessage], Mapping[str, Any]], str]]


def _last_user_text(transcript: Sequence[ChatMessage]) -> str:
    for message in reversed(transcript):
        if message.role is Role.USER:
            return message.text
    return ""


class ScriptedTextGenerator(TextGenerator):
    """Replies from a queue of strings, exceptions or callables."""

    def __init__(self, replies: Optional[Sequence[ScriptedReply]] = None) -> None:
        self._replies: Deque[ScriptedReply] = deque(replies or [])
        self.calls: List[Tuple[List[ChatMessage], Dict[str, Any]]] = []
        self._gate: Optional[asyncio.Event] = None

    def queue(self, *replies: ScriptedReply) -> None:
        self._replies.extend(replies)

    def hold(self) -> None:
        """Block replies until :meth:`release` is called."""
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def generate(
        self, transcript: Sequence[ChatMessage], hints: Mapping[str, Any]
    ) -> str:
        self.calls.append((list(transcript), dict(hints)))
        if self._gate is not None:
            await self._gate.wait()
            self._gate = None
        if not self._replies:
            raise RuntimeError("ScriptedTextGenerator has no replies left")
        reply = self._replies.popleft()
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(transcript, hints)
        return reply


class EchoTextGenerator(TextGenerator):
    """Offline stand-in that labels the user's own words as the answer."""

    async def generate(
        self, transcript: Sequence[ChatMessage], hints: Mapping[str, Any]
    ) -> str:
        purpose = hints.get("purpose")
        if purpose == "interview":
            return f"{hints['target_label']}: {_last_user_text(transcript)}"
        if purpose == "profile":
            answers = hints.get("answers") or {}
            return "\n".join(f"{name}: {value}" for name, value in answers.items() if value)
        return f"You said: {_last_user_text(transcript)}"


class InMemoryJobBackend(JobBackend):
    """Generation jobs held in a dict; tests drive their progress by hand."""

    def __init__(self) -> None:
        self.jobs: Dict[str, JobPoll] = {}
        self.submissions: List[Tuple[GenerationKind, Dict[str, Any], Optional[str]]] = []
        self._submit_failures: Deque[BaseException] = deque()
        self._poll_failures: Deque[BaseException] = deque()

    def fail_next_submits(self, *errors: BaseException) -> None:
        self._submit_failures.extend(errors)

    def fail_next_polls(self, *errors: BaseException) -> None:
        self._poll_failures.extend(errors)

    async def submit(
        self,
        kind: GenerationKind,
        payload: Dict[str, Any],
        identity: Optional[str] = None,
    ) -> str:
        self.submissions.append((kind, dict(payload), identity))
        if self._submit_failures:
            raise self._submit_failures.popleft()
        job_id = f"{kind.value}-{uuid.uuid4().hex[:12]}"
        self.jobs[job_id] = JobPoll(status=JobStatus.QUEUED)
        return job_id

    async def poll(self, job_id: str) -> JobPoll:
        if self._poll_failures:
            raise self._poll_failures.popleft()
        if job_id not in self.jobs:
            raise CollaboratorUnavailable(f"Unknown job {job_id}", collaborator=self.name)
        return self.jobs[job_id]

    def start(self, job_id: str, progress: float = 0.1) -> None:
        self.jobs[job_id] = JobPoll(status=JobStatus.RUNNING, progress=progress)

    def complete(self, job_id: str, url: str, kind: Optional[GenerationKind] = None) -> None:
        kind = kind or GenerationKind(job_id.split("-", 1)[0])
        self.jobs[job_id] = JobPoll(
            status=JobStatus.SUCCEEDED,
            result=AssetRef(url=url, kind=kind, asset_id=job_id),
            progress=1.0,
        )

    def fail(self, job_id: str, error: str) -> None:
        self.jobs[job_id] = JobPoll(status=JobStatus.FAILED, error=error)


class InMemoryEditor(DocumentEditor):
    """Plain-text documents kept in memory."""

    def __init__(self, documents: Optional[Dict[str, str]] = None, active: Optional[str] = None) -> None:
        self.documents: Dict[str, str] = dict(documents or {"doc-1": ""})
        self.active = active or next(iter(self.documents))
        self.cursor = len(self.documents.get(self.active, ""))
        self.selection: Optional[Selection] = None
        self.mutations: List[Tuple[str, str, int]] = []

    def move_cursor(self, position: int, selection: Optional[Selection] = None) -> None:
        self.cursor = position
        self.selection = selection

    def close_document(self, document_id: str) -> None:
        self.documents.pop(document_id, None)

    async def current_context(self) -> DocumentContext:
        return DocumentContext(
            document_id=self.active,
            cursor_position=self.cursor,
            selection=self.selection,
        )

    async def apply_mutation(self, document_id: str, content: str, position: int) -> None:
        if document_id not in self.documents:
            raise MutationApplyFailed(f"Document {document_id} no longer exists")
        text = self.documents[document_id]
        position = max(0, min(position, len(text)))
        self.documents[document_id] = text[:position] + content + text[position:]
        self.mutations.append((document_id, content, position))
        if document_id == self.active:
            self.cursor = position + len(content)
