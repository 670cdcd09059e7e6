"""Interfaces of the external collaborators the core talks to."""

from __future__ import annotations

import abc
from typing import Any, Dict, Mapping, Optional, Sequence

from pydantic import BaseModel

from ..contracts import AssetRef, ChatMessage, DocumentContext, GenerationKind, JobStatus


class JobPoll(BaseModel):
    """Status snapshot reported by the generation-job collaborator."""

    status: JobStatus
    result: Optional[AssetRef] = None
    error: Optional[str] = None
    progress: float = 0.0


class TextGenerator(metaclass=abc.ABCMeta):
    """Opaque text-generation collaborator."""

    name = "text-generation"

    @abc.abstractmethod
    async def generate(
        self, transcript: Sequence[ChatMessage], hints: Mapping[str, Any]
    ) -> str:
        """Return the assistant reply for ``transcript``.

        Raises:
            CollaboratorUnavailable: The model could not be reached.
            RateLimited: The model asked us to slow down.
        """
        raise NotImplementedError


class JobBackend(metaclass=abc.ABCMeta):
    """Generation-job collaborator (video, image, audio)."""

    name = "generation-jobs"

    async def connect(self) -> None:
        """Open resources (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Release resources (no-op by default)."""
        pass

    @abc.abstractmethod
    async def submit(
        self,
        kind: GenerationKind,
        payload: Dict[str, Any],
        identity: Optional[str] = None,
    ) -> str:
        """Start a job and return the collaborator's job id."""
        raise NotImplementedError

    @abc.abstractmethod
    async def poll(self, job_id: str) -> JobPoll:
        """Return the current status of ``job_id``."""
        raise NotImplementedError


class DocumentEditor(metaclass=abc.ABCMeta):
    """Document/editor collaborator."""

    name = "document-editor"

    @abc.abstractmethod
    async def current_context(self) -> DocumentContext:
        """Return the current document id, cursor position and selection."""
        raise NotImplementedError

    @abc.abstractmethod
    async def apply_mutation(self, document_id: str, content: str, position: int) -> None:
        """Insert ``content`` at ``position`` of ``document_id``.

        Raises:
            MutationApplyFailed: The document is gone or refused the change.
        """
        raise NotImplementedError
