"""Core records shared across the scenecraft chat panel engine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

FieldValue = Union[str, int, None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class EntityKind(str, Enum):
    CHARACTER = "character"
    LOCATION = "location"
    SCENE = "scene"


class Mode(str, Enum):
    """The seven mutually exclusive interaction modes of the panel."""

    CHAT = "chat"
    DIRECTOR = "director"
    IMAGE = "image"
    VIDEO = "video"
    WORKFLOWS = "workflows"
    AUDIO = "audio"
    DIALOGUE = "dialogue"


class GenerationKind(str, Enum):
    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"


class InterviewStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


class FileRef(BaseModel):
    """Reference to a file attached to a chat message."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: Optional[str] = None
    content_type: Optional[str] = None


class ChatMessage(BaseModel):
    """One transcript entry. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: Role
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)
    attachments: List[FileRef] = Field(default_factory=list)
    workflow_tag: Optional[str] = None
    mode: Optional[Mode] = None
    error: Optional[str] = None


class Selection(BaseModel):
    start: int
    end: int
    text: str = ""


class DocumentContext(BaseModel):
    """Editor state supplied by the document collaborator. Read-only input."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    cursor_position: int = 0
    selection: Optional[Selection] = None


class AssetRef(BaseModel):
    """Pointer to a generated asset."""

    url: str
    kind: Optional[GenerationKind] = None
    asset_id: Optional[str] = None
    s3_key: Optional[str] = None
    thumbnail_url: Optional[str] = None


class InterviewSession(BaseModel):
    """Progress of one interview. Mutated only by the conversation machine."""

    session_id: str = Field(default_factory=_new_id)
    workflow_id: str
    entity_kind: EntityKind
    current_question_index: int = 0
    answers: Dict[str, FieldValue] = Field(default_factory=dict)
    status: InterviewStatus = InterviewStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.status is not InterviewStatus.ACTIVE


class ParseResult(BaseModel):
    """Fields extracted from a single assistant reply."""

    extracted_fields: Dict[str, FieldValue] = Field(default_factory=dict)
    missing_required_fields: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    def require_usable(self, floor: float) -> "ParseResult":
        """Raise ``ParseLowConfidence`` when the reply carries no usable answer."""
        from .errors import ParseLowConfidence

        if not self.extracted_fields or self.confidence < floor:
            raise ParseLowConfidence(self.confidence, floor)
        return self


class GenerationJob(BaseModel):
    """Lifecycle record of an asynchronous generation request."""

    job_id: str
    kind: GenerationKind
    request_payload: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.QUEUED
    result: Optional[AssetRef] = None
    error: Optional[str] = None
    progress: float = 0.0
    origin_mode: Optional[Mode] = None
    retry_of: Optional[str] = None
    attempts: int = 1
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class EntityPayload(BaseModel):
    """Finalized structured result of a completed interview."""

    entity_id: str = Field(default_factory=_new_id)
    kind: EntityKind
    workflow_id: str
    fields: Dict[str, FieldValue] = Field(default_factory=dict)
    profile: Optional[Dict[str, FieldValue]] = None
    profile_text: Optional[str] = None


class ModeSession(BaseModel):
    """Panel-lifetime state shared by the controller and the conversation machine."""

    session_id: str = Field(default_factory=_new_id)
    active_mode: Mode = Mode.CHAT
    document_context: Optional[DocumentContext] = None
    active_interview: Optional[InterviewSession] = None
    active_jobs: List[str] = Field(default_factory=list)
    transcript: List[ChatMessage] = Field(default_factory=list)

    def append(self, message: ChatMessage) -> ChatMessage:
        self.transcript.append(message)
        return message

    def find_message(self, message_id: str) -> Optional[ChatMessage]:
        return next((m for m in self.transcript if m.id == message_id), None)


class MutationResult(BaseModel):
    """Outcome of applying (or deduplicating) a document insertion."""

    token: str
    document_id: str
    position: int
    content: str
    applied: bool = True
    duplicate: bool = False
