"""Exception taxonomy for scenecraft."""

from __future__ import annotations

from typing import Optional


class ScenecraftError(Exception):
    """Base class for all scenecraft errors."""


class WorkflowNotFound(ScenecraftError):
    """No interview workflow is registered for the requested entity kind."""

    def __init__(self, entity_kind: str) -> None:
        super().__init__(f"No workflow registered for entity kind '{entity_kind}'")
        self.entity_kind = entity_kind


class SessionBusy(ScenecraftError):
    """An interview is active and the caller has not confirmed discarding it."""


class InvalidTransition(ScenecraftError):
    """The requested operation is not valid in the current machine state."""


class ParseLowConfidence(ScenecraftError):
    """A reply carried no usable answer. Handled locally by re-asking."""

    def __init__(self, confidence: float, floor: float) -> None:
        super().__init__(f"Parse confidence {confidence:.2f} is below floor {floor:.2f}")
        self.confidence = confidence
        self.floor = floor


class InvalidPayload(ScenecraftError):
    """A generation request is missing the fields its kind requires."""


class JobNotFound(ScenecraftError):
    """No generation job is known under the given id."""


class MutationApplyFailed(ScenecraftError):
    """The document collaborator could not apply an insertion."""


class CollaboratorError(ScenecraftError):
    """Base class for failures reported by an external collaborator."""

    def __init__(self, message: str, collaborator: Optional[str] = None) -> None:
        super().__init__(message)
        self.collaborator = collaborator


class CollaboratorUnavailable(CollaboratorError):
    """The collaborator could not be reached. Retryable for generation jobs."""


class RateLimited(CollaboratorUnavailable):
    """The collaborator asked us to slow down."""


class CollaboratorRejected(CollaboratorError):
    """The collaborator refused the request. Never retried automatically."""
