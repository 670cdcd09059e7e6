"""Generation job orchestration."""

from .orchestrator import GenerationJobOrchestrator, REQUIRED_PAYLOAD_FIELDS, validate_payload
from .repository import InMemoryJobRepository, JobRepository

__all__ = [
    "GenerationJobOrchestrator",
    "InMemoryJobRepository",
    "JobRepository",
    "REQUIRED_PAYLOAD_FIELDS",
    "validate_payload",
]
