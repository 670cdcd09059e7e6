"""Storage abstraction for generation job records."""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol

from ..contracts import GenerationJob


class JobRepository(Protocol):
    """Protocol for generation job storage backends."""

    async def save(self, job: GenerationJob) -> None:
        """Insert or replace the record for ``job.job_id``."""

    async def get(self, job_id: str) -> GenerationJob | None:
        """Retrieve the job record by id."""

    async def list_jobs(self, job_ids: Optional[Iterable[str]] = None) -> list[GenerationJob]:
        """Return stored jobs, optionally limited to ``job_ids``."""


class InMemoryJobRepository(JobRepository):
    """Store job records in local memory.

    Records are replaced whole on every update, so a reader never sees a
    half-applied status change.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, GenerationJob] = {}

    async def save(self, job: GenerationJob) -> None:
        self._jobs[job.job_id] = job

    async def get(self, job_id: str) -> GenerationJob | None:
        return self._jobs.get(job_id)

    async def list_jobs(self, job_ids: Optional[Iterable[str]] = None) -> list[GenerationJob]:
        if job_ids is None:
            return list(self._jobs.values())
        return [self._jobs[j] for j in job_ids if j in self._jobs]
