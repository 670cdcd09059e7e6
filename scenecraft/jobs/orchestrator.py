"""Dispatch and tracking of asynchronous generation jobs."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from ..config import JobsConfig
from ..constants import LOCAL_JOB_PREFIX
from ..contracts import GenerationJob, GenerationKind, JobStatus, Mode
from ..collaborators.base import JobBackend, JobPoll
from ..errors import (
    CollaboratorError,
    CollaboratorRejected,
    CollaboratorUnavailable,
    InvalidPayload,
    InvalidTransition,
    JobNotFound,
)
from ..utils.retry import retry_async
from .repository import InMemoryJobRepository, JobRepository

logger = logging.getLogger(__name__)

# Each inner tuple is an any-of group: at least one of its fields must be set.
REQUIRED_PAYLOAD_FIELDS: Dict[GenerationKind, Tuple[Tuple[str, ...], ...]] = {
    GenerationKind.VIDEO: (("prompt",),),
    GenerationKind.IMAGE: (("prompt",),),
    GenerationKind.AUDIO: (("lyrics", "tags"),),
}


def _has_value(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


def validate_payload(kind: GenerationKind, payload: Mapping[str, Any]) -> None:
    """Raise ``InvalidPayload`` when ``payload`` lacks a field ``kind`` requires."""
    for group in REQUIRED_PAYLOAD_FIELDS[kind]:
        if not any(_has_value(payload.get(name)) for name in group):
            raise InvalidPayload(
                f"{kind.value} generation requires {' or '.join(group)}"
            )


class GenerationJobOrchestrator:
    """Owns every ``GenerationJob`` record; jobs run independently of chat state."""

    def __init__(
        self,
        backend: JobBackend,
        config: Optional[JobsConfig] = None,
        repository: Optional[JobRepository] = None,
        identity_token: Optional[str] = None,
    ) -> None:
        self._backend = backend
        self._config = config or JobsConfig()
        self._repository = repository or InMemoryJobRepository()
        self._identity = identity_token
        self._watchers: Dict[str, asyncio.Task] = {}
        self._poll_failures: Dict[str, int] = {}

    async def dispatch(
        self,
        kind: Union[GenerationKind, str],
        payload: Mapping[str, Any],
        *,
        origin_mode: Optional[Mode] = None,
        retry_of: Optional[str] = None,
    ) -> str:
        """Submit a generation request and return its job id.

        Transient collaborator failures are retried with exponential backoff.
        When the request cannot be placed, a failed job with a local id is
        recorded so the failure can be reported and retried.

        Raises:
            InvalidPayload: ``kind`` is unknown or ``payload`` lacks required fields.
        """
        try:
            kind = GenerationKind(kind)
        except ValueError:
            raise InvalidPayload(f"Unknown generation kind '{kind}'") from None
        request = dict(payload)
        validate_payload(kind, request)

        attempts = 0

        async def _submit() -> str:
            nonlocal attempts
            attempts += 1
            return await self._backend.submit(kind, dict(request), identity=self._identity)

        def _on_retry(attempt: int, exc: BaseException) -> None:
            logger.warning(
                f"Dispatch of {kind.value} job failed (attempt {attempt}/"
                f"{self._config.max_dispatch_attempts}): {exc}; retrying"
            )

        try:
            job_id = await retry_async(
                _submit,
                attempts=self._config.max_dispatch_attempts,
                retry_on=(CollaboratorUnavailable,),
                base=self._config.backoff_base,
                jitter=self._config.backoff_jitter,
                on_retry=_on_retry,
            )
        except CollaboratorUnavailable as exc:
            return await self._record_failed(
                kind, request, origin_mode, retry_of, attempts,
                f"Generation service unavailable after {attempts} attempts: {exc}",
            )
        except CollaboratorRejected as exc:
            return await self._record_failed(
                kind, request, origin_mode, retry_of, attempts,
                f"Generation request rejected: {exc}",
            )

        job = GenerationJob(
            job_id=job_id,
            kind=kind,
            request_payload=request,
            origin_mode=origin_mode,
            retry_of=retry_of,
            attempts=attempts,
        )
        await self._repository.save(job)
        logger.info(f"Dispatched {kind.value} job {job_id} after {attempts} attempt(s)")
        return job_id

    async def _record_failed(
        self,
        kind: GenerationKind,
        request: Dict[str, Any],
        origin_mode: Optional[Mode],
        retry_of: Optional[str],
        attempts: int,
        error: str,
    ) -> str:
        job = GenerationJob(
            job_id=f"{LOCAL_JOB_PREFIX}{uuid.uuid4()}",
            kind=kind,
            request_payload=request,
            status=JobStatus.FAILED,
            error=error,
            origin_mode=origin_mode,
            retry_of=retry_of,
            attempts=attempts,
        )
        await self._repository.save(job)
        logger.error(f"{kind.value} job {job.job_id} failed to dispatch: {error}")
        return job.job_id

    async def get_status(self, job_id: str) -> GenerationJob:
        job = await self._repository.get(job_id)
        if job is None:
            raise JobNotFound(f"No generation job '{job_id}'")
        return job

    async def list_jobs(self, job_ids: Optional[Iterable[str]] = None) -> list[GenerationJob]:
        return await self._repository.list_jobs(job_ids)

    async def refresh(self, job_id: str) -> GenerationJob:
        """Poll the collaborator once and record the reported status."""
        job = await self.get_status(job_id)
        if job.status.is_terminal:
            return job

        try:
            poll = await self._backend.poll(job_id)
        except CollaboratorError as exc:
            failures = self._poll_failures.get(job_id, 0) + 1
            self._poll_failures[job_id] = failures
            logger.warning(
                f"Polling job {job_id} failed ({failures}/{self._config.max_poll_failures}): {exc}"
            )
            if failures < self._config.max_poll_failures:
                return job
            poll = JobPoll(
                status=JobStatus.FAILED,
                error=f"Lost connection to the generation service: {exc}",
            )
        else:
            self._poll_failures.pop(job_id, None)

        return await self._apply(job, poll)

    async def _apply(self, job: GenerationJob, poll: JobPoll) -> GenerationJob:
        current = await self.get_status(job.job_id)
        if current.status.is_terminal:
            return current

        result = poll.result
        if result is not None and result.kind is None:
            result = result.model_copy(update={"kind": current.kind})
        updated = current.model_copy(
            update={
                "status": poll.status,
                "result": result,
                "error": poll.error,
                "progress": poll.progress,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        await self._repository.save(updated)
        if updated.status.is_terminal:
            self._poll_failures.pop(job.job_id, None)
            logger.info(f"{updated.kind.value} job {updated.job_id} {updated.status.value}")
        return updated

    def watch(self, job_id: str, interval: Optional[float] = None) -> asyncio.Task:
        """Poll ``job_id`` in the background until it reaches a terminal state."""
        task = self._watchers.get(job_id)
        if task is not None and not task.done():
            return task
        task = asyncio.create_task(
            self._watch_loop(job_id, interval or self._config.poll_interval),
            name=f"watch-{job_id}",
        )
        task.add_done_callback(self._log_watch_outcome)
        self._watchers[job_id] = task
        return task

    @staticmethod
    def _log_watch_outcome(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Watcher {task.get_name()} stopped: {exc!r}")

    async def _watch_loop(self, job_id: str, interval: float) -> GenerationJob:
        try:
            while True:
                job = await self.refresh(job_id)
                if job.status.is_terminal:
                    return job
                await asyncio.sleep(interval)
        finally:
            self._watchers.pop(job_id, None)

    async def retry(self, job_id: str) -> str:
        """Dispatch a new job with the payload of failed job ``job_id``."""
        job = await self.get_status(job_id)
        if job.status is not JobStatus.FAILED:
            raise InvalidTransition(
                f"Only failed jobs can be retried; {job_id} is {job.status.value}"
            )
        return await self.dispatch(
            job.kind, job.request_payload, origin_mode=job.origin_mode, retry_of=job_id
        )

    async def shutdown(self) -> None:
        """Stop local watchers. Jobs already submitted keep running remotely."""
        tasks = list(self._watchers.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._watchers.clear()
