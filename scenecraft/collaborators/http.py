"""Generation-job collaborator spoken to over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..contracts import AssetRef, GenerationKind, JobStatus
from ..errors import CollaboratorRejected, CollaboratorUnavailable, RateLimited
from .base import JobBackend, JobPoll

logger = logging.getLogger(__name__)

# Backend status vocabulary -> JobStatus
_STATUS_MAP = {
    "pending": JobStatus.QUEUED,
    "queued": JobStatus.QUEUED,
    "processing": JobStatus.RUNNING,
    "running": JobStatus.RUNNING,
    "enhancing": JobStatus.RUNNING,
    "completed": JobStatus.SUCCEEDED,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
}


class HttpJobBackend(JobBackend):
    """JSON API client for ``/api/{kind}/generate`` and ``/api/jobs/{id}``."""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    async def disconnect(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        identity: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if self._client is None:
            await self.connect()
        headers = {"Content-Type": "application/json"}
        if identity:
            headers["Authorization"] = f"Bearer {identity}"
        try:
            response = await self._client.request(method, path, headers=headers, json=json)
        except httpx.TransportError as exc:
            raise CollaboratorUnavailable(
                f"{method} {path} failed: {exc}", collaborator=self.name
            ) from exc

        if response.status_code == 429:
            raise RateLimited(f"{method} {path} rate limited", collaborator=self.name)
        if response.status_code >= 500:
            raise CollaboratorUnavailable(
                f"{method} {path} returned {response.status_code}", collaborator=self.name
            )
        if response.status_code >= 400:
            raise CollaboratorRejected(
                f"{method} {path} returned {response.status_code}: {response.text}",
                collaborator=self.name,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise CollaboratorRejected(
                f"{method} {path} returned a body that is not JSON", collaborator=self.name
            ) from exc
        if not isinstance(data, dict):
            raise CollaboratorRejected(
                f"{method} {path} returned {type(data).__name__}, expected an object",
                collaborator=self.name,
            )
        return data

    async def submit(
        self,
        kind: GenerationKind,
        payload: Dict[str, Any],
        identity: Optional[str] = None,
    ) -> str:
        data = await self._request("POST", f"/api/{kind.value}/generate", identity, payload)
        job_id = data.get("jobId") or data.get("job_id") or data.get("taskId")
        if not job_id:
            raise CollaboratorRejected(
                f"Generation response carried no job id: {data}", collaborator=self.name
            )
        logger.debug(f"Submitted {kind.value} job {job_id}")
        return str(job_id)

    async def poll(self, job_id: str) -> JobPoll:
        data = await self._request("GET", f"/api/jobs/{job_id}")
        job = data.get("job", data)
        if not isinstance(job, dict):
            raise CollaboratorRejected(f"Job {job_id} status is not an object", collaborator=self.name)
        raw_status = str(job.get("status", "queued")).lower()
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            logger.warning(f"Unknown status '{raw_status}' for job {job_id}; treating as running")
            status = JobStatus.RUNNING

        result = None
        asset = job.get("asset") or next(iter(job.get("assets") or []), None)
        if asset and status is JobStatus.SUCCEEDED:
            result = self._asset(job_id, job, asset)
        error = job.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        try:
            return JobPoll(
                status=status,
                result=result,
                error=error,
                progress=float(job.get("progress") or 0.0),
            )
        except ValueError as exc:
            raise CollaboratorRejected(
                f"Job {job_id} status could not be read: {exc}", collaborator=self.name
            ) from exc

    def _asset(self, job_id: str, job: Dict[str, Any], asset: Any) -> AssetRef:
        try:
            kind = job.get("kind") or asset.get("kind")
            return AssetRef(
                url=asset.get("url"),
                kind=GenerationKind(kind) if kind else None,
                asset_id=asset.get("assetId") or asset.get("id"),
                s3_key=asset.get("s3Key"),
                thumbnail_url=asset.get("thumbnailUrl"),
            )
        except (AttributeError, ValueError) as exc:
            raise CollaboratorRejected(
                f"Job {job_id} reported an unreadable asset: {exc}", collaborator=self.name
            ) from exc
