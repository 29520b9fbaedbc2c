"""Provider adapter contract.

Every provider module implements the same two-call pattern:
  submit(params)  → external job id (fail fast, never retried here)
  query(job id)   → normalized status + info/result snapshots

Adapters only talk to the remote API. They never touch the task store.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from mediagen.models.generation_task import MediaKind, TaskStatus
from mediagen.services.errors import ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

# Provider vocabularies → the four stored statuses
_STATUS_MAP: dict[str, TaskStatus] = {
    "pending": TaskStatus.PENDING,
    "queued": TaskStatus.PENDING,
    "submitted": TaskStatus.PENDING,
    "processing": TaskStatus.PROCESSING,
    "running": TaskStatus.PROCESSING,
    "success": TaskStatus.SUCCESS,
    "succeed": TaskStatus.SUCCESS,
    "succeeded": TaskStatus.SUCCESS,
    "completed": TaskStatus.SUCCESS,
    "failed": TaskStatus.FAILED,
    "error": TaskStatus.FAILED,
    "canceled": TaskStatus.FAILED,
    "cancelled": TaskStatus.FAILED,
}


def map_status(raw: str | None) -> TaskStatus:
    """Map a provider status string to a TaskStatus (unknown → pending)."""
    return _STATUS_MAP.get((raw or "").strip().lower(), TaskStatus.PENDING)


@dataclass
class SubmitParams:
    """Everything an adapter needs to create a remote job."""

    task_id: str
    media_kind: MediaKind
    model: str
    prompt: str | None = None
    scene: str | None = None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubmitResult:
    external_job_id: str | None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderTaskResult:
    """Normalized query response.

    ``result`` carries the media URLs under ``video_urls`` / ``image_urls`` /
    ``audio_urls`` and the ``provider_hosted`` flag telling the reconciler
    whether those URLs live on third-party infrastructure.
    """

    status: TaskStatus | None
    info: dict[str, Any] | None = None
    result: dict[str, Any] | None = None


class GenerationProvider(ABC):
    """Abstract base class for all generation providers."""

    name: str = "unknown"
    media_kinds: frozenset[MediaKind] = frozenset()

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self._http_client = http_client
        self._timeout = timeout

    def supports(self, media_kind: MediaKind | str) -> bool:
        return MediaKind(media_kind) in self.media_kinds

    @abstractmethod
    async def submit(self, params: SubmitParams) -> SubmitResult:
        """Create the remote job. Must not retry."""
        ...

    @abstractmethod
    async def query(
        self, external_job_id: str, media_kind: MediaKind | str, model: str
    ) -> ProviderTaskResult:
        """Fetch the current state of a remote job."""
        ...

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request, translating network failures and timeouts to TransientProviderError.

        Non-2xx answers and undecodable bodies are permanent ProviderErrors.
        """
        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        own_client = self._http_client is None
        try:
            resp = await client.request(method, url, **kwargs)
        except (httpx.NetworkError, httpx.TimeoutException, httpx.RemoteProtocolError) as exc:
            logger.warning("%s: network error on %s %s: %s", self.name, method, url, exc)
            raise TransientProviderError(f"{self.name} network error: {exc}") from exc
        except httpx.TransportError as exc:
            # bad URL, unsupported scheme, proxy or local protocol misuse
            logger.error("%s: request to %s %s cannot be sent: %s", self.name, method, url, exc)
            raise ProviderError(f"{self.name} request failed: {exc}") from exc
        finally:
            if own_client:
                await client.aclose()

        if resp.status_code >= 400:
            raise ProviderError(
                f"{self.name} request failed with status: {resp.status_code}, {resp.text[:500]}"
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} returned a non-JSON response") from exc
