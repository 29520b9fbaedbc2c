"""Mock provider for local development (USE_MOCK_API=true).

Jobs advance one step per query: pending → processing → success. Results
point at placeholder files on owned storage, so no migration is scheduled.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from mediagen.models.generation_task import MediaKind, TaskStatus
from mediagen.services.errors import ProviderError
from mediagen.services.providers.base import (
    GenerationProvider,
    ProviderTaskResult,
    SubmitParams,
    SubmitResult,
)

logger = logging.getLogger(__name__)

_PROGRESSION = (TaskStatus.PENDING, TaskStatus.PROCESSING, TaskStatus.SUCCESS)

_PLACEHOLDERS = {
    MediaKind.VIDEO: ("videos", "video_urls", "mock/video.mp4"),
    MediaKind.IMAGE: ("images", "image_urls", "mock/image.png"),
    MediaKind.MUSIC: ("audios", "audio_urls", "mock/music.mp3"),
}


class MockProvider(GenerationProvider):
    name = "mock"
    media_kinds = frozenset(MediaKind)

    def __init__(self, media_base_url: str = "http://localhost:8000/media") -> None:
        super().__init__()
        self.media_base_url = media_base_url.rstrip("/")
        self._polls: dict[str, int] = {}

    async def submit(self, params: SubmitParams) -> SubmitResult:
        job_id = f"mock-{uuid.uuid4().hex[:16]}"
        self._polls[job_id] = 0
        logger.info("Mock task created: %s (kind=%s)", job_id, params.media_kind.value)
        return SubmitResult(external_job_id=job_id, raw={"id": job_id})

    async def query(
        self, external_job_id: str, media_kind: MediaKind | str, model: str
    ) -> ProviderTaskResult:
        if external_job_id not in self._polls:
            raise ProviderError(f"Task not found: {external_job_id}")

        step = min(self._polls[external_job_id] + 1, len(_PROGRESSION) - 1)
        self._polls[external_job_id] = step
        status = _PROGRESSION[step]

        info: dict[str, Any] = {"status": status.value, "progress": round(step / 2 * 100)}
        result = None
        if status == TaskStatus.SUCCESS:
            info_key, result_key, path = _PLACEHOLDERS[MediaKind(media_kind)]
            url = f"{self.media_base_url}/{path}"
            info[info_key] = [{"url": url}]
            result = {"provider_hosted": False, result_key: [url]}

        return ProviderTaskResult(status=status, info=info, result=result)
