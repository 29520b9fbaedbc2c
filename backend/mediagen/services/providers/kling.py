"""Kling video and image generation provider.

Supports:
- kling-v1(STD/PRO), kling-v1-6(PRO), kling-v2-5-turbo(PRO), kling-v2-6(PRO)
- Text-to-video and image-to-video (first + last frame)
- kling-v1 / kling-v2 image generation

Kling queries a job on the same path family it was created on, so the
external job id carries that family as a prefix: ``t2v:<id>``, ``i2v:<id>``
or ``img:<id>``.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from mediagen.models.generation_task import MediaKind, TaskStatus
from mediagen.services.errors import ProviderError
from mediagen.services.providers.base import (
    GenerationProvider,
    ProviderTaskResult,
    SubmitParams,
    SubmitResult,
    map_status,
)

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://api-beijing.klingai.com/v1"

_PATHS = {
    "t2v": "/videos/text2video",
    "i2v": "/videos/image2video",
    "img": "/images/generations",
}

_MODEL_MODE = re.compile(r"^(.+)\((STD|PRO)\)$", re.IGNORECASE)


def _strip_data_url(s: str) -> str:
    """Kling requires raw base64 (or a plain URL), not a data URL."""
    return re.sub(r"^data:image/[^;]+;base64,", "", s)


def _split_model(model: str) -> tuple[str, str]:
    """"kling-v2-6(PRO)" → ("kling-v2-6", "pro")."""
    match = _MODEL_MODE.match(model)
    if match:
        return match.group(1), match.group(2).lower()
    return model, "std"


class KlingProvider(GenerationProvider):
    """Kling adapter (video + image)."""

    name = "kling"
    media_kinds = frozenset({MediaKind.VIDEO, MediaKind.IMAGE})

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        if not api_key:
            raise ValueError("Kling API key is required")
        self.api_key = api_key
        self.base_url = (base_url or _DEFAULT_BASE_URL).rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_body(self, params: SubmitParams) -> tuple[str, dict[str, Any]]:
        options = params.options or {}
        images = [_strip_data_url(i) for i in options.get("image_input") or []]
        model_name, mode = _split_model(params.model)

        if params.media_kind == MediaKind.IMAGE:
            body: dict[str, Any] = {
                "model_name": model_name,
                "prompt": params.prompt or "",
                "aspect_ratio": options.get("ratio") or "16:9",
                "n": options.get("n") or 1,
            }
            if images:
                body["image"] = images[0]
            return "img", body

        body = {
            "model_name": model_name,
            "mode": mode,
            "duration": str(options.get("duration") or 5),
            "prompt": params.prompt or "",
            "aspect_ratio": options.get("ratio") or "16:9",
        }
        if images:
            body["image"] = images[0]
            if len(images) > 1:
                body["image_tail"] = images[1]
            return "i2v", body
        return "t2v", body

    async def submit(self, params: SubmitParams) -> SubmitResult:
        family, body = self._build_body(params)
        data = await self._request(
            "POST", f"{self.base_url}{_PATHS[family]}", json=body, headers=self._headers
        )

        if data.get("code") != 0:
            raise ProviderError(
                f"Kling task creation failed: {data.get('message', 'unknown error')}"
            )

        task_id = (data.get("data") or {}).get("task_id")
        if not task_id:
            logger.error("Kling task creation returned no task_id: %s", data)
            return SubmitResult(external_job_id=None, raw=data)

        logger.info("Kling task created: %s (model=%s)", task_id, params.model)
        return SubmitResult(external_job_id=f"{family}:{task_id}", raw=data)

    async def query(
        self, external_job_id: str, media_kind: MediaKind | str, model: str
    ) -> ProviderTaskResult:
        family, _, task_id = external_job_id.partition(":")
        if family not in _PATHS or not task_id:
            raise ProviderError(f"Malformed Kling job id: {external_job_id}")

        data = await self._request(
            "GET", f"{self.base_url}{_PATHS[family]}/{task_id}", headers=self._headers
        )
        if data.get("code") != 0:
            raise ProviderError(f"Kling query failed: {data.get('message', 'unknown error')}")

        task = data.get("data") or {}
        raw_status = task.get("task_status")
        status = map_status(raw_status)
        task_result = task.get("task_result") or {}
        video_urls = [v["url"] for v in task_result.get("videos") or [] if v.get("url")]
        image_urls = [i["url"] for i in task_result.get("images") or [] if i.get("url")]

        info: dict[str, Any] = {
            "status": raw_status,
            "videos": [{"url": u} for u in video_urls],
            "images": [{"url": u} for u in image_urls],
            "error_message": task.get("task_status_msg") or None,
            "create_time": task.get("created_at"),
        }

        result: dict[str, Any] | None = None
        if status == TaskStatus.SUCCESS:
            if not video_urls and not image_urls:
                raise ProviderError("Kling task succeeded but returned no media URL")
            result = {
                "provider_hosted": True,
                "video_urls": video_urls,
                "image_urls": image_urls,
            }
        elif raw_status and status == TaskStatus.PENDING and raw_status.lower() not in ("submitted", "pending", "queued"):
            logger.warning("Kling unknown status for %s: %s", external_job_id, raw_status)

        return ProviderTaskResult(status=status, info=info, result=result)
