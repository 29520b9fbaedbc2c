"""Volcengine Ark provider — Seedance video and Seedream image generation.

Async task pattern:
1. POST /contents/generations/tasks → create task
2. GET  /contents/generations/tasks/{id} → poll status

Result URLs are signed links on Volcengine storage that expire after a day,
so every successful result is flagged ``provider_hosted`` and migrated to
owned storage in the background.
"""

from __future__ import annotations

import logging
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

_DEFAULT_ENDPOINT = "https://ark.cn-beijing.volces.com/api/v3"

# Seedance reads generation parameters from flags appended to the prompt
_VIDEO_FLAGS = {
    "resolution": "resolution",
    "ratio": "ratio",
    "duration": "duration",
    "camera_fixed": "camerafixed",
    "watermark": "watermark",
    "seed": "seed",
}


def _format_flag(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _build_video_prompt(prompt: str | None, options: dict[str, Any]) -> str:
    """Append Seedance ``--flag value`` parameters to the motion prompt."""
    parts = [prompt or ""]
    for option_key, flag in _VIDEO_FLAGS.items():
        if options.get(option_key) is not None:
            parts.append(f"--{flag} {_format_flag(options[option_key])}")
    return "  ".join(p for p in parts if p)


class VolcanoProvider(GenerationProvider):
    """Volcengine Ark adapter (video + image)."""

    name = "volcano"
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
            raise ValueError("Volcengine API key is required")
        self.api_key = api_key
        self.endpoint = (base_url or _DEFAULT_ENDPOINT).rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    @property
    def _task_url(self) -> str:
        return f"{self.endpoint}/contents/generations/tasks"

    async def submit(self, params: SubmitParams) -> SubmitResult:
        options = params.options or {}
        if params.media_kind == MediaKind.VIDEO:
            text = _build_video_prompt(params.prompt, options)
        else:
            text = params.prompt or ""

        content: list[dict[str, Any]] = [{"type": "text", "text": text}]
        for image_url in options.get("image_input") or []:
            content.append({"type": "image_url", "image_url": {"url": image_url}})

        payload = {"model": params.model, "content": content}

        logger.info(
            "Creating Ark %s task for task=%s (model=%s)",
            params.media_kind.value, params.task_id[:8], params.model,
        )
        data = await self._request("POST", self._task_url, headers=self._headers, json=payload)

        external_id = data.get("id") or data.get("task_id")
        if not external_id:
            logger.error("Ark returned no task id: %s", data)
            return SubmitResult(external_job_id=None, raw=data)

        logger.info("Ark task created: %s", external_id)
        return SubmitResult(external_job_id=external_id, raw=data)

    async def query(
        self, external_job_id: str, media_kind: MediaKind | str, model: str
    ) -> ProviderTaskResult:
        data = await self._request(
            "GET", f"{self._task_url}/{external_job_id}", headers=self._headers
        )

        if data.get("error") and not data.get("status"):
            error = data["error"]
            raise ProviderError(
                error.get("message") if isinstance(error, dict) else str(error)
            )

        raw_status = data.get("status") or data.get("state") or "pending"
        status = map_status(raw_status)
        kind = MediaKind(media_kind)

        video_urls, image_urls = _extract_urls(data)
        last_frame_url = (
            (data.get("content") or {}).get("last_frame_url")
            or (data.get("result") or {}).get("last_frame_url")
            or data.get("last_frame_url")
        )
        error = data.get("error") if isinstance(data.get("error"), dict) else {}

        info: dict[str, Any] = {
            "status": raw_status,
            "videos": [{"url": u} for u in video_urls],
            "images": [{"url": u} for u in image_urls],
            "error_code": error.get("code") or data.get("error_code"),
            "error_message": error.get("message") or data.get("error_message"),
            "create_time": data.get("created_at") or data.get("create_time"),
        }

        result: dict[str, Any] | None = None
        if status == TaskStatus.SUCCESS:
            if kind == MediaKind.VIDEO and not video_urls:
                raise ProviderError(f"Ark task succeeded but no video URL found: {external_job_id}")
            if kind == MediaKind.IMAGE and not image_urls:
                raise ProviderError(f"Ark task succeeded but no image URL found: {external_job_id}")
            result = {
                "provider_hosted": True,
                "video_urls": video_urls,
                "image_urls": image_urls,
                "last_frame_url": last_frame_url,
                "usage": data.get("usage"),
            }

        return ProviderTaskResult(status=status, info=info, result=result)


def _extract_urls(data: dict[str, Any]) -> tuple[list[str], list[str]]:
    """Pull video and image URLs out of the several Ark response layouts.

    Priority order: content.* > result.* > top level.
    """
    for container in (data.get("content"), data.get("result"), data):
        if not isinstance(container, dict):
            continue
        videos = _as_url_list(
            container.get("video_url") or container.get("videoUrl") or container.get("videos")
        )
        images = _as_url_list(
            container.get("image_url") or container.get("imageUrl") or container.get("images")
        )
        if videos or images:
            return videos, images
    return [], []


def _as_url_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    urls = []
    for item in value if isinstance(value, list) else [value]:
        if isinstance(item, str):
            urls.append(item)
        elif isinstance(item, dict):
            url = item.get("url") or item.get("video_url") or item.get("image_url")
            if url:
                urls.append(url)
    return urls
