from __future__ import annotations
"""Result reconciler — turns a provider response into a task patch.

Decides three things from a normalized ProviderTaskResult:
  1. the patch to write (status / task_info / task_result), or none if
     nothing changed;
  2. whether the media is provider-hosted and must be migrated to owned
     storage (the ``provider_hosted`` flag set by the adapter);
  3. whether this is the first transition into success, which triggers
     the completion notification.

Reconciled success result layout::

    {
        "provider_hosted": true,
        "video_urls": [...],            # adapter output, untouched
        "saved_urls": [...],            # preferred URLs (owned once migrated)
        "saved_url": "...",
        "original_urls": [...],         # provider URLs, kept as fallback
        "original_url": "...",
        "upload_pending": true,         # until the uploader rewrites saved_*
        "last_frame_url": "...",
        "notified": true
    }
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from mediagen.models.generation_task import GenerationTask, MediaKind, TaskStatus, next_status
from mediagen.services.providers.base import ProviderTaskResult

logger = logging.getLogger(__name__)

# media kind → key holding the adapter's URL list
RESULT_URL_KEYS: dict[str, str] = {
    MediaKind.VIDEO.value: "video_urls",
    MediaKind.IMAGE.value: "image_urls",
    MediaKind.MUSIC.value: "audio_urls",
}


@dataclass
class AssetMigration:
    """Work item for the background asset uploader."""

    task_id: str
    provider: str
    media_kind: str
    urls: list[str]
    last_frame_url: str | None = None
    # result_version the task carries right after the write that scheduled us
    expected_version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "provider": self.provider,
            "media_kind": self.media_kind,
            "urls": list(self.urls),
            "last_frame_url": self.last_frame_url,
            "expected_version": self.expected_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetMigration":
        return cls(**data)


@dataclass
class Reconciliation:
    status: str
    task_info: dict[str, Any] | None
    task_result: dict[str, Any] | None
    changed: bool
    became_success: bool = False
    should_notify: bool = False
    primary_url: str | None = None
    migration: AssetMigration | None = None
    patch: dict[str, Any] = field(default_factory=dict)


def media_urls(result: dict[str, Any] | None, media_kind: str) -> list[str]:
    """URLs of the task's primary media kind in an adapter result."""
    if not result:
        return []
    urls = result.get(RESULT_URL_KEYS.get(media_kind, ""), []) or []
    if not urls and media_kind == MediaKind.VIDEO.value:
        # some providers answer a video job with images only (e.g. first frame)
        urls = result.get("image_urls") or []
    return [u for u in urls if u]


def reconcile(task: GenerationTask, provider_result: ProviderTaskResult) -> Reconciliation:
    """Compute the task update for a provider response. Pure, no I/O."""
    reported = provider_result.status.value if provider_result.status else task.status
    status = next_status(task.status, reported)
    if status != reported:
        logger.info(
            "Task %s: provider reported %s, keeping %s", task.id, reported, task.status
        )

    task_info = provider_result.info if provider_result.info is not None else task.task_info
    task_result = provider_result.result if provider_result.result is not None else task.task_result

    became_success = status == TaskStatus.SUCCESS.value and task.status != status
    migration = None
    primary_url = None
    should_notify = False

    if became_success:
        task_result = dict(task_result or {})
        urls = media_urls(task_result, task.media_kind)
        primary_url = urls[0] if urls else None
        task_result["saved_urls"] = list(urls)
        task_result["saved_url"] = primary_url

        if task_result.get("provider_hosted") and urls:
            task_result["original_urls"] = list(urls)
            task_result["original_url"] = primary_url
            task_result["upload_pending"] = True
            migration = AssetMigration(
                task_id=task.id,
                provider=task.provider,
                media_kind=task.media_kind,
                urls=list(urls),
                last_frame_url=task_result.get("last_frame_url"),
                expected_version=task.result_version + 1,
            )

        # a demoted task that succeeds again was already announced
        already_notified = bool((task.task_result or {}).get("notified"))
        should_notify = (
            not already_notified
            and primary_url is not None
            and task.media_kind in (MediaKind.VIDEO.value, MediaKind.IMAGE.value)
        )
        if should_notify or already_notified:
            task_result["notified"] = True

    changed = (
        status != task.status
        or task_info != task.task_info
        or task_result != task.task_result
    )
    patch: dict[str, Any] = {}
    if changed:
        patch = {"status": status, "task_info": task_info, "task_result": task_result}

    return Reconciliation(
        status=status,
        task_info=task_info,
        task_result=task_result,
        changed=changed,
        became_success=became_success,
        should_notify=should_notify,
        primary_url=primary_url,
        migration=migration,
        patch=patch,
    )
