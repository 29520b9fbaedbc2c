from __future__ import annotations
"""Submission flow — price, validate, charge, create the task, submit.

If the provider submit raises or returns no job id, the task is marked
failed with the error recorded in task_info and the charge is refunded.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from mediagen.models.generation_task import GenerationTask, MediaKind, TaskStatus
from mediagen.services.credit_ledger import CreditLedger
from mediagen.services.errors import InsufficientCreditsError, InvalidRequestError, ProviderError
from mediagen.services.providers.base import SubmitParams
from mediagen.services.providers.registry import ProviderRegistry
from mediagen.services.task_store import TaskStore

logger = logging.getLogger(__name__)

# (media kind, scene) → credits
COST_TABLE: dict[tuple[str, str], int] = {
    (MediaKind.IMAGE.value, "text-to-image"): 2,
    (MediaKind.IMAGE.value, "image-to-image"): 4,
    (MediaKind.VIDEO.value, "text-to-video"): 1,
    (MediaKind.VIDEO.value, "image-to-video"): 1,
    (MediaKind.VIDEO.value, "video-to-video"): 1,
    (MediaKind.MUSIC.value, "text-to-music"): 10,
}

MUSIC_SCENE = "text-to-music"

VIDEO_RESOLUTIONS = ("480p", "720p", "1080p")
VIDEO_RATIOS = ("16:9", "9:16", "4:3", "1:1", "3:4", "21:9", "adaptive")
VIDEO_DURATION_RANGE = (1, 12)
FREE_TIER_RESOLUTION = "480p"


@dataclass
class GenerationRequest:
    media_kind: str
    model: str
    prompt: str | None = None
    scene: str | None = None
    provider: str | None = None
    options: dict[str, Any] = field(default_factory=dict)


def resolve_cost(media_kind: str, scene: str | None) -> tuple[str, int]:
    """Return the effective scene and its credit cost."""
    if media_kind == MediaKind.MUSIC.value:
        scene = MUSIC_SCENE
    cost = COST_TABLE.get((media_kind, scene or ""))
    if cost is None:
        raise InvalidRequestError("invalid scene")
    return scene, cost


def validate_video_options(options: dict[str, Any], free_tier: bool) -> None:
    resolution = options.get("resolution")
    duration = options.get("duration")
    ratio = options.get("ratio")

    if free_tier and resolution and resolution != FREE_TIER_RESOLUTION:
        raise InvalidRequestError(
            "Free users can only use 480p resolution. "
            "Please purchase credits to unlock 720p and 1080p."
        )

    if duration is not None:
        try:
            seconds = int(duration)
        except (TypeError, ValueError):
            seconds = None
        low, high = VIDEO_DURATION_RANGE
        if seconds is None or not low <= seconds <= high:
            raise InvalidRequestError(f"Duration must be between {low} and {high} seconds.")

    if resolution and resolution not in VIDEO_RESOLUTIONS:
        raise InvalidRequestError("Invalid resolution. Must be 480p, 720p, or 1080p.")

    if ratio and ratio not in VIDEO_RATIOS:
        raise InvalidRequestError("Invalid aspect ratio.")


class SubmissionService:
    def __init__(
        self,
        store: TaskStore,
        registry: ProviderRegistry,
        ledger: CreditLedger,
        free_tier_limit: int = 3,
    ) -> None:
        self._store = store
        self._registry = registry
        self._ledger = ledger
        self.free_tier_limit = free_tier_limit

    async def submit(self, user_id: str, request: GenerationRequest) -> GenerationTask:
        try:
            kind = MediaKind(request.media_kind)
        except ValueError:
            raise InvalidRequestError("invalid mediaType") from None
        if not request.model:
            raise InvalidRequestError()
        if not request.prompt and not request.options:
            raise InvalidRequestError("prompt or options is required")

        scene, cost = resolve_cost(kind.value, request.scene)

        provider = (
            self._registry.get(request.provider)
            if request.provider
            else self._registry.default_for(kind)
        )
        if not provider.supports(kind):
            raise InvalidRequestError("invalid mediaType")

        balance = await self._ledger.get_balance(user_id)
        if balance < cost:
            raise InsufficientCreditsError()
        if kind == MediaKind.VIDEO and request.options:
            validate_video_options(request.options, free_tier=balance <= self.free_tier_limit)

        task_id = uuid.uuid4().hex
        charge = await self._ledger.consume(
            user_id, cost, description=f"{kind.value} {scene}", task_id=task_id
        )
        try:
            task = await self._store.create(
                id=task_id,
                user_id=user_id,
                media_kind=kind.value,
                provider=provider.name,
                model=request.model,
                scene=scene,
                prompt=request.prompt,
                options=request.options or None,
                status=TaskStatus.PENDING.value,
                cost_credits=cost,
                credit_id=charge.id,
            )
        except Exception:
            logger.exception("Could not record task %s, refunding charge %s", task_id, charge.id)
            await self._ledger.refund(charge, description=f"refund for unrecorded task {task_id}")
            raise

        params = SubmitParams(
            task_id=task.id,
            media_kind=kind,
            model=request.model,
            prompt=request.prompt,
            scene=scene,
            options=request.options or {},
        )
        try:
            submitted = await provider.submit(params)
        except Exception as exc:
            await self._abort(task, charge, str(exc))
            raise ProviderError(f"ai generate failed: {exc}") from exc

        if not submitted.external_job_id:
            message = (
                f"ai generate failed, mediaType: {kind.value}, "
                f"provider: {provider.name}, model: {request.model}"
            )
            await self._abort(task, charge, message)
            raise ProviderError(message)

        await self._store.update_by_id(task.id, {"external_job_id": submitted.external_job_id})
        task.external_job_id = submitted.external_job_id
        task.result_version += 1
        logger.info("Task %s submitted to %s as %s", task.id, provider.name, submitted.external_job_id)
        return task

    async def _abort(self, task: GenerationTask, charge, error: str) -> None:
        logger.error("Task %s submission failed: %s", task.id, error)
        await self._store.update_by_id(task.id, {
            "status": TaskStatus.FAILED.value,
            "task_info": {"status": "failed", "error_message": error[:1000]},
        })
        task.status = TaskStatus.FAILED.value
        await self._ledger.refund(charge, description=f"refund for failed task {task.id}")
