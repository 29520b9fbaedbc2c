from __future__ import annotations
"""Pydantic v2 schemas for generation tasks.

Generate requests are a tagged union on ``media_kind`` so each kind gets its
own typed options. Unknown option keys pass through to the provider as-is.
"""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel

from mediagen.services.submission import GenerationRequest


class VideoOptions(BaseModel):
    model_config = ConfigDict(extra="allow")

    resolution: str | None = None
    duration: int | None = None
    ratio: str | None = None
    camera_fixed: bool | None = None
    watermark: bool | None = None
    seed: int | None = None
    image_input: list[str] | None = None


class ImageOptions(BaseModel):
    model_config = ConfigDict(extra="allow")

    ratio: str | None = None
    n: int | None = Field(default=None, ge=1, le=4)
    image_input: list[str] | None = None


class MusicOptions(BaseModel):
    model_config = ConfigDict(extra="allow")

    duration: int | None = None
    style: str | None = None
    instrumental: bool | None = None


class _GenerateBase(BaseModel):
    model: str = Field(..., min_length=1)
    prompt: str | None = None
    scene: str | None = None
    provider: str | None = None

    def to_generation_request(self) -> GenerationRequest:
        options = getattr(self, "options", None)
        return GenerationRequest(
            media_kind=self.media_kind,
            model=self.model,
            prompt=self.prompt,
            scene=self.scene,
            provider=self.provider,
            options=options.model_dump(exclude_none=True) if options else {},
        )


class VideoGenerateRequest(_GenerateBase):
    media_kind: Literal["video"]
    scene: str | None = "text-to-video"
    options: VideoOptions | None = None


class ImageGenerateRequest(_GenerateBase):
    media_kind: Literal["image"]
    scene: str | None = "text-to-image"
    options: ImageOptions | None = None


class MusicGenerateRequest(_GenerateBase):
    media_kind: Literal["music"]
    options: MusicOptions | None = None


class GenerateRequest(RootModel):
    """Submit body, dispatched on ``media_kind``."""

    root: Annotated[
        Union[VideoGenerateRequest, ImageGenerateRequest, MusicGenerateRequest],
        Field(discriminator="media_kind"),
    ]

    def to_generation_request(self) -> GenerationRequest:
        return self.root.to_generation_request()


class TaskQueryRequest(BaseModel):
    task_id: str = Field(..., min_length=1)


class TaskRead(BaseModel):
    """Externally visible task snapshot."""

    id: str
    user_id: str
    media_kind: str
    provider: str
    model: str
    scene: str | None = None
    prompt: str | None = None
    options: Optional[dict[str, Any]] = None
    external_job_id: str | None = None
    status: str
    task_info: Optional[dict[str, Any]] = None
    task_result: Optional[dict[str, Any]] = None
    cost_credits: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    list: List[TaskRead]
    total: int
    page: int
    limit: int
    has_more: bool


class SweepResponse(BaseModel):
    message: str
    processed: int
    updated: int
    skipped: int
    failed: int
    errors: list[str] = []
