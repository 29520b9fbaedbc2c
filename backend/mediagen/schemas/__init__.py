"""Pydantic v2 schemas package."""

from mediagen.schemas.task import (
    GenerateRequest,
    ImageGenerateRequest,
    MusicGenerateRequest,
    SweepResponse,
    TaskListResponse,
    TaskQueryRequest,
    TaskRead,
    VideoGenerateRequest,
)
from mediagen.schemas.notification import (
    CreditBalanceResponse,
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)

__all__ = [
    "GenerateRequest",
    "ImageGenerateRequest",
    "MusicGenerateRequest",
    "SweepResponse",
    "TaskListResponse",
    "TaskQueryRequest",
    "TaskRead",
    "VideoGenerateRequest",
    "CreditBalanceResponse",
    "MarkReadRequest",
    "MarkReadResponse",
    "NotificationListResponse",
    "NotificationRead",
    "UnreadCountResponse",
]
