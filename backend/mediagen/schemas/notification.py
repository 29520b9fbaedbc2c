from __future__ import annotations
"""Pydantic v2 schemas for notifications and credits."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator


class NotificationRead(BaseModel):
    id: str
    type: str
    title: str
    content: str
    link: str | None = None
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="meta")
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    list: List[NotificationRead]
    total: int
    page: int
    limit: int
    has_more: bool


class UnreadCountResponse(BaseModel):
    count: int


class MarkReadRequest(BaseModel):
    """Mark one notification (``notification_id``) or all of them (``all``)."""

    notification_id: str | None = None
    all: bool = False

    @model_validator(mode="after")
    def _target_required(self) -> "MarkReadRequest":
        if not self.all and not self.notification_id:
            raise ValueError("notification_id or all=true is required")
        return self


class MarkReadResponse(BaseModel):
    updated: int


class CreditBalanceResponse(BaseModel):
    user_id: str
    balance: int
