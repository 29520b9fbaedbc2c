from __future__ import annotations
"""Notification inbox endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from mediagen.dependencies import get_notifier, require_user_id
from mediagen.schemas.notification import (
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    UnreadCountResponse,
)
from mediagen.services.notifier import Notifier

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str = Depends(require_user_id),
    notifier: Notifier = Depends(get_notifier),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = False,
):
    items = await notifier.list_for_user(user_id, page=page, limit=limit, unread_only=unread_only)
    total = await notifier.count_for_user(user_id, unread_only=unread_only)
    return {
        "list": items,
        "total": total,
        "page": page,
        "limit": limit,
        "has_more": page * limit < total,
    }


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user_id: str = Depends(require_user_id),
    notifier: Notifier = Depends(get_notifier),
):
    return {"count": await notifier.unread_count(user_id)}


@router.post("/mark-read", response_model=MarkReadResponse)
async def mark_read(
    data: MarkReadRequest,
    user_id: str = Depends(require_user_id),
    notifier: Notifier = Depends(get_notifier),
):
    """Mark one notification, or all of the user's notifications, as read."""
    if data.all:
        return {"updated": await notifier.mark_all_read(user_id)}
    if not await notifier.mark_read(user_id, data.notification_id):
        raise HTTPException(status_code=404, detail="notification not found")
    return {"updated": 1}
