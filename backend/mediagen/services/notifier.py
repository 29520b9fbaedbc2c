from __future__ import annotations
"""User notifications — durable records plus a best-effort realtime push."""

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediagen.database import async_session_factory
from mediagen.models.generation_task import GenerationTask, MediaKind
from mediagen.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)

PROMPT_PREVIEW_CHARS = 100

_COMPLETION_TEMPLATES: dict[str, tuple[NotificationType, str, str, str]] = {
    MediaKind.VIDEO.value: (
        NotificationType.VIDEO_COMPLETE,
        "Video generation completed",
        "Your video has been generated successfully",
        "videoUrl",
    ),
    MediaKind.IMAGE.value: (
        NotificationType.IMAGE_COMPLETE,
        "Image generation completed",
        "Your image has been generated successfully",
        "imageUrl",
    ),
}


def task_link(task_id: str) -> str:
    return f"/activity/ai-tasks?highlight={task_id}"


class Notifier:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        publish_enabled: bool = True,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._publish_enabled = publish_enabled

    async def notify_task_complete(self, task: GenerationTask, asset_url: str | None) -> Notification | None:
        """Announce a finished video/image task to its owner. Never raises."""
        template = _COMPLETION_TEMPLATES.get(task.media_kind)
        if template is None or not asset_url or not task.user_id:
            return None
        notification_type, title, content, url_key = template

        metadata: dict[str, Any] = {"taskId": task.id, url_key: asset_url}
        if task.prompt:
            metadata["prompt"] = task.prompt[:PROMPT_PREVIEW_CHARS]

        return await self.create(
            user_id=task.user_id,
            type=notification_type.value,
            title=title,
            content=content,
            link=task_link(task.id),
            metadata=metadata,
        )

    async def create(
        self,
        user_id: str,
        type: str,
        title: str,
        content: str,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Notification | None:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            content=content,
            link=link,
            meta=metadata,
            is_read=False,
        )
        try:
            async with self._session_factory() as session:
                session.add(notification)
                await session.commit()
                await session.refresh(notification)
        except Exception:
            logger.error("Failed to create %s notification for user %s", type, user_id, exc_info=True)
            return None

        logger.info("Notification %s (%s) created for user %s", notification.id, type, user_id)
        if self._publish_enabled:
            from mediagen.services.pubsub import publish_user_event

            await publish_user_event(user_id, {
                "type": "notification",
                "notification": {
                    "id": notification.id,
                    "type": type,
                    "title": title,
                    "content": content,
                    "link": link,
                    "metadata": metadata,
                },
            })
        return notification

    # ──────── Read side ────────

    async def list_for_user(
        self, user_id: str, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = (
            stmt.order_by(Notification.created_at.desc(), Notification.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        stmt = select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def unread_count(self, user_id: str) -> int:
        return await self.count_for_user(user_id, unread_only=True)

    async def mark_read(self, user_id: str, notification_id: str) -> bool:
        """Mark one of the user's notifications read. False if it isn't theirs."""
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True, read_at=func.now())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=func.now())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount
