"""Tests for completion notifications and the notification read side."""

from unittest.mock import AsyncMock, patch

import pytest

from mediagen.models.generation_task import GenerationTask
from mediagen.models.notification import NotificationType
from mediagen.services.notifier import Notifier


def _task(media_kind="video", prompt="a corgi surfing " * 20) -> GenerationTask:
    return GenerationTask(
        id="task-42", user_id="user-1", media_kind=media_kind,
        provider="fake", model="m", prompt=prompt,
    )


@pytest.mark.asyncio
async def test_video_completion_notification(notifier):
    url = "https://cdn.example.com/v.mp4"

    created = await notifier.notify_task_complete(_task(), url)

    assert created is not None
    assert created.type == NotificationType.VIDEO_COMPLETE.value
    assert created.link == "/activity/ai-tasks?highlight=task-42"
    assert created.meta["taskId"] == "task-42"
    assert created.meta["videoUrl"] == url
    assert len(created.meta["prompt"]) == 100
    assert await notifier.unread_count("user-1") == 1


@pytest.mark.asyncio
async def test_image_completion_uses_image_url_key(notifier):
    created = await notifier.notify_task_complete(_task("image"), "https://cdn.example.com/i.png")

    assert created.type == NotificationType.IMAGE_COMPLETE.value
    assert created.meta["imageUrl"] == "https://cdn.example.com/i.png"


@pytest.mark.asyncio
async def test_music_and_missing_url_are_not_announced(notifier):
    assert await notifier.notify_task_complete(_task("music"), "https://cdn.example.com/a.mp3") is None
    assert await notifier.notify_task_complete(_task(), None) is None
    assert await notifier.count_for_user("user-1") == 0


@pytest.mark.asyncio
async def test_storage_failure_is_swallowed():
    def broken_factory():
        raise RuntimeError("database is down")

    assert await Notifier(broken_factory, publish_enabled=False).notify_task_complete(_task(), "u") is None


@pytest.mark.asyncio
async def test_realtime_push_after_persisting(session_factory):
    notifier = Notifier(session_factory, publish_enabled=True)
    with patch("mediagen.services.pubsub.publish_user_event", new=AsyncMock()) as publish:
        created = await notifier.notify_task_complete(_task(), "https://cdn.example.com/v.mp4")

    publish.assert_awaited_once()
    user_id, event = publish.await_args.args
    assert user_id == "user-1"
    assert event["notification"]["id"] == created.id


@pytest.mark.asyncio
async def test_mark_read(notifier):
    first = await notifier.create("user-1", "system", "Hello", "First")
    await notifier.create("user-1", "system", "Hello", "Second")
    other = await notifier.create("user-2", "system", "Hello", "Not yours")

    assert await notifier.mark_read("user-1", other.id) is False
    assert await notifier.mark_read("user-1", first.id) is True
    assert await notifier.unread_count("user-1") == 1
    assert await notifier.mark_all_read("user-1") == 1
    assert await notifier.unread_count("user-1") == 0
    assert await notifier.unread_count("user-2") == 1


@pytest.mark.asyncio
async def test_list_for_user_paginates(notifier):
    for n in range(3):
        await notifier.create("user-1", "system", f"n{n}", "body")

    page = await notifier.list_for_user("user-1", page=2, limit=2)

    assert len(page) == 1
    assert await notifier.count_for_user("user-1") == 3


@pytest.mark.asyncio
async def test_publish_is_best_effort():
    from mediagen.services import pubsub

    client = AsyncMock()
    client.publish.side_effect = ConnectionError("redis down")
    with patch.object(pubsub, "_get_async_client", return_value=client):
        await pubsub.publish_user_event("user-1", {"type": "notification"})

    channel, payload = client.publish.await_args.args
    assert channel == "mediagen:notifications:user-1"
    assert '"type": "notification"' in payload
