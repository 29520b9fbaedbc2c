"""Tests for TaskStore: partial updates, version compare-and-set, filtering."""

import pytest

from mediagen.models.generation_task import TaskStatus
from mediagen.services.task_store import TaskFilter


@pytest.mark.asyncio
async def test_create_assigns_id_and_defaults(make_task, store):
    task = await make_task()

    loaded = await store.find_by_id(task.id)
    assert loaded is not None
    assert loaded.status == TaskStatus.PENDING.value
    assert loaded.result_version == 0
    assert loaded.task_info is None
    assert loaded.created_at is not None


@pytest.mark.asyncio
async def test_find_missing_returns_none(store):
    assert await store.find_by_id("does-not-exist") is None


@pytest.mark.asyncio
async def test_update_sets_only_given_columns_and_bumps_version(make_task, store):
    task = await make_task(task_info={"status": "queued"})

    assert await store.update_by_id(task.id, {"status": TaskStatus.PROCESSING.value})

    loaded = await store.find_by_id(task.id)
    assert loaded.status == TaskStatus.PROCESSING.value
    assert loaded.task_info == {"status": "queued"}
    assert loaded.result_version == 1


@pytest.mark.asyncio
async def test_update_with_stale_version_is_dropped(make_task, store):
    task = await make_task()
    await store.update_by_id(task.id, {"status": TaskStatus.PROCESSING.value})

    applied = await store.update_by_id(
        task.id, {"status": TaskStatus.FAILED.value}, expected_version=0
    )

    assert applied is False
    loaded = await store.find_by_id(task.id)
    assert loaded.status == TaskStatus.PROCESSING.value
    assert loaded.result_version == 1


@pytest.mark.asyncio
async def test_update_rejects_unknown_columns(make_task, store):
    task = await make_task()
    with pytest.raises(ValueError):
        await store.update_by_id(task.id, {"user_id": "someone-else"})


@pytest.mark.asyncio
async def test_list_and_count_filter_by_owner_kind_and_status(make_task, store):
    await make_task(user_id="alice")
    await make_task(user_id="alice", status=TaskStatus.PROCESSING.value)
    await make_task(user_id="alice", media_kind="image", scene="text-to-image")
    await make_task(user_id="bob")

    alice_videos = TaskFilter(user_id="alice", media_kind="video")
    assert await store.count(alice_videos) == 2
    assert len(await store.list(alice_videos)) == 2

    in_flight = TaskFilter(status=[TaskStatus.PENDING.value, TaskStatus.PROCESSING.value])
    assert await store.count(in_flight) == 4

    processing = TaskFilter(status=TaskStatus.PROCESSING.value)
    assert [t.user_id for t in await store.list(processing)] == ["alice"]


@pytest.mark.asyncio
async def test_list_paginates(make_task, store):
    for _ in range(5):
        await make_task(user_id="carol")

    task_filter = TaskFilter(user_id="carol")
    first = await store.list(task_filter, page=1, limit=2)
    third = await store.list(task_filter, page=3, limit=2)

    assert len(first) == 2
    assert len(third) == 1
    assert {t.id for t in first}.isdisjoint({t.id for t in third})
