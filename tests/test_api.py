"""HTTP-level tests for the API routers (ASGI transport, no lifespan)."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from mediagen.config import Settings, get_settings
from mediagen.dependencies import (
    get_credit_ledger,
    get_notifier,
    get_query_coordinator,
    get_submission_service,
    get_sweeper,
    get_task_store,
)
from mediagen.main import app
from mediagen.models.generation_task import TaskStatus
from mediagen.services.query_coordinator import QueryCoordinator
from mediagen.services.submission import SubmissionService
from mediagen.services.sweeper import ReconciliationSweeper

CRON_SECRET = "cron-s3cret"
ALICE = {"X-User-Id": "user-1"}
MALLORY = {"X-User-Id": "mallory"}
CRON = {"Authorization": f"Bearer {CRON_SECRET}"}


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def coordinator(store, registry, notifier):
    return QueryCoordinator(store, registry, notifier=notifier, sleep=AsyncMock())


@pytest_asyncio.fixture
async def client(store, registry, ledger, notifier, coordinator):
    settings = Settings(CRON_SECRET=CRON_SECRET)
    app.dependency_overrides.update({
        get_settings: lambda: settings,
        get_task_store: lambda: store,
        get_credit_ledger: lambda: ledger,
        get_notifier: lambda: notifier,
        get_query_coordinator: lambda: coordinator,
        get_sweeper: lambda: ReconciliationSweeper(store, coordinator),
        get_submission_service: lambda: SubmissionService(store, registry, ledger),
    })
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


VIDEO_BODY = {
    "media_kind": "video",
    "model": "fake-video-1",
    "prompt": "a corgi surfing a wave at sunset",
    "options": {"resolution": "720p", "duration": 5},
}


# ============================================================================
# GENERATE
# ============================================================================


@pytest.mark.asyncio
async def test_generate_charges_and_returns_task(client, ledger):
    await ledger.grant("user-1", 5)

    resp = await client.post("/api/ai/generate", json=VIDEO_BODY, headers=ALICE)

    assert resp.status_code == 201
    body = resp.json()
    assert body["external_job_id"] == "fake-job-1"
    assert body["status"] == TaskStatus.PENDING.value
    assert body["scene"] == "text-to-video"
    assert body["cost_credits"] == 1

    balance = await client.get("/api/credits/balance", headers=ALICE)
    assert balance.json() == {"user_id": "user-1", "balance": 4}


@pytest.mark.asyncio
async def test_generate_requires_sign_in(client):
    resp = await client.post("/api/ai/generate", json=VIDEO_BODY)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "no auth, please sign in"


@pytest.mark.asyncio
async def test_generate_without_credits(client):
    resp = await client.post("/api/ai/generate", json=VIDEO_BODY, headers=ALICE)
    assert resp.status_code == 402
    assert resp.json() == {"detail": "insufficient credits"}


@pytest.mark.asyncio
async def test_generate_rejects_unknown_media_kind(client):
    body = dict(VIDEO_BODY, media_kind="hologram")
    resp = await client.post("/api/ai/generate", json=body, headers=ALICE)
    assert resp.status_code == 422


# ============================================================================
# QUERY
# ============================================================================


@pytest.mark.asyncio
async def test_owner_query_refreshes_task(client, make_task):
    task = await make_task()

    resp = await client.post("/api/ai/query", json={"task_id": task.id}, headers=ALICE)

    assert resp.status_code == 200
    assert resp.json()["status"] == TaskStatus.PROCESSING.value


@pytest.mark.asyncio
async def test_query_errors_map_to_status_codes(client, make_task):
    task = await make_task()

    forbidden = await client.post("/api/ai/query", json={"task_id": task.id}, headers=MALLORY)
    missing = await client.post("/api/ai/query", json={"task_id": "nope"}, headers=ALICE)

    assert forbidden.status_code == 403
    assert forbidden.json() == {"detail": "no permission"}
    assert missing.status_code == 404
    assert missing.json() == {"detail": "task not found"}


@pytest.mark.asyncio
async def test_anonymous_query_needs_cron_token(client, make_task):
    task = await make_task(user_id="someone-else")

    denied = await client.post("/api/ai/query", json={"task_id": task.id})
    allowed = await client.post("/api/ai/query", json={"task_id": task.id}, headers=CRON)

    assert denied.status_code == 401
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_query_while_in_flight_is_conflict(client, coordinator, provider, make_task):
    task = await make_task()
    provider.hold(task.external_job_id)
    in_flight = asyncio.create_task(coordinator.query(task.id))
    while not provider.query_calls:
        await asyncio.sleep(0)

    resp = await client.post("/api/ai/query", json={"task_id": task.id}, headers=ALICE)

    assert resp.status_code == 409
    assert resp.json() == {"detail": "task query in progress"}
    provider.release(task.external_job_id)
    await in_flight


# ============================================================================
# HISTORY
# ============================================================================


@pytest.mark.asyncio
async def test_list_tasks_filters_by_kind_and_paginates(client, make_task):
    await make_task()
    await make_task()
    await make_task(media_kind="image", scene="text-to-image")
    await make_task(user_id="mallory")

    videos = await client.get("/api/ai/tasks", params={"limit": 1}, headers=ALICE)
    images = await client.get("/api/ai/tasks", params={"media_kind": "image"}, headers=ALICE)

    assert videos.status_code == 200
    assert videos.json()["total"] == 2
    assert len(videos.json()["list"]) == 1
    assert videos.json()["has_more"] is True
    assert images.json()["total"] == 1
    assert images.json()["has_more"] is False


@pytest.mark.asyncio
async def test_get_task_checks_owner(client, make_task):
    task = await make_task()

    own = await client.get(f"/api/ai/tasks/{task.id}", headers=ALICE)
    other = await client.get(f"/api/ai/tasks/{task.id}", headers=MALLORY)

    assert own.status_code == 200
    assert own.json()["id"] == task.id
    assert other.status_code == 403


# ============================================================================
# SWEEP
# ============================================================================


@pytest.mark.asyncio
async def test_sweep_endpoint_requires_cron_token(client, make_task):
    await make_task()
    await make_task()

    denied = await client.get("/api/ai/sync-pending-tasks")
    resp = await client.get("/api/ai/sync-pending-tasks", headers=CRON)

    assert denied.status_code == 401
    assert resp.status_code == 200
    body = resp.json()
    assert body["processed"] == 2
    assert body["updated"] == 2
    assert body["message"] == "Processed 2 tasks"


# ============================================================================
# NOTIFICATIONS
# ============================================================================


@pytest.mark.asyncio
async def test_notification_inbox(client, notifier):
    first = await notifier.create("user-1", "video_complete", "Video generation completed", "done",
                                  metadata={"taskId": "t1"})
    await notifier.create("user-1", "video_complete", "Video generation completed", "done")

    listing = await client.get("/api/notifications", headers=ALICE)
    assert listing.json()["total"] == 2
    assert {n["id"] for n in listing.json()["list"]} >= {first.id}
    assert any(n["metadata"] == {"taskId": "t1"} for n in listing.json()["list"])

    marked = await client.post("/api/notifications/mark-read", json={"notification_id": first.id}, headers=ALICE)
    assert marked.json() == {"updated": 1}
    unread = await client.get("/api/notifications/unread-count", headers=ALICE)
    assert unread.json() == {"count": 1}

    marked_all = await client.post("/api/notifications/mark-read", json={"all": True}, headers=ALICE)
    assert marked_all.json() == {"updated": 1}


@pytest.mark.asyncio
async def test_mark_read_of_foreign_notification(client, notifier):
    foreign = await notifier.create("mallory", "system", "Hi", "body")

    resp = await client.post("/api/notifications/mark-read", json={"notification_id": foreign.id}, headers=ALICE)
    empty = await client.post("/api/notifications/mark-read", json={}, headers=ALICE)

    assert resp.status_code == 404
    assert empty.status_code == 422
