"""Tests for the Celery tasks (called directly, no broker)."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from mediagen.config import Settings
from mediagen.services.reconciler import AssetMigration
from mediagen.tasks.asset_tasks import migrate_task_assets
from mediagen.tasks.sweep_task import sweep_endpoint_request, trigger_pending_task_sweep


def test_sweep_request_carries_cron_token():
    url, headers = sweep_endpoint_request(Settings(APP_URL="http://api:8000/", CRON_SECRET="s3cret"))

    assert url == "http://api:8000/api/ai/sync-pending-tasks"
    assert headers["Authorization"] == "Bearer s3cret"


def test_sweep_request_without_secret():
    _, headers = sweep_endpoint_request(Settings(CRON_SECRET=""))
    assert "Authorization" not in headers


def test_trigger_sweep_returns_report():
    report = {"message": "Processed 2 tasks", "processed": 2, "updated": 2, "skipped": 0, "failed": 0, "errors": []}
    request = httpx.Request("GET", "http://testserver/api/ai/sync-pending-tasks")
    with patch("mediagen.tasks.sweep_task.httpx.get", return_value=httpx.Response(200, json=report, request=request)):
        assert trigger_pending_task_sweep() == report


def test_trigger_sweep_swallows_http_errors():
    with patch("mediagen.tasks.sweep_task.httpx.get", side_effect=httpx.ConnectError("refused")):
        assert trigger_pending_task_sweep() is None


def test_migrate_task_assets_runs_uploader():
    job = AssetMigration(task_id="t1", provider="volcano", media_kind="video", urls=["https://x/v.mp4"],
                         expected_version=2)
    uploader = MagicMock()
    uploader.migrate = AsyncMock(return_value=True)

    with patch("mediagen.dependencies.build_asset_uploader", return_value=uploader):
        outcome = migrate_task_assets(job.to_dict())

    assert outcome == {"task_id": "t1", "migrated": True}
    assert uploader.migrate.await_args.args[0] == job
