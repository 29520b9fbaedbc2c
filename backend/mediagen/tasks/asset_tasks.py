from __future__ import annotations
"""Celery task for durable asset migration (ASSET_UPLOAD_BACKEND=celery).

The job payload is ``AssetMigration.to_dict()``. The uploader itself retries
downloads and demotes the task on failure; Celery retries only cover
infrastructure errors (database or storage unreachable).
"""

import logging

from celery import shared_task

from mediagen.config import get_settings
from mediagen.services.reconciler import AssetMigration
from mediagen.tasks import run_async

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def migrate_task_assets(self, job: dict):
    """Move one task's provider-hosted media into owned storage."""
    from mediagen.dependencies import build_asset_uploader

    migration = AssetMigration.from_dict(job)
    try:
        uploader = build_asset_uploader(get_settings())
        migrated = run_async(uploader.migrate(migration))
        logger.info("Migration for task %s finished (migrated=%s)", migration.task_id, migrated)
        return {"task_id": migration.task_id, "migrated": migrated}
    except Exception as exc:
        logger.error("Migration job for task %s crashed: %s", migration.task_id, exc)
        if self.request.retries >= self.max_retries:
            return {"task_id": migration.task_id, "migrated": False}
        raise self.retry(exc=exc)
