from __future__ import annotations
"""Celery Beat task — triggers the reconciliation sweep every SWEEP_INTERVAL_MINUTES.

The sweep runs inside the API process (through the protected endpoint) so it
shares that process's pending-query table with user polls.
"""

import logging

import httpx
from celery import shared_task

from mediagen.config import get_settings

logger = logging.getLogger(__name__)


def sweep_endpoint_request(settings) -> tuple[str, dict[str, str]]:
    url = f"{settings.APP_URL.rstrip('/')}/api/ai/sync-pending-tasks"
    headers = {"Content-Type": "application/json"}
    if settings.CRON_SECRET:
        headers["Authorization"] = f"Bearer {settings.CRON_SECRET}"
    return url, headers


@shared_task(ignore_result=True)
def trigger_pending_task_sweep():
    """Call the sync endpoint and log the sweep report."""
    settings = get_settings()
    url, headers = sweep_endpoint_request(settings)
    try:
        resp = httpx.get(url, headers=headers, timeout=600.0)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Pending task sweep failed: %s", exc)
        return None

    report = resp.json()
    logger.info(
        "Pending task sweep: processed=%s updated=%s skipped=%s failed=%s",
        report.get("processed"), report.get("updated"), report.get("skipped"), report.get("failed"),
    )
    return report
