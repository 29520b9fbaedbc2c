"""Trigger one reconciliation sweep of pending/processing generation tasks.

Run with:
    python3 scripts/sync_pending_tasks.py

Meant for cron / PM2 style schedulers (every 10 minutes) where Celery Beat
is not deployed. Reads APP_URL and CRON_SECRET from the environment or .env.
Exits non-zero if the sweep request fails.
"""

import json
import logging
import os
import sys

import httpx

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from mediagen.config import get_settings  # noqa: E402
from mediagen.tasks.sweep_task import sweep_endpoint_request  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger("sync_pending_tasks")


def main() -> int:
    url, headers = sweep_endpoint_request(get_settings())
    logger.info("Calling %s", url)
    try:
        resp = httpx.get(url, headers=headers, timeout=600.0)
    except httpx.HTTPError as exc:
        logger.error("Sweep request failed: %s", exc)
        return 1

    if resp.status_code != 200:
        logger.error("HTTP %d: %s", resp.status_code, resp.text[:500])
        return 1

    report = resp.json()
    logger.info("Result: %s", json.dumps(report, indent=2))
    logger.info(
        "Processed: %d, Updated: %d, Skipped: %d, Failed: %d",
        report.get("processed", 0), report.get("updated", 0),
        report.get("skipped", 0), report.get("failed", 0),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
