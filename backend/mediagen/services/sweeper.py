from __future__ import annotations
"""Reconciliation sweep — re-drives pending/processing tasks nobody is polling.

Triggered every SWEEP_INTERVAL_MINUTES (Celery Beat or cron hitting the
sync endpoint). Tasks are queried as an internal caller: no ownership
check and no damping delay.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from mediagen.models.generation_task import TaskStatus
from mediagen.services.errors import GenerationError, TaskQueryInProgressError
from mediagen.services.query_coordinator import QueryCoordinator
from mediagen.services.task_store import TaskFilter, TaskStore

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.processed:
            return "No pending or processing tasks found"
        return f"Processed {self.processed} tasks"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["message"] = self.message
        return data


class ReconciliationSweeper:
    def __init__(self, store: TaskStore, coordinator: QueryCoordinator, batch_limit: int = 100) -> None:
        self._store = store
        self._coordinator = coordinator
        self.batch_limit = batch_limit

    async def run(self) -> SweepReport:
        tasks = await self._store.list(
            TaskFilter(status=[TaskStatus.PENDING.value, TaskStatus.PROCESSING.value]),
            page=1,
            limit=self.batch_limit,
            oldest_first=True,
        )
        report = SweepReport(processed=len(tasks))
        if not tasks:
            return report

        logger.info("Sweep: %d task(s) to check", len(tasks))
        for task in tasks:
            if not task.external_job_id:
                logger.warning("Sweep: task %s has no external job id, skipping", task.id)
                report.skipped += 1
                continue
            try:
                await self._coordinator.query(task.id, user_id=None)
                report.updated += 1
            except TaskQueryInProgressError:
                logger.info("Sweep: task %s query already in progress, skipping", task.id)
                report.skipped += 1
            except GenerationError as exc:
                logger.error("Sweep: task %s failed: %s", task.id, exc.message)
                report.failed += 1
                report.errors.append(f"Task {task.id}: {exc.message}")
            except Exception as exc:
                logger.exception("Sweep: task %s crashed", task.id)
                report.failed += 1
                report.errors.append(f"Task {task.id}: {exc}")

        logger.info(
            "Sweep done: processed=%d updated=%d skipped=%d failed=%d",
            report.processed, report.updated, report.skipped, report.failed,
        )
        return report
