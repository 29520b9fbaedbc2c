from __future__ import annotations
"""Query coordinator — at most one provider round-trip per task at a time.

A round-trip is registered in the pending-query table *before* any await,
with an atomic insert-if-absent under a lock. Any caller arriving while a
round-trip is registered gets TaskQueryInProgressError immediately: it does
not wait, retry or write. Since registration happens before the task is
loaded, there is no window between "check" and "register" to re-check.

The round-trip itself runs as its own asyncio.Task and callers await it
through ``asyncio.shield``, so a disconnecting client does not abort the
provider query; it still completes, writes and releases its marker.

The table is per process. In a multi-instance deployment the guarantee
holds per instance only.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from mediagen.models.generation_task import GenerationTask, TaskStatus
from mediagen.services.errors import (
    ProviderError,
    TaskNotFoundError,
    TaskNotQueryableError,
    TaskPermissionError,
    TaskQueryInProgressError,
    TransientProviderError,
)
from mediagen.services.reconciler import AssetMigration, Reconciliation, reconcile
from mediagen.services.task_store import TaskStore

if TYPE_CHECKING:
    from mediagen.services.asset_uploader import AssetUploadDispatcher
    from mediagen.services.notifier import Notifier
    from mediagen.services.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

_IN_FLIGHT = (TaskStatus.PENDING, TaskStatus.PROCESSING)


class QueryCoordinator:
    def __init__(
        self,
        store: TaskStore,
        registry: ProviderRegistry,
        uploader: AssetUploadDispatcher | None = None,
        notifier: Notifier | None = None,
        damping_seconds: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._registry = registry
        self._uploader = uploader
        self._notifier = notifier
        self.damping_seconds = damping_seconds
        self._sleep = sleep

        # task id -> in-flight round-trip
        self._pending: dict[str, asyncio.Task[GenerationTask]] = {}
        self._lock = threading.Lock()

    def is_in_progress(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._pending

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    async def query(self, task_id: str, user_id: str | None = None) -> GenerationTask:
        """Refresh a task from its provider and return the resulting snapshot.

        ``user_id`` is the authenticated owner. ``None`` marks a trusted
        internal caller (the sweeper): no ownership check, no damping.

        Raises:
            TaskQueryInProgressError: another round-trip holds the task.
            TaskNotFoundError / TaskNotQueryableError / TaskPermissionError
            ProviderError: permanent provider failure, nothing written.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if task_id in self._pending:
                logger.info("Task %s query already in progress, rejecting caller", task_id)
                raise TaskQueryInProgressError()
            round_trip = loop.create_task(self._round_trip(task_id, user_id))
            self._pending[task_id] = round_trip
        round_trip.add_done_callback(_consume_exception)

        return await asyncio.shield(round_trip)

    async def _round_trip(self, task_id: str, user_id: str | None) -> GenerationTask:
        try:
            return await self._query_provider(task_id, user_id)
        finally:
            with self._lock:
                self._pending.pop(task_id, None)

    async def _query_provider(self, task_id: str, user_id: str | None) -> GenerationTask:
        task = await self._store.find_by_id(task_id)
        if task is None:
            raise TaskNotFoundError()
        if not task.external_job_id:
            raise TaskNotQueryableError()
        if user_id is not None and task.user_id != user_id:
            logger.warning("User %s denied query on task %s", user_id, task_id)
            raise TaskPermissionError()

        if task.is_terminal:
            # terminal status is final; URL enrichment belongs to the uploader
            return task

        provider = self._registry.get(task.provider)
        try:
            result = await provider.query(task.external_job_id, task.media_kind, task.model)
        except TransientProviderError as exc:
            logger.warning(
                "Task %s: transient provider error, returning stored state: %s", task_id, exc
            )
            return task

        if result.status is None:
            raise ProviderError()

        if user_id is not None and result.status in _IN_FLIGHT:
            await self._sleep(self.damping_seconds)

        rec = reconcile(task, result)
        if not rec.changed:
            logger.debug("Task %s unchanged (%s), skipping write", task_id, task.status)
            return task

        applied = await self._store.update_by_id(
            task.id, rec.patch, expected_version=task.result_version
        )
        if not applied:
            logger.warning("Task %s changed underneath the query, returning fresh state", task_id)
            return await self._store.find_by_id(task_id) or task

        logger.info("Task %s: %s -> %s", task_id, task.status, rec.status)
        _apply(task, rec)

        if rec.migration is not None:
            await self._hand_off(rec.migration)
        if rec.should_notify:
            await self._notify(task, rec.primary_url)

        return task

    async def _hand_off(self, migration: AssetMigration) -> None:
        if self._uploader is None:
            logger.warning("Task %s needs asset migration but no uploader is configured", migration.task_id)
            return
        try:
            await self._uploader.schedule(migration)
            logger.info(
                "Task %s: scheduled migration of %d asset(s)", migration.task_id, len(migration.urls)
            )
        except Exception:
            logger.error("Task %s: failed to schedule asset migration", migration.task_id, exc_info=True)

    async def _notify(self, task: GenerationTask, asset_url: str | None) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_task_complete(task, asset_url)
        except Exception:
            logger.error("Task %s: completion notification failed", task.id, exc_info=True)


def _apply(task: GenerationTask, rec: Reconciliation) -> None:
    """Mirror a successful write onto the detached snapshot."""
    task.status = rec.status
    task.task_info = rec.task_info
    task.task_result = rec.task_result
    task.result_version = task.result_version + 1


def _consume_exception(round_trip: asyncio.Task) -> None:
    # the caller may have gone away; keep asyncio from reporting the error as lost
    if not round_trip.cancelled():
        round_trip.exception()
