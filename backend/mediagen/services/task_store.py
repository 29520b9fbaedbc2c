from __future__ import annotations
"""Task store — durable GenerationTask records.

Every method opens its own short-lived session so callers never hold a DB
connection across provider calls or damping delays.

Usage:
    store = TaskStore()
    task = await store.create(user_id="u1", media_kind="video", ...)
    changed = await store.update_by_id(task.id, {"status": "processing"})
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediagen.database import async_session_factory
from mediagen.models.generation_task import GenerationTask

logger = logging.getLogger(__name__)

# Columns a patch may set; result_version is owned by the store
_PATCHABLE = frozenset({
    "external_job_id",
    "status",
    "task_info",
    "task_result",
    "cost_credits",
    "credit_id",
    "options",
})


@dataclass
class TaskFilter:
    """List/count filter. ``status`` accepts one value or several."""

    user_id: str | None = None
    media_kind: str | None = None
    status: str | Iterable[str] | None = None

    def clauses(self) -> list[Any]:
        clauses: list[Any] = []
        if self.user_id is not None:
            clauses.append(GenerationTask.user_id == self.user_id)
        if self.media_kind is not None:
            clauses.append(GenerationTask.media_kind == self.media_kind)
        if self.status is not None:
            if isinstance(self.status, str):
                clauses.append(GenerationTask.status == self.status)
            else:
                clauses.append(GenerationTask.status.in_(list(self.status)))
        return clauses


class TaskStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session_factory

    async def create(self, **fields: Any) -> GenerationTask:
        task = GenerationTask(**fields)
        async with self._session_factory() as session:
            session.add(task)
            await session.commit()
            await session.refresh(task)
        logger.info(
            "Task created: %s (user=%s, kind=%s, provider=%s)",
            task.id, task.user_id, task.media_kind, task.provider,
        )
        return task

    async def find_by_id(self, task_id: str) -> GenerationTask | None:
        async with self._session_factory() as session:
            return await session.get(GenerationTask, task_id)

    async def update_by_id(
        self,
        task_id: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        """Set the given columns; nothing else changes.

        Bumps ``result_version``. With ``expected_version`` the write only
        applies if the row still carries that version (compare-and-set).
        Returns True if a row was updated.
        """
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValueError(f"Unpatchable task fields: {sorted(unknown)}")

        stmt = (
            update(GenerationTask)
            .where(GenerationTask.id == task_id)
            .values(**patch, result_version=GenerationTask.result_version + 1)
        )
        if expected_version is not None:
            stmt = stmt.where(GenerationTask.result_version == expected_version)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()

        updated = result.rowcount > 0
        if not updated and expected_version is not None:
            logger.info(
                "Task %s update skipped: version moved past %d", task_id, expected_version
            )
        return updated

    async def list(
        self,
        filter: TaskFilter | None = None,
        page: int = 1,
        limit: int = 20,
        oldest_first: bool = False,
    ) -> list[GenerationTask]:
        filter = filter or TaskFilter()
        order = GenerationTask.created_at.asc() if oldest_first else GenerationTask.created_at.desc()
        stmt = (
            select(GenerationTask)
            .where(*filter.clauses())
            .order_by(order, GenerationTask.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count(self, filter: TaskFilter | None = None) -> int:
        filter = filter or TaskFilter()
        stmt = select(func.count()).select_from(GenerationTask).where(*filter.clauses())
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one()
