from __future__ import annotations
"""AI generation task endpoints: submit, query, history, sweep."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from mediagen.config import Settings, get_settings
from mediagen.dependencies import (
    get_current_user_id,
    get_query_coordinator,
    get_submission_service,
    get_sweeper,
    get_task_store,
    require_user_id,
)
from mediagen.models.generation_task import MediaKind, TaskStatus
from mediagen.schemas.task import (
    GenerateRequest,
    SweepResponse,
    TaskListResponse,
    TaskQueryRequest,
    TaskRead,
)
from mediagen.services.errors import TaskNotFoundError, TaskPermissionError
from mediagen.services.query_coordinator import QueryCoordinator
from mediagen.services.submission import SubmissionService
from mediagen.services.sweeper import ReconciliationSweeper
from mediagen.services.task_store import TaskFilter, TaskStore

router = APIRouter()
logger = logging.getLogger(__name__)


def _has_cron_secret(authorization: str | None, settings: Settings) -> bool:
    if not settings.CRON_SECRET:
        return True
    return authorization == f"Bearer {settings.CRON_SECRET}"


@router.post("/generate", response_model=TaskRead, status_code=201)
async def generate(
    data: GenerateRequest,
    user_id: str = Depends(require_user_id),
    service: SubmissionService = Depends(get_submission_service),
):
    """Charge credits, create a task and submit it to the provider."""
    return await service.submit(user_id, data.to_generation_request())


@router.post("/query", response_model=TaskRead)
async def query_task(
    data: TaskQueryRequest,
    user_id: str | None = Depends(get_current_user_id),
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
):
    """Refresh a task from its provider.

    Signed-in users may only query their own tasks and are held for the
    damping interval while the task is still running. Calls without a user
    identity are internal and must carry the cron bearer token.
    """
    if user_id is None and not _has_cron_secret(authorization, settings):
        raise HTTPException(status_code=401, detail="unauthorized")
    return await coordinator.query(data.task_id, user_id=user_id)


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    user_id: str = Depends(require_user_id),
    store: TaskStore = Depends(get_task_store),
    media_kind: MediaKind = Query(default=MediaKind.VIDEO),
    status: TaskStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    """The current user's generation history, newest first."""
    task_filter = TaskFilter(
        user_id=user_id,
        media_kind=media_kind.value,
        status=status.value if status else None,
    )
    tasks = await store.list(task_filter, page=page, limit=limit)
    total = await store.count(task_filter)
    return {
        "list": tasks,
        "total": total,
        "page": page,
        "limit": limit,
        "has_more": page * limit < total,
    }


@router.get("/tasks/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: str,
    user_id: str = Depends(require_user_id),
    store: TaskStore = Depends(get_task_store),
):
    """Stored snapshot of one task; never calls the provider."""
    task = await store.find_by_id(task_id)
    if task is None:
        raise TaskNotFoundError()
    if task.user_id != user_id:
        raise TaskPermissionError()
    return task


@router.get("/sync-pending-tasks", response_model=SweepResponse)
async def sync_pending_tasks(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
    sweeper: ReconciliationSweeper = Depends(get_sweeper),
):
    """Re-drive pending/processing tasks. Called by Celery Beat or cron."""
    if not _has_cron_secret(authorization, settings):
        raise HTTPException(status_code=401, detail="unauthorized")
    report = await sweeper.run()
    return report.to_dict()
