from __future__ import annotations
"""Process-wide service singletons and FastAPI dependencies.

The query coordinator's pending-query table lives on its singleton, so every
request in this process shares one table.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, Request

from mediagen.config import Settings, get_settings
from mediagen.services.asset_uploader import (
    AssetUploader,
    AssetUploadDispatcher,
    CeleryUploadDispatcher,
    InProcessUploadQueue,
)
from mediagen.services.credit_ledger import CreditLedger
from mediagen.services.notifier import Notifier
from mediagen.services.providers.registry import ProviderRegistry, build_registry
from mediagen.services.query_coordinator import QueryCoordinator
from mediagen.services.storage import LocalMediaStorage, ObjectStorage
from mediagen.services.submission import SubmissionService
from mediagen.services.sweeper import ReconciliationSweeper
from mediagen.services.task_store import TaskStore


@lru_cache
def get_task_store() -> TaskStore:
    return TaskStore()


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    return build_registry(get_settings())


@lru_cache
def get_object_storage() -> ObjectStorage:
    settings = get_settings()
    return LocalMediaStorage(root=settings.MEDIA_VOLUME, base_url=settings.MEDIA_BASE_URL)


@lru_cache
def get_credit_ledger() -> CreditLedger:
    return CreditLedger()


@lru_cache
def get_notifier() -> Notifier:
    return Notifier(publish_enabled=get_settings().NOTIFY_PUBSUB_ENABLED)


def build_asset_uploader(settings: Settings) -> AssetUploader:
    return AssetUploader(
        store=get_task_store(),
        storage=get_object_storage(),
        retries=settings.ASSET_DOWNLOAD_RETRIES,
        timeout=settings.ASSET_DOWNLOAD_TIMEOUT,
    )


@lru_cache
def get_upload_dispatcher() -> AssetUploadDispatcher:
    settings = get_settings()
    if settings.ASSET_UPLOAD_BACKEND == "celery":
        return CeleryUploadDispatcher()
    return InProcessUploadQueue(
        build_asset_uploader(settings), workers=settings.ASSET_UPLOAD_WORKERS
    )


@lru_cache
def get_query_coordinator() -> QueryCoordinator:
    settings = get_settings()
    return QueryCoordinator(
        store=get_task_store(),
        registry=get_provider_registry(),
        uploader=get_upload_dispatcher(),
        notifier=get_notifier(),
        damping_seconds=settings.QUERY_DAMPING_SECONDS,
    )


@lru_cache
def get_sweeper() -> ReconciliationSweeper:
    return ReconciliationSweeper(
        store=get_task_store(),
        coordinator=get_query_coordinator(),
        batch_limit=get_settings().SWEEP_BATCH_LIMIT,
    )


@lru_cache
def get_submission_service() -> SubmissionService:
    return SubmissionService(
        store=get_task_store(),
        registry=get_provider_registry(),
        ledger=get_credit_ledger(),
        free_tier_limit=get_settings().FREE_TIER_CREDIT_LIMIT,
    )


# ──────── Request identity ────────


def get_current_user_id(request: Request, settings: Settings = Depends(get_settings)) -> str | None:
    """User id set by the upstream auth gateway, if any."""
    return request.headers.get(settings.USER_ID_HEADER) or None


def require_user_id(user_id: str | None = Depends(get_current_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="no auth, please sign in")
    return user_id
