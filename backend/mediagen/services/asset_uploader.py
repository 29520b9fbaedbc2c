from __future__ import annotations
"""Background asset uploader — moves provider-hosted media to owned storage.

Flow per migration job:
1. Download every provider URL (retry with exponential backoff)
2. Fingerprint the bytes (sha256) → storage key; skip the put if the key exists
3. Patch task_result: owned URLs become saved_*, provider URLs stay as original_*
4. On any failure, demote the task to processing so the next poll or sweep
   re-evaluates it

Both writes are compare-and-set on the task's result_version: if anything
else wrote the task after the job was scheduled, the job's write is dropped.

Dispatch backends:
- InProcessUploadQueue: asyncio.Queue + worker tasks owned by the app lifespan
- CeleryUploadDispatcher: durable, runs ``mediagen.tasks.asset_tasks.migrate_task_assets``
"""

import asyncio
import hashlib
import logging
import mimetypes
import os
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from urllib.parse import urlparse

import httpx

from mediagen.models.generation_task import GenerationTask, TaskStatus
from mediagen.services.reconciler import AssetMigration
from mediagen.services.storage import ObjectStorage
from mediagen.services.task_store import TaskFilter, TaskStore

logger = logging.getLogger(__name__)

_DEFAULT_EXT = {"video": ".mp4", "image": ".png", "music": ".mp3"}


class AssetUploader:
    """Executes migration jobs. Safe to run twice for the same job."""

    def __init__(
        self,
        store: TaskStore,
        storage: ObjectStorage,
        http_client: httpx.AsyncClient | None = None,
        retries: int = 3,
        timeout: float = 300.0,
        retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._storage = storage
        self._http_client = http_client
        self.retries = retries
        self.timeout = timeout
        self.retry_delay = retry_delay
        self._sleep = sleep

    async def migrate(self, job: AssetMigration) -> bool:
        """Run one job. Returns True if the owned URLs were written."""
        logger.info("Migrating %d asset(s) for task %s", len(job.urls), job.task_id)
        try:
            saved_urls = [await self._transfer(job, url) for url in job.urls]
            saved_last_frame = (
                await self._transfer(job, job.last_frame_url, default_ext=".jpg")
                if job.last_frame_url
                else None
            )
        except Exception as exc:
            logger.error("Asset migration failed for task %s: %s", job.task_id, exc)
            await self._demote(job, exc)
            return False

        task = await self._store.find_by_id(job.task_id)
        if task is None:
            logger.warning("Task %s vanished before migration could be recorded", job.task_id)
            return False

        result = dict(task.task_result or {})
        result["saved_urls"] = saved_urls
        result["saved_url"] = saved_urls[0] if saved_urls else None
        result["original_urls"] = list(job.urls)
        result["original_url"] = job.urls[0] if job.urls else None
        if saved_last_frame:
            result["saved_last_frame_url"] = saved_last_frame
            result["original_last_frame_url"] = job.last_frame_url
        result.pop("upload_pending", None)
        result.pop("upload_error", None)

        applied = await self._store.update_by_id(
            job.task_id, {"task_result": result}, expected_version=job.expected_version
        )
        if applied:
            logger.info("Task %s assets now served from owned storage", job.task_id)
        return applied

    async def _transfer(self, job: AssetMigration, url: str, default_ext: str | None = None) -> str:
        body, content_type = await self._download(url)
        digest = hashlib.sha256(body).hexdigest()
        ext = _guess_extension(url, content_type) or default_ext or _DEFAULT_EXT.get(job.media_kind, "")
        key = f"{job.provider}/{job.media_kind}/{job.task_id}/{digest[:32]}{ext}"

        if await self._storage.exists(key):
            logger.info("Asset %s already stored, skipping upload", key)
            return self._storage.public_url(key)
        return await self._storage.put_object(key, body, content_type)

    async def _download(self, url: str) -> tuple[bytes, str | None]:
        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            client = self._http_client or httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            try:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content, resp.headers.get("content-type")
            except httpx.HTTPError as exc:
                last_error = exc
                logger.warning(
                    "Download attempt %d/%d failed for %s: %s",
                    attempt + 1, self.retries + 1, url[:120], exc,
                )
            finally:
                if self._http_client is None:
                    await client.aclose()
            if attempt < self.retries:
                await self._sleep(self.retry_delay * (2 ** attempt))

        raise RuntimeError(f"download failed after {self.retries + 1} attempts: {last_error}")

    async def _demote(self, job: AssetMigration, exc: Exception) -> None:
        task = await self._store.find_by_id(job.task_id)
        if task is None or task.status != TaskStatus.SUCCESS.value:
            return
        if task.result_version != job.expected_version:
            logger.info("Task %s moved on since migration was scheduled, not demoting", job.task_id)
            return

        result = dict(task.task_result or {})
        result["upload_error"] = str(exc)[:500]
        applied = await self._store.update_by_id(
            job.task_id,
            {"status": TaskStatus.PROCESSING.value, "task_result": result},
            expected_version=job.expected_version,
        )
        if applied:
            logger.warning("Task %s demoted to processing after failed migration", job.task_id)


def _guess_extension(url: str, content_type: str | None) -> str | None:
    ext = os.path.splitext(urlparse(url).path)[1].lower()
    if ext and len(ext) <= 5:
        return ext
    if content_type:
        return mimetypes.guess_extension(content_type.split(";")[0].strip())
    return None


def migration_for_task(task: GenerationTask) -> AssetMigration | None:
    """Rebuild the pending migration job recorded on a task, if any."""
    result = task.task_result or {}
    if not result.get("upload_pending"):
        return None
    urls = result.get("original_urls") or []
    if not urls:
        return None
    return AssetMigration(
        task_id=task.id,
        provider=task.provider,
        media_kind=task.media_kind,
        urls=list(urls),
        last_frame_url=result.get("last_frame_url"),
        expected_version=task.result_version,
    )


# ──────── Dispatchers ────────


class AssetUploadDispatcher(ABC):
    """Hands migration jobs to whatever runs them. Never blocks on the upload."""

    @abstractmethod
    async def schedule(self, job: AssetMigration) -> None:
        ...

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class InProcessUploadQueue(AssetUploadDispatcher):
    """Channel + worker pool inside the API process."""

    def __init__(self, uploader: AssetUploader, workers: int = 2, drain_timeout: float = 30.0) -> None:
        self._uploader = uploader
        self._worker_count = max(1, workers)
        self._drain_timeout = drain_timeout
        self._queue: asyncio.Queue[AssetMigration] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._queued: set[str] = set()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def qsize(self) -> int:
        return self._queue.qsize()

    async def schedule(self, job: AssetMigration) -> None:
        if job.task_id in self._queued:
            logger.info("Migration for task %s already queued", job.task_id)
            return
        self._queued.add(job.task_id)
        self._queue.put_nowait(job)

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"asset-uploader-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Asset upload queue started with %d worker(s)", self._worker_count)

    async def stop(self) -> None:
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Asset upload queue stopped with %d job(s) pending; they will be recovered on startup",
                self._queue.qsize(),
            )
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def join(self) -> None:
        """Wait until every scheduled job has run."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._uploader.migrate(job)
            except Exception:
                logger.exception("Uploader worker %d crashed on task %s", index, job.task_id)
            finally:
                self._queued.discard(job.task_id)
                self._queue.task_done()


class CeleryUploadDispatcher(AssetUploadDispatcher):
    """Durable dispatch through the Celery broker."""

    async def schedule(self, job: AssetMigration) -> None:
        from mediagen.tasks.asset_tasks import migrate_task_assets

        await asyncio.to_thread(migrate_task_assets.delay, job.to_dict())


async def recover_pending_uploads(
    store: TaskStore, dispatcher: AssetUploadDispatcher, limit: int = 200
) -> int:
    """Re-schedule migrations left behind by a restart. Returns the job count."""
    tasks = await store.list(TaskFilter(status=TaskStatus.SUCCESS.value), page=1, limit=limit)
    recovered = 0
    for task in tasks:
        job = migration_for_task(task)
        if job is None:
            continue
        await dispatcher.schedule(job)
        recovered += 1

    if recovered:
        logger.warning("Startup recovery: re-scheduled %d asset migration(s)", recovered)
    else:
        logger.info("Startup recovery: no pending asset migrations")
    return recovered
