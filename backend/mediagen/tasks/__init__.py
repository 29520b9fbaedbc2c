"""Celery application: durable asset migration and the periodic sweep trigger."""

import asyncio
import threading

from celery import Celery

from mediagen.config import get_settings

settings = get_settings()

SWEEP_INTERVAL = settings.SWEEP_INTERVAL_MINUTES * 60.0

celery_app = Celery(
    "mediagen",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "mediagen.tasks.asset_tasks",
        "mediagen.tasks.sweep_task",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # a migration job is redelivered if its worker dies mid-upload
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "sync-pending-tasks": {
            "task": "mediagen.tasks.sweep_task.trigger_pending_task_sweep",
            "schedule": SWEEP_INTERVAL,
            # a trigger still queued when the next one fires is useless
            "options": {"expires": SWEEP_INTERVAL},
        },
    },
)

_worker_loops = threading.local()


def run_async(coro):
    """Drive ``coro`` to completion from a synchronous Celery task.

    Each worker thread keeps one event loop for its lifetime, so the async
    engine's pooled connections are only ever used from the loop that
    opened them.
    """
    loop = getattr(_worker_loops, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _worker_loops.loop = loop
    return loop.run_until_complete(coro)
