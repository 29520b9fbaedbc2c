"""Redis Pub/Sub bridge for realtime user notifications.

The notifier publishes to a per-user channel (from the API process or a
Celery worker). The WebSocket handler subscribes and relays to connected
browser clients.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from mediagen.config import get_settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "mediagen:notifications:"


def user_channel(user_id: str) -> str:
    return f"{CHANNEL_PREFIX}{user_id}"


_async_client: aioredis.Redis | None = None


def _get_async_client() -> aioredis.Redis:
    """Lazy-init a module-level async Redis client (singleton)."""
    global _async_client
    if _async_client is None:
        settings = get_settings()
        _async_client = aioredis.from_url(settings.REDIS_URL)
    return _async_client


async def publish_user_event(user_id: str, message: dict[str, Any]) -> None:
    """Publish an event to a user's channel. Best-effort, never raises."""
    try:
        await _get_async_client().publish(user_channel(user_id), json.dumps(message, default=str))
    except Exception:
        logger.warning("Failed to publish notification for user %s", user_id, exc_info=True)


async def subscribe_user(user_id: str) -> aioredis.client.PubSub:
    """Create an async PubSub subscription for a user's channel.

    Caller closes the pubsub when done, but NOT the shared client.
    """
    pubsub = _get_async_client().pubsub()
    await pubsub.subscribe(user_channel(user_id))
    return pubsub


async def listen_pubsub(pubsub: aioredis.client.PubSub):
    """Async generator that yields parsed messages from a PubSub subscription."""
    async for raw_message in pubsub.listen():
        if raw_message["type"] == "message":
            try:
                yield json.loads(raw_message["data"])
            except (json.JSONDecodeError, TypeError):
                continue
