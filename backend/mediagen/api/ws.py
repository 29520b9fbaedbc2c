"""WebSocket endpoint for realtime user notifications.

Uses Redis Pub/Sub to receive events published by the notifier (from any
process) and relay them to the user's connected browser clients.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from mediagen.config import Settings, get_settings

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/notifications/{user_id}")
async def ws_notifications(ws: WebSocket, user_id: str, settings: Settings = Depends(get_settings)):
    """Relay a user's notification events to the browser.

    1. Rejects the handshake unless the user header names the path's user
    2. Subscribes to the user's Redis Pub/Sub channel
    3. Relays messages from Redis to the WebSocket client
    4. Answers client pings
    """
    if ws.headers.get(settings.USER_ID_HEADER) != user_id:
        logger.warning("WS rejected: user header does not match user=%s", user_id)
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await ws.accept()
    logger.info("WS connected: user=%s", user_id)

    pubsub = None
    listener_task = None
    try:
        from mediagen.services.pubsub import subscribe_user

        pubsub = await subscribe_user(user_id)
        listener_task = asyncio.create_task(_relay_pubsub_to_ws(pubsub, ws, user_id))

        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: user=%s", user_id)
    except Exception as exc:
        logger.warning("WS error for user=%s: %s", user_id, exc)
    finally:
        if listener_task:
            listener_task.cancel()
        if pubsub:
            await pubsub.unsubscribe()
            await pubsub.close()
        # the Redis client itself is a shared singleton from pubsub.py


async def _relay_pubsub_to_ws(pubsub, ws: WebSocket, user_id: str):
    """Background task: read from Redis Pub/Sub and forward to the WebSocket client."""
    try:
        from mediagen.services.pubsub import listen_pubsub

        async for message in listen_pubsub(pubsub):
            try:
                await ws.send_json(message)
            except Exception:
                break  # WebSocket closed
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.warning("Pub/Sub relay error for user=%s: %s", user_id, exc)
