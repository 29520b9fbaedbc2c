"""Tests for the notification WebSocket (TestClient, no lifespan)."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from mediagen.main import app

PATH = "/ws/notifications/user-1"


@pytest.fixture
def pubsub():
    subscription = MagicMock()
    subscription.unsubscribe = AsyncMock()
    subscription.close = AsyncMock()

    async def _listen(_pubsub):
        yield {"type": "notification", "title": "Video ready"}

    with patch("mediagen.services.pubsub.subscribe_user", AsyncMock(return_value=subscription)) as subscribe, \
            patch("mediagen.services.pubsub.listen_pubsub", _listen):
        yield subscribe


@pytest.mark.parametrize("headers", [{}, {"X-User-Id": "mallory"}])
def test_rejects_handshake_for_other_user(pubsub, headers):
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(PATH, headers=headers):
            pass

    assert exc_info.value.code == 1008
    pubsub.assert_not_called()


def test_relays_events_and_answers_ping(pubsub):
    client = TestClient(app)

    with client.websocket_connect(PATH, headers={"X-User-Id": "user-1"}) as ws:
        assert ws.receive_json() == {"type": "notification", "title": "Video ready"}
        ws.send_text("ping")
        assert ws.receive_json() == {"type": "pong"}

    pubsub.assert_awaited_once_with("user-1")
