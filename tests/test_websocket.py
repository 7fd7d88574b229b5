"""
WebSocket Tests

Tests for WebSocket functionality including:
- Channel access rules
- Connection and disconnection
- Channel subscriptions
- Message handling
- Authentication
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.models.user import User
from app.services.security import create_access_token
from app.services.websocket import ConnectionManager, can_join_channel

# =============================================================================
# Helper Functions
# =============================================================================


def get_auth_token(user: User) -> str:
    """Generate an auth token for a user."""
    return create_access_token({"sub": str(user.id)})


# =============================================================================
# ConnectionManager Unit Tests
# =============================================================================


class TestChannelAccess:
    """Tests for can_join_channel()."""

    def test_public_channels(self):
        assert can_join_channel("reviews", None)
        assert can_join_channel("event:12", None)

    def test_user_channel_only_for_that_user(self):
        assert can_join_channel("user:5", 5)
        assert not can_join_channel("user:5", 6)
        assert not can_join_channel("user:5", None)

    def test_moderation_channel_for_admins(self):
        assert can_join_channel("moderation", 1, is_admin=True)
        assert not can_join_channel("moderation", 1)
        assert not can_join_channel("moderation", None)


class TestConnectionManager:
    """Unit tests for the ConnectionManager class."""

    def test_initial_state(self):
        manager = ConnectionManager()
        assert manager.get_total_connections() == 0
        assert manager.get_stats()["channels"] == {}

    def test_get_channel_count_empty(self):
        manager = ConnectionManager()
        assert manager.get_channel_count("reviews") == 0

    @pytest.mark.asyncio
    async def test_connect_and_broadcast(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock()

        assert await manager.connect(websocket, "event:1") is True
        sent = await manager.broadcast("event:1", {"type": "review.created"})

        assert sent == 1
        websocket.send_json.assert_awaited_once_with({"type": "review.created"})
        assert manager.get_stats() == {"total_connections": 1, "channels": {"event:1": 1}}

    @pytest.mark.asyncio
    async def test_connect_refused_for_private_channel(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()

        assert await manager.connect(websocket, "user:3", user_id=4) is False
        websocket.accept.assert_not_awaited()
        assert manager.get_total_connections() == 0

    @pytest.mark.asyncio
    async def test_failed_connection_is_dropped(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock(side_effect=RuntimeError("closed"))

        await manager.connect(websocket, "reviews")
        sent = await manager.broadcast("reviews", {"type": "review.created"})

        assert sent == 0
        assert manager.get_channel_count("reviews") == 0

    @pytest.mark.asyncio
    async def test_send_personal(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock()

        await manager.connect(websocket, "user:9", user_id=9)

        assert await manager.send_personal(9, {"type": "review.moderated"}) is True
        assert await manager.send_personal(10, {"type": "review.moderated"}) is False

    @pytest.mark.asyncio
    async def test_disconnect_from_all_channels(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()

        await manager.connect(websocket, "reviews")
        manager.subscribe(websocket, "event:2")
        manager.disconnect(websocket)

        assert manager.get_total_connections() == 0
        assert manager.get_stats()["channels"] == {}


# =============================================================================
# WebSocket Endpoint Tests
# =============================================================================


class TestWebSocketEndpoint:
    """Tests for the WebSocket endpoint."""

    def test_connect_to_reviews_channel(self, client: TestClient):
        with client.websocket_connect("/ws/reviews") as websocket:
            data = websocket.receive_json()
            assert data["type"] == "connected"
            assert data["channel"] == "reviews"
            assert data["authenticated"] is False

    def test_connect_to_event_channel(self, client: TestClient):
        with client.websocket_connect("/ws/event:1") as websocket:
            data = websocket.receive_json()
            assert data["type"] == "connected"
            assert data["channel"] == "event:1"

    def test_ping_pong(self, client: TestClient):
        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "ping", "timestamp": "2024-01-20T12:00:00Z"})

            data = websocket.receive_json()
            assert data["type"] == "pong"
            assert data["timestamp"] == "2024-01-20T12:00:00Z"

    def test_unknown_message_type(self, client: TestClient):
        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "unknown_type"})

            data = websocket.receive_json()
            assert data["type"] == "error"
            assert "Unknown message type" in data["message"]


class TestWebSocketAuthentication:
    """Tests for WebSocket authentication."""

    def test_connect_with_token(self, client: TestClient, sample_user: User):
        token = get_auth_token(sample_user)

        with client.websocket_connect(f"/ws/reviews?token={token}") as websocket:
            data = websocket.receive_json()
            assert data["authenticated"] is True

    def test_connect_with_invalid_token(self, client: TestClient):
        with client.websocket_connect("/ws/reviews?token=invalid_token") as websocket:
            data = websocket.receive_json()
            assert data["type"] == "connected"
            # Invalid token should result in unauthenticated connection
            assert data["authenticated"] is False

    def test_inactive_user_is_anonymous(self, client: TestClient, inactive_user: User):
        token = get_auth_token(inactive_user)

        with client.websocket_connect(f"/ws/reviews?token={token}") as websocket:
            assert websocket.receive_json()["authenticated"] is False

    def test_auth_message(self, client: TestClient, sample_user: User):
        token = get_auth_token(sample_user)

        with client.websocket_connect("/ws/reviews") as websocket:
            data = websocket.receive_json()
            assert data["authenticated"] is False

            websocket.send_json({"type": "auth", "token": token})

            data = websocket.receive_json()
            assert data["type"] == "auth_success"
            assert data["user_id"] == sample_user.id

    def test_auth_message_invalid_token(self, client: TestClient):
        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "auth", "token": "invalid"})

            data = websocket.receive_json()
            assert data["type"] == "auth_failed"


class TestPrivateChannels:
    """Tests for user and moderation channels."""

    def test_connect_to_own_user_channel(self, client: TestClient, sample_user: User):
        token = get_auth_token(sample_user)

        with client.websocket_connect(f"/ws/user:{sample_user.id}?token={token}") as websocket:
            data = websocket.receive_json()
            assert data["channel"] == f"user:{sample_user.id}"
            assert data["authenticated"] is True

    def test_connect_to_user_channel_without_auth(self, client: TestClient, sample_user: User):
        # Rejected with close code 4001
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/user:{sample_user.id}"):
                pass

    def test_connect_to_other_user_channel(
        self, client: TestClient, sample_user: User, second_user: User
    ):
        token = get_auth_token(sample_user)

        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/user:{second_user.id}?token={token}"):
                pass

    def test_admin_joins_moderation_channel(self, client: TestClient, admin_user: User):
        token = get_auth_token(admin_user)

        with client.websocket_connect(f"/ws/moderation?token={token}") as websocket:
            data = websocket.receive_json()
            assert data["type"] == "connected"
            assert data["channel"] == "moderation"

    def test_non_admin_refused_moderation_channel(self, client: TestClient, sample_user: User):
        token = get_auth_token(sample_user)

        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/moderation?token={token}"):
                pass


class TestChannelSubscription:
    """Tests for subscribing to additional channels."""

    def test_subscribe_to_additional_channel(self, client: TestClient):
        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "subscribe", "channel": "event:3"})

            data = websocket.receive_json()
            assert data["type"] == "subscribed"
            assert data["channel"] == "event:3"

    def test_subscribe_without_channel(self, client: TestClient):
        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "subscribe"})

            data = websocket.receive_json()
            assert data["type"] == "error"
            assert data["message"] == "Missing channel"

    def test_unsubscribe_from_channel(self, client: TestClient):
        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "subscribe", "channel": "event:3"})
            websocket.receive_json()

            websocket.send_json({"type": "unsubscribe", "channel": "event:3"})

            data = websocket.receive_json()
            assert data["type"] == "unsubscribed"
            assert data["channel"] == "event:3"

    def test_subscribe_to_private_channel_requires_auth(
        self, client: TestClient, sample_user: User
    ):
        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "subscribe", "channel": f"user:{sample_user.id}"})

            data = websocket.receive_json()
            assert data["type"] == "subscribe_failed"
            assert data["message"] == "Unauthorized for this channel"

    def test_subscribe_after_auth_message(self, client: TestClient, admin_user: User):
        token = get_auth_token(admin_user)

        with client.websocket_connect("/ws/reviews") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "auth", "token": token})
            websocket.receive_json()

            websocket.send_json({"type": "subscribe", "channel": "moderation"})

            data = websocket.receive_json()
            assert data["type"] == "subscribed"
            assert data["channel"] == "moderation"


# =============================================================================
# WebSocket Stats Endpoint Tests
# =============================================================================


class TestWebSocketStats:
    """Tests for the WebSocket stats endpoint."""

    def test_get_stats_endpoint(self, client: TestClient):
        response = client.get("/ws/stats")
        assert response.status_code == 200

        data = response.json()
        assert "total_connections" in data
        assert "channels" in data
