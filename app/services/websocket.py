"""
WebSocket Connection Manager

Manages WebSocket connections for real-time review notifications.

Features:
- Channel-based subscriptions (reviews, event:{id}, user:{id}, moderation)
- Connection tracking per channel
- Broadcast messages to all subscribers
- Access checks for private and admin channels

Usage:
    manager = ConnectionManager()
    await manager.connect(websocket, "reviews")
    await manager.broadcast("reviews", {"type": "review.created", "data": {...}})
    manager.disconnect(websocket, "reviews")
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ChannelType(StrEnum):
    """Types of WebSocket channels."""

    REVIEWS = "reviews"  # All public review events
    EVENT = "event"  # Reviews of one event (event:{id})
    USER = "user"  # Private notifications (user:{id})
    MODERATION = "moderation"  # Flagged/reported reviews, admins only


def can_join_channel(channel: str, user_id: int | None, is_admin: bool = False) -> bool:
    """
    Check whether a (possibly anonymous) user may subscribe to a channel.

    - reviews, event:{id}: anyone
    - user:{id}: only that user
    - moderation: admins only
    """
    if channel == ChannelType.MODERATION:
        return is_admin

    if channel.startswith(f"{ChannelType.USER}:"):
        if user_id is None:
            return False
        return channel.split(":", 1)[1] == str(user_id)

    return True


@dataclass
class Connection:
    """Represents a WebSocket connection with metadata."""

    websocket: WebSocket
    user_id: int | None = None
    authenticated: bool = False
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ConnectionManager:
    """
    Manages WebSocket connections across multiple channels.

    Channels:
    - "reviews": Public channel for newly published reviews
    - "event:{id}": Reviews and rating updates for one event
    - "user:{id}": Private channel (organizer and author notifications)
    - "moderation": Moderator queue alerts
    """

    def __init__(self):
        # channel -> connections
        self.active_connections: dict[str, list[Connection]] = {}
        # websocket -> channels (for cleanup)
        self.websocket_channels: dict[WebSocket, set[str]] = {}

    async def connect(
        self,
        websocket: WebSocket,
        channel: str,
        user_id: int | None = None,
        is_admin: bool = False,
    ) -> bool:
        """
        Accept a WebSocket and subscribe it to a channel.

        Returns:
            True if connected, False if the user may not join the channel
        """
        if not can_join_channel(channel, user_id, is_admin):
            logger.warning(f"Unauthorized attempt to join channel '{channel}' (user_id={user_id})")
            return False

        await websocket.accept()
        self._add_to_channel(websocket, channel, user_id)

        logger.info(
            f"WebSocket connected to channel '{channel}' "
            f"(user_id={user_id}, total in channel={len(self.active_connections[channel])})"
        )
        return True

    def subscribe(
        self,
        websocket: WebSocket,
        channel: str,
        user_id: int | None = None,
        is_admin: bool = False,
    ) -> bool:
        """Add an already accepted WebSocket to another channel."""
        if not can_join_channel(channel, user_id, is_admin):
            return False
        self._add_to_channel(websocket, channel, user_id)
        return True

    def _add_to_channel(self, websocket: WebSocket, channel: str, user_id: int | None) -> None:
        connection = Connection(
            websocket=websocket,
            user_id=user_id,
            authenticated=user_id is not None,
        )
        self.active_connections.setdefault(channel, []).append(connection)
        self.websocket_channels.setdefault(websocket, set()).add(channel)

    def disconnect(self, websocket: WebSocket, channel: str | None = None) -> None:
        """
        Disconnect a WebSocket from a channel or all channels.

        Args:
            websocket: The WebSocket connection
            channel: Specific channel to disconnect from, or None for all
        """
        if channel:
            self._remove_from_channel(websocket, channel)
        else:
            for ch in self.websocket_channels.get(websocket, set()).copy():
                self._remove_from_channel(websocket, ch)

        if websocket in self.websocket_channels:
            if not channel or not self.websocket_channels[websocket]:
                del self.websocket_channels[websocket]

    def _remove_from_channel(self, websocket: WebSocket, channel: str) -> None:
        if channel in self.active_connections:
            self.active_connections[channel] = [
                conn
                for conn in self.active_connections[channel]
                if conn.websocket != websocket
            ]
            if not self.active_connections[channel]:
                del self.active_connections[channel]

        if websocket in self.websocket_channels:
            self.websocket_channels[websocket].discard(channel)

        logger.info(f"WebSocket disconnected from channel '{channel}'")

    async def broadcast(self, channel: str, message: dict[str, Any]) -> int:
        """
        Broadcast a message to all connections in a channel.

        Connections that fail to receive are dropped from the channel.

        Returns:
            Number of connections the message was sent to
        """
        if channel not in self.active_connections:
            return 0

        sent_count = 0
        failed_connections: list[Connection] = []

        for connection in list(self.active_connections[channel]):
            try:
                await connection.websocket.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.warning(f"Failed to send to websocket: {e}")
                failed_connections.append(connection)

        for conn in failed_connections:
            self.disconnect(conn.websocket, channel)

        logger.debug(
            f"Broadcast to channel '{channel}': {sent_count} sent, "
            f"{len(failed_connections)} failed"
        )
        return sent_count

    async def send_personal(self, user_id: int, message: dict[str, Any]) -> bool:
        """
        Send a message to a user's private channel.

        Returns:
            True if at least one of the user's connections received it
        """
        sent = await self.broadcast(f"{ChannelType.USER}:{user_id}", message)
        return sent > 0

    def get_channel_count(self, channel: str) -> int:
        return len(self.active_connections.get(channel, []))

    def get_total_connections(self) -> int:
        return len(self.websocket_channels)

    def get_stats(self) -> dict[str, Any]:
        """Connection statistics for /ws/stats and /health."""
        return {
            "total_connections": self.get_total_connections(),
            "channels": {
                channel: len(connections)
                for channel, connections in self.active_connections.items()
            },
        }


# Global connection manager instance
manager = ConnectionManager()


def get_connection_manager() -> ConnectionManager:
    """Get the global connection manager instance."""
    return manager
