"""
Real-Time Message Publishing

Publishes review notifications to WebSocket channels.

Features:
- Message types for review lifecycle notifications
- Publish to WebSocket channels via the ConnectionManager
- Optional Redis pub/sub so other server instances can relay messages

Usage:
    from app.services.realtime import Message, MessageType, publisher

    await publisher.publish(
        Message(
            type=MessageType.REVIEW_CREATED,
            data={"review_id": 1, "event_id": 42, "rating": 5},
            channel=["reviews", "event:42"],
        )
    )
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from redis.exceptions import RedisError

from app.services.websocket import get_connection_manager

logger = logging.getLogger(__name__)


# =============================================================================
# Message Types
# =============================================================================


class MessageType(StrEnum):
    """Types of messages that can be published."""

    # Public review events
    REVIEW_CREATED = "review.created"

    # Moderation channel
    REVIEW_FLAGGED = "review.flagged"
    REVIEW_REPORTED = "review.reported"

    # Private user channels
    REVIEW_RECEIVED = "review.received"
    REVIEW_MODERATED = "review.moderated"


@dataclass
class Message:
    """
    A message to be published.

    Attributes:
        type: The message type
        data: Payload
        timestamp: When the message was created
        channel: Target WebSocket channel(s)
        user_id: Recipient for private messages
    """

    type: MessageType
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    channel: str | list[str] | None = None
    user_id: int | None = None

    @property
    def channels(self) -> list[str]:
        if not self.channel:
            return []
        if isinstance(self.channel, list):
            return self.channel
        return [self.channel]

    def to_dict(self) -> dict[str, Any]:
        """Convert message to a JSON-serializable dictionary."""
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "channel": self.channel,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


# =============================================================================
# Publisher
# =============================================================================


class MessagePublisher:
    """
    Publishes messages to WebSocket clients and optionally to Redis.

    The publisher supports:
    - Direct WebSocket broadcasting via ConnectionManager
    - Redis pub/sub for horizontal scaling (multiple server instances)
    """

    def __init__(self, redis_channel: str = "event_reviews_notifications"):
        self._redis_client = None
        self._redis_channel = redis_channel

    def _get_redis_client(self):
        """Get Redis client for pub/sub (lazy initialization)."""
        if self._redis_client is None:
            from app.services.cache import get_redis_client

            self._redis_client = get_redis_client()
        return self._redis_client

    async def publish(self, message: Message) -> int:
        """
        Publish a message to every target channel.

        Returns:
            Number of WebSocket clients the message was sent to
        """
        manager = get_connection_manager()
        total_sent = 0

        payload = message.to_dict()
        for channel in message.channels:
            sent = await manager.broadcast(channel, payload)
            total_sent += sent
            logger.debug(f"Published {message.type.value} to channel '{channel}': {sent} clients")

        self._publish_to_redis(message)
        return total_sent

    def _publish_to_redis(self, message: Message) -> bool:
        """
        Relay the message over Redis pub/sub.

        Other server instances subscribed to the Redis channel broadcast it
        to their own WebSocket clients.
        """
        redis = self._get_redis_client()
        if redis is None:
            return False

        try:
            redis.publish(self._redis_channel, message.to_json())
            logger.debug(f"Published {message.type.value} to Redis channel")
            return True
        except RedisError as e:
            logger.warning(f"Failed to publish to Redis: {e}")
            return False


# =============================================================================
# Global Publisher Instance
# =============================================================================

publisher = MessagePublisher()


def get_publisher() -> MessagePublisher:
    """Get the global message publisher instance."""
    return publisher
