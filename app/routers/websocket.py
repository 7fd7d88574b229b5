"""
WebSocket Router

Handles WebSocket connections for real-time review notifications.

Endpoints:
- /ws/{channel}: Subscribe to a channel for real-time updates
- /ws/stats: Connection statistics

Channels:
- "reviews": Newly published reviews
- "event:{id}": Newly published reviews of one event
- "user:{id}": Private notifications (organizer: new reviews, author:
  moderation outcome). Requires auth as that user.
- "moderation": Flagged and heavily reported reviews. Admins only.

Authentication:
- Pass JWT token as query parameter: /ws/moderation?token=<jwt>
- Or send token in a message: {"type": "auth", "token": "<jwt>"}
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.security import get_user_id_from_token
from app.services.websocket import ConnectionManager, get_connection_manager

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["WebSocket"],
)


def get_user_from_token(db: Session, token: str | None) -> User | None:
    """
    Get an active user from a JWT access token.

    Returns:
        User if the token is valid, None otherwise
    """
    if not token:
        return None

    user_id = get_user_id_from_token(token)
    if user_id is None:
        return None

    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


@router.websocket("/ws/{channel}")
async def websocket_endpoint(
    websocket: WebSocket,
    channel: str,
    token: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """
    WebSocket endpoint for real-time updates.

    Message format (received):
    ```json
    {
        "type": "review.created",
        "data": {...},
        "timestamp": "2024-01-20T12:00:00+00:00"
    }
    ```

    Message types:
    - review.created (reviews, event:{id})
    - review.received, review.moderated (user:{id})
    - review.flagged, review.reported (moderation)
    """
    manager = get_connection_manager()

    user = get_user_from_token(db, token)
    user_id = user.id if user else None
    is_admin = bool(user and user.is_admin)

    connected = await manager.connect(
        websocket=websocket,
        channel=channel,
        user_id=user_id,
        is_admin=is_admin,
    )

    if not connected:
        # Policy violation: private or admin channel without the right user
        await websocket.close(code=4001, reason="Unauthorized")
        return

    try:
        await websocket.send_json({
            "type": "connected",
            "channel": channel,
            "authenticated": user_id is not None,
            "message": f"Connected to channel '{channel}'",
        })

        while True:
            data = await websocket.receive_json()
            user = await handle_message(websocket, channel, data, user, manager, db)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected from channel '{channel}'")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        manager.disconnect(websocket)


async def handle_message(
    websocket: WebSocket,
    channel: str,
    data: dict[str, Any],
    user: User | None,
    manager: ConnectionManager,
    db: Session,
) -> User | None:
    """
    Handle an incoming WebSocket message.

    Supported message types:
    - auth: Authenticate with token
    - ping: Keep-alive ping
    - subscribe: Subscribe to an additional channel
    - unsubscribe: Leave a channel (other than the connection's own)

    Returns:
        The user the connection is authenticated as after the message
    """
    message_type = data.get("type", "")

    if message_type == "auth":
        authed = get_user_from_token(db, data.get("token"))
        if authed:
            await websocket.send_json({
                "type": "auth_success",
                "user_id": authed.id,
                "message": "Authentication successful",
            })
            return authed

        await websocket.send_json({
            "type": "auth_failed",
            "message": "Invalid or expired token",
        })

    elif message_type == "ping":
        await websocket.send_json({
            "type": "pong",
            "timestamp": data.get("timestamp"),
        })

    elif message_type == "subscribe":
        new_channel = data.get("channel")
        if not new_channel:
            await websocket.send_json({"type": "error", "message": "Missing channel"})
            return user

        subscriber = user
        if data.get("token"):
            subscriber = get_user_from_token(db, data.get("token")) or user

        subscribed = manager.subscribe(
            websocket,
            new_channel,
            user_id=subscriber.id if subscriber else None,
            is_admin=bool(subscriber and subscriber.is_admin),
        )
        if not subscribed:
            await websocket.send_json({
                "type": "subscribe_failed",
                "channel": new_channel,
                "message": "Unauthorized for this channel",
            })
            return user

        await websocket.send_json({
            "type": "subscribed",
            "channel": new_channel,
            "message": f"Subscribed to channel '{new_channel}'",
        })

    elif message_type == "unsubscribe":
        unsub_channel = data.get("channel")
        if unsub_channel and unsub_channel != channel:
            manager.disconnect(websocket, unsub_channel)
            await websocket.send_json({
                "type": "unsubscribed",
                "channel": unsub_channel,
                "message": f"Unsubscribed from channel '{unsub_channel}'",
            })

    else:
        await websocket.send_json({
            "type": "error",
            "message": f"Unknown message type: {message_type}",
        })

    return user


@router.get("/ws/stats", tags=["WebSocket"])
async def get_websocket_stats():
    """
    Get WebSocket connection statistics.

    Returns the number of active connections per channel.
    """
    manager = get_connection_manager()
    return manager.get_stats()
