"""
API Routers Package

This package contains FastAPI routers that handle API endpoints.

Router Structure:
- auth.py: /api/v1/auth/* endpoints (registration, login)
- events.py: /api/v1/events/* endpoints (events and their rating)
- reviews.py: /api/v1/events/{id}/reviews and /api/v1/reviews/* endpoints
- uploads.py: /api/v1/uploads/* endpoints (review attachments)
- websocket.py: /ws/* real-time channels

Each router is imported and registered in main.py.
"""

from app.routers.auth import router as auth_router
from app.routers.events import router as events_router
from app.routers.reviews import router as reviews_router
from app.routers.uploads import router as uploads_router
from app.routers.websocket import router as websocket_router

__all__ = [
    "auth_router",
    "events_router",
    "reviews_router",
    "uploads_router",
    "websocket_router",
]
