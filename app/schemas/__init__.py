"""
Pydantic Schemas Package

This package contains Pydantic models for request/response validation.

Schema Naming Convention:
- XxxBase: Shared fields between create/update
- XxxCreate: Fields required when creating a new record
- XxxUpdate: Fields allowed when updating (usually all optional)
- XxxResponse: Fields returned in API responses
"""

from app.schemas.user import (
    TokenResponse,
    UserCreate,
    UserPublicResponse,
    UserResponse,
)
from app.schemas.review import (
    AttachmentCreate,
    AttachmentResponse,
    EventRatingSummary,
    MessageResponse,
    ModerateRequest,
    ReportRequest,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewSort,
    ReviewUpdate,
    UploadResponse,
    VoteRequest,
)
from app.schemas.event import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
)

__all__ = [
    # User schemas
    "UserCreate",
    "UserResponse",
    "UserPublicResponse",
    "TokenResponse",
    # Review schemas
    "AttachmentCreate",
    "AttachmentResponse",
    "UploadResponse",
    "ReviewCreate",
    "ReviewUpdate",
    "ReviewResponse",
    "ReviewListResponse",
    "ReviewSort",
    "VoteRequest",
    "ReportRequest",
    "ModerateRequest",
    "MessageResponse",
    "EventRatingSummary",
    # Event schemas
    "EventCreate",
    "EventUpdate",
    "EventResponse",
    "EventListResponse",
]
