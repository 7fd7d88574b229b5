"""
Review Pydantic Schemas

Schemas for event reviews, their attachments, votes, reports and the
aggregated event rating.

Schemas:
- AttachmentCreate / AttachmentResponse: Media attached to a review
- ReviewCreate: Create a new review (optionally with attachment metadata)
- ReviewUpdate: Update an existing review
- ReviewResponse: Full review data for API responses
- ReviewListResponse: Paginated list of reviews
- VoteRequest / ReportRequest / ModerateRequest: Review actions
- EventRatingSummary: Aggregated rating statistics

Business Rules:
- Rating must be 1-5 (validated at schema level)
- Content is required and cannot be blank
- One review per user per event (enforced at database level)
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.attachment import AttachmentType
from app.models.report import ReportReason
from app.models.review import ReviewStatus
from app.schemas.user import UserPublicResponse

ReviewSort = Literal["newest", "oldest", "highest_rated", "lowest_rated", "most_helpful"]


# =============================================================================
# Attachment Schemas
# =============================================================================


class AttachmentBase(BaseModel):
    """Metadata of a file already stored by the upload endpoint."""

    type: AttachmentType = Field(..., description="PHOTO or VIDEO")
    url: str = Field(..., min_length=1, max_length=500, description="Public file URL")
    thumbnail_url: str | None = Field(default=None, max_length=500)
    filename: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100, examples=["image/jpeg"])
    size: int = Field(..., ge=0, description="File size in bytes")


class AttachmentCreate(AttachmentBase):
    pass


class AttachmentResponse(AttachmentBase):
    id: int

    model_config = ConfigDict(from_attributes=True)


class UploadResponse(BaseModel):
    """Files stored by POST /uploads/files, ready to attach to a review."""

    files: list[AttachmentCreate]


# =============================================================================
# Review Schemas
# =============================================================================


class ReviewBase(BaseModel):
    """
    Base schema with shared review fields.

    Contains validation for:
    - Rating (must be 1-5)
    - Title length
    - Content (required, not blank)
    """

    rating: int = Field(
        ...,
        ge=1,
        le=5,
        description="Rating from 1 to 5 stars",
        examples=[4, 5],
    )

    title: str | None = Field(
        default=None,
        max_length=255,
        description="Optional review title/headline",
        examples=["Great atmosphere", "Too crowded"],
    )

    content: str = Field(
        ...,
        min_length=1,
        max_length=5000,
        description="Review text content",
        examples=["The sound was excellent and the staff were friendly."],
    )

    @field_validator("title")
    @classmethod
    def title_must_not_be_empty_if_provided(cls, v: str | None) -> str | None:
        """Blank titles are stored as no title."""
        if v is not None:
            v = v.strip()
            if not v:
                return None
        return v

    @field_validator("content")
    @classmethod
    def content_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Review content must not be blank")
        return v


class ReviewCreate(ReviewBase):
    """
    Schema for creating a new review.

    Example request body:
    {
        "rating": 5,
        "title": "Amazing night!",
        "content": "One of the best concerts I've been to...",
        "attachments": [
            {"type": "PHOTO", "url": "https://cdn.example.com/a.jpg",
             "filename": "a.jpg", "mime_type": "image/jpeg", "size": 20480}
        ]
    }
    """

    attachments: list[AttachmentCreate] = Field(
        default_factory=list,
        description="Files previously stored through /uploads/files",
    )


class ReviewUpdate(BaseModel):
    """
    Schema for updating an existing review.

    All fields are optional for PATCH-style updates.
    """

    rating: int | None = Field(default=None, ge=1, le=5)
    title: str | None = Field(default=None, max_length=255)
    content: str | None = Field(default=None, min_length=1, max_length=5000)

    @field_validator("title")
    @classmethod
    def blank_title_clears_it(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
        return v or None

    @field_validator("content")
    @classmethod
    def content_must_not_be_blank(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("Review content must not be blank")
        return v


class ReviewResponse(BaseModel):
    """
    Schema for review responses.

    Includes:
    - Review data (rating, title, content)
    - Moderation status and counters
    - Nested author info and attachments
    - Whether the current user voted, and how
    """

    id: int = Field(..., description="Unique review identifier")
    event_id: int = Field(..., description="ID of the reviewed event")
    user_id: int = Field(..., description="ID of the author")
    rating: int
    title: str | None = None
    content: str
    status: ReviewStatus
    moderation_reason: str | None = None
    helpful_count: int = Field(default=0, description="Number of helpful votes")
    report_count: int = Field(default=0, description="Number of abuse reports")

    created_at: datetime
    updated_at: datetime

    user: UserPublicResponse = Field(..., description="Author of the review")
    attachments: list[AttachmentResponse] = Field(default_factory=list)

    user_has_voted: bool = Field(default=False, description="Current user voted on this review")
    user_vote_is_helpful: bool | None = Field(
        default=None,
        description="The current user's vote, when they voted",
    )

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "event_id": 42,
                "user_id": 7,
                "rating": 5,
                "title": "Amazing night!",
                "content": "One of the best concerts I've been to...",
                "status": "APPROVED",
                "moderation_reason": None,
                "helpful_count": 12,
                "report_count": 0,
                "created_at": "2024-01-15T10:30:00Z",
                "updated_at": "2024-01-15T10:30:00Z",
                "user": {"id": 7, "username": "jane", "full_name": "Jane Doe", "avatar_url": None},
                "attachments": [],
                "user_has_voted": False,
                "user_vote_is_helpful": None,
            }
        },
    )


class ReviewListResponse(BaseModel):
    """
    Schema for paginated review list responses.

    Includes pagination metadata:
    - total: Total number of matching reviews
    - page: Current page number
    - limit: Number of items per page
    - pages: Total number of pages
    """

    items: list[ReviewResponse] = Field(..., description="Reviews on this page")
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1, le=100)
    pages: int = Field(..., ge=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "items": [],
                "total": 50,
                "page": 1,
                "limit": 20,
                "pages": 3,
            }
        },
    )


# =============================================================================
# Review Actions
# =============================================================================


class VoteRequest(BaseModel):
    """Helpful / unhelpful vote. Repeating a vote removes it."""

    is_helpful: bool = Field(..., description="True for helpful, False for unhelpful")


class ReportRequest(BaseModel):
    """Abuse report for a review."""

    reason: ReportReason = Field(..., description="SPAM, INAPPROPRIATE, FAKE or OTHER")
    description: str | None = Field(default=None, max_length=2000)


class ModerateRequest(BaseModel):
    """Moderator decision on a review."""

    status: ReviewStatus = Field(..., description="New moderation status")
    moderation_reason: str | None = Field(default=None, max_length=2000)


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Aggregation Schemas
# =============================================================================


class EventRatingSummary(BaseModel):
    """
    Aggregated rating statistics for an event.

    Only APPROVED reviews are counted.
    """

    event_id: int = Field(..., description="Event ID")
    average_rating: float = Field(
        ...,
        ge=0,
        le=5,
        description="Average rating (0-5, 0 means no approved reviews)",
    )
    total_reviews: int = Field(..., ge=0, description="Number of approved reviews")
    rating_distribution: dict[int, int] = Field(
        default_factory=lambda: {1: 0, 2: 0, 3: 0, 4: 0, 5: 0},
        description="Count of each rating (1-5)",
    )
    last_calculated_at: datetime | None = None

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "event_id": 42,
                "average_rating": 4.2,
                "total_reviews": 125,
                "rating_distribution": {"1": 5, "2": 10, "3": 20, "4": 40, "5": 50},
                "last_calculated_at": "2024-01-15T10:30:00Z",
            }
        },
    )
