"""
Review Model

Represents a user's review of an event: a star rating, text content and
optional media attachments.

Business Rules:
- One review per user per event (unique constraint)
- Rating must be 1-5
- Every review carries a moderation status; only APPROVED reviews are
  public and count towards the event rating
- helpful_count mirrors the number of helpful votes in review_votes
- report_count mirrors the number of rows in review_reports
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.attachment import ReviewAttachment
    from app.models.event import Event
    from app.models.report import ReviewReport
    from app.models.user import User
    from app.models.vote import ReviewVote


class ReviewStatus(StrEnum):
    """
    Moderation status of a review.

    - PENDING: Waiting for a moderator (heuristic was unsure)
    - APPROVED: Public, counted in the event rating
    - REJECTED: Hidden; the author can no longer edit it
    - FLAGGED: Heuristic found likely abuse; prioritised in the queue
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FLAGGED = "FLAGGED"


class Review(Base):
    """
    Review model for event reviews.

    Attributes:
        id: Primary key
        event_id: Foreign key to events table
        user_id: Foreign key to users table (author)
        rating: 1-5 star rating
        title: Optional review title
        content: Review text content
        status: Moderation status (see ReviewStatus)
        moderator_id/moderated_at/moderation_reason: Last human decision
        helpful_count: Number of "helpful" votes
        report_count: Number of abuse reports
        created_at: When the review was created
        updated_at: When the review was last updated
    """

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Review content
    rating: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Rating from 1-5 stars",
    )
    title: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Optional review title",
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Review text content",
    )

    # Moderation fields
    status: Mapped[str] = mapped_column(
        String(20),
        default=ReviewStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="PENDING, APPROVED, REJECTED or FLAGGED",
    )
    moderator_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    moderated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    moderation_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Engagement counters
    helpful_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of helpful votes",
    )
    report_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of abuse reports",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    event: Mapped["Event"] = relationship("Event", back_populates="reviews")
    user: Mapped["User"] = relationship(
        "User",
        back_populates="reviews",
        foreign_keys=[user_id],
    )
    moderator: Mapped["User | None"] = relationship(
        "User",
        foreign_keys=[moderator_id],
    )
    attachments: Mapped[list["ReviewAttachment"]] = relationship(
        "ReviewAttachment",
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="ReviewAttachment.id",
    )
    votes: Mapped[list["ReviewVote"]] = relationship(
        "ReviewVote",
        back_populates="review",
        cascade="all, delete-orphan",
    )
    reports: Mapped[list["ReviewReport"]] = relationship(
        "ReviewReport",
        back_populates="review",
        cascade="all, delete-orphan",
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_review_event_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        CheckConstraint("helpful_count >= 0", name="ck_review_helpful_count"),
        CheckConstraint("report_count >= 0", name="ck_review_report_count"),
    )

    @property
    def is_approved(self) -> bool:
        return self.status == ReviewStatus.APPROVED

    def __repr__(self) -> str:
        return (
            f"<Review(id={self.id}, event_id={self.event_id}, user_id={self.user_id}, "
            f"rating={self.rating}, status={self.status})>"
        )
