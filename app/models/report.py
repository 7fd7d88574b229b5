"""
Review Report Model

Abuse reports filed against reviews. Reports stay PENDING until a moderator
decides on the review: rejecting it resolves them, approving it dismisses them.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.review import Review
    from app.models.user import User


class ReportReason(StrEnum):
    """Why a review was reported."""
    SPAM = "SPAM"
    INAPPROPRIATE = "INAPPROPRIATE"
    FAKE = "FAKE"
    OTHER = "OTHER"


class ReportStatus(StrEnum):
    """Lifecycle of a report."""
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class ReviewReport(Base):
    """
    Report model.

    Table: review_reports
    """

    __tablename__ = "review_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    review_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reporter_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ReportStatus.PENDING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    review: Mapped["Review"] = relationship("Review", back_populates="reports")
    reporter: Mapped["User"] = relationship("User")

    __table_args__ = (
        UniqueConstraint("review_id", "reporter_id", name="uq_report_review_reporter"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReviewReport(id={self.id}, review_id={self.review_id}, "
            f"reason={self.reason}, status={self.status})>"
        )
