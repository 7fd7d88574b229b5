"""
Review Vote Model

Ledger of helpful/unhelpful votes. A user holds at most one vote per review;
casting the same vote again removes it, casting the opposite vote switches it.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.review import Review


class ReviewVote(Base):
    """
    Vote model.

    Table: review_votes
    """

    __tablename__ = "review_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    review_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_helpful: Mapped[bool] = mapped_column(Boolean, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    review: Mapped["Review"] = relationship("Review", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_vote_review_user"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReviewVote(review_id={self.review_id}, user_id={self.user_id}, "
            f"is_helpful={self.is_helpful})>"
        )
