"""
Event Rating Model

Denormalized rating statistics for an event, rebuilt from its APPROVED
reviews whenever a write could change them. Listing pages read this row
instead of running AVG/COUNT/GROUP BY over reviews on every request.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.event import Event


def empty_distribution() -> dict[str, int]:
    """Rating histogram with every star value present."""
    return {str(stars): 0 for stars in range(1, 6)}


class EventRating(Base):
    """
    Aggregate rating for one event.

    Table: event_ratings

    rating_distribution is stored as JSON, so its keys are strings
    ("1".."5"); the API schema converts them back to integers.
    """

    __tablename__ = "event_ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    # Numeric(3, 2) = 0.00 .. 9.99, enough for a 1-5 scale
    average_rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2),
        default=Decimal("0.00"),
        nullable=False,
        comment="Mean of approved ratings (0.00 when there are none)",
    )
    total_reviews: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of approved reviews",
    )
    rating_distribution: Mapped[dict[str, int]] = mapped_column(
        JSON,
        default=empty_distribution,
        nullable=False,
    )
    last_calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    event: Mapped["Event"] = relationship("Event", back_populates="rating")

    def __repr__(self) -> str:
        return (
            f"<EventRating(event_id={self.event_id}, average={self.average_rating}, "
            f"total={self.total_reviews})>"
        )
