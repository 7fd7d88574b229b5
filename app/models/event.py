"""
Event Model

An event that attendees can review. Each event has at most one EventRating
row holding its aggregated review statistics.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.event_rating import EventRating
    from app.models.review import Review
    from app.models.user import User


class Event(Base):
    """
    Event model.

    Table: events

    Relationships:
    - organizer: Many-to-One with User
    - reviews: One-to-Many with Review (deleted with the event)
    - rating: One-to-One with EventRating (aggregate statistics)
    """

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False,
        comment="Event name"
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Event description"
    )

    location: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Venue or address"
    )

    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        index=True,
        nullable=False,
        comment="When the event starts"
    )

    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the event ends"
    )

    organizer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------
    organizer: Mapped["User"] = relationship("User", back_populates="events")

    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="event",
        cascade="all, delete-orphan",
    )

    rating: Mapped["EventRating | None"] = relationship(
        "EventRating",
        back_populates="event",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"Event(id={self.id}, name='{self.name}')"
