"""
Review Attachment Model

A photo or video attached to a review. The file itself lives in the
configured storage provider; this row only keeps its public URL and metadata.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.review import Review


class AttachmentType(StrEnum):
    """Kind of media attached to a review."""
    PHOTO = "PHOTO"
    VIDEO = "VIDEO"


class ReviewAttachment(Base):
    """
    Attachment model.

    Table: review_attachments
    """

    __tablename__ = "review_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    review_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="PHOTO or VIDEO",
    )
    url: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Public (CDN) URL of the file",
    )
    thumbnail_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    filename: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Original client filename",
    )
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="File size in bytes",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    review: Mapped["Review"] = relationship("Review", back_populates="attachments")

    def __repr__(self) -> str:
        return f"<ReviewAttachment(id={self.id}, review_id={self.review_id}, type={self.type})>"
