"""
SQLAlchemy Models Package

This package contains all database models for the Event Reviews API.
Models are SQLAlchemy ORM classes that map to database tables.

Model Relationships:
- User -> Event: One-to-Many (an organizer publishes many events)
- Event -> Review: One-to-Many (one review per user per event)
- Review -> ReviewAttachment / ReviewVote / ReviewReport: One-to-Many
- Event -> EventRating: One-to-One (cached aggregate of approved reviews)
- User -> StoredUpload: One-to-Many (files a user may attach to a review)

Import all models here to:
1. Make them available as: from app.models import Event, Review, User
2. Ensure Alembic discovers them for migrations
3. Provide a single import point for the application
"""

# Import all models so Alembic can discover them
from app.models.user import User, UserRole
from app.models.event import Event
from app.models.review import Review, ReviewStatus
from app.models.attachment import AttachmentType, ReviewAttachment
from app.models.vote import ReviewVote
from app.models.report import ReportReason, ReportStatus, ReviewReport
from app.models.event_rating import EventRating, empty_distribution
from app.models.upload import StoredUpload

# Export all models
__all__ = [
    "User",
    "UserRole",
    "Event",
    "Review",
    "ReviewStatus",
    "ReviewAttachment",
    "AttachmentType",
    "ReviewVote",
    "ReviewReport",
    "ReportReason",
    "ReportStatus",
    "EventRating",
    "empty_distribution",
    "StoredUpload",
]
