"""
Notification Dispatcher

Tells organizers, moderators and authors about review activity. Every
notification is logged and published over the WebSocket channel system.

Notifications are scheduled as FastAPI background tasks after the database
transaction has committed, so they receive a ReviewNotice snapshot instead
of ORM objects bound to the (by then closed) request session.
"""

import logging
from dataclasses import asdict, dataclass

from app.config import get_settings
from app.models.review import Review
from app.services.realtime import Message, MessagePublisher, MessageType, get_publisher
from app.services.websocket import ChannelType

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class ReviewNotice:
    """Plain snapshot of a review and its event."""

    review_id: int
    event_id: int
    event_name: str
    organizer_id: int
    author_id: int
    rating: int
    title: str | None
    status: str

    @classmethod
    def from_review(cls, review: Review) -> "ReviewNotice":
        return cls(
            review_id=review.id,
            event_id=review.event_id,
            event_name=review.event.name,
            organizer_id=review.event.organizer_id,
            author_id=review.user_id,
            rating=review.rating,
            title=review.title,
            status=str(review.status),
        )


class NotificationDispatcher:
    """Formats notifications and hands them to the message publisher."""

    def __init__(self, publisher: MessagePublisher | None = None):
        self.publisher = publisher or get_publisher()

    async def send_review_notification(self, notice: ReviewNotice) -> None:
        """Announce a newly published review to the organizer and event followers."""
        logger.info(
            f"Notification: new review {notice.review_id} for event "
            f"'{notice.event_name}' by user {notice.author_id}"
        )
        await self.publisher.publish(
            Message(
                type=MessageType.REVIEW_RECEIVED,
                data=asdict(notice),
                channel=f"{ChannelType.USER}:{notice.organizer_id}",
                user_id=notice.organizer_id,
            )
        )
        await self.publisher.publish(
            Message(
                type=MessageType.REVIEW_CREATED,
                data=asdict(notice),
                channel=[ChannelType.REVIEWS.value, f"{ChannelType.EVENT}:{notice.event_id}"],
            )
        )

    async def send_moderation_notification(self, notice: ReviewNotice) -> None:
        """Alert moderators that the heuristic flagged a review."""
        logger.info(
            f"Moderation alert: review {notice.review_id} flagged for event "
            f"'{notice.event_name}'"
        )
        await self.publisher.publish(
            Message(
                type=MessageType.REVIEW_FLAGGED,
                data=asdict(notice),
                channel=ChannelType.MODERATION.value,
            )
        )

    async def send_report_notification(self, notice: ReviewNotice, report_count: int) -> bool:
        """
        Alert moderators once a review has collected enough reports.

        Returns:
            True if the report count reached the threshold and an alert was sent
        """
        threshold = settings.report_notification_threshold
        if report_count < threshold:
            return False

        logger.info(
            f"Report alert: review {notice.review_id} has {report_count} reports "
            f"(threshold: {threshold})"
        )
        await self.publisher.publish(
            Message(
                type=MessageType.REVIEW_REPORTED,
                data={**asdict(notice), "report_count": report_count},
                channel=ChannelType.MODERATION.value,
            )
        )
        return True

    async def send_moderation_result_notification(
        self,
        notice: ReviewNotice,
        status: str,
        reason: str | None = None,
    ) -> None:
        """Tell the author what a moderator decided."""
        suffix = f" - {reason}" if reason else ""
        logger.info(
            f"Review status update: review {notice.review_id} status changed to {status}{suffix}"
        )
        await self.publisher.publish(
            Message(
                type=MessageType.REVIEW_MODERATED,
                data={**asdict(notice), "status": str(status), "reason": reason},
                channel=f"{ChannelType.USER}:{notice.author_id}",
                user_id=notice.author_id,
            )
        )


notification_dispatcher = NotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get the global notification dispatcher."""
    return notification_dispatcher
