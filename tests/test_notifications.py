"""
Notification Dispatcher Tests

Tests that review activity reaches the right channels:
- New published review: organizer's private channel, then public channels
- Flagged review and report threshold: moderation channel
- Moderator decision: author's private channel
- The review service schedules these after its writes
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.config import get_settings
from app.models import Event, Review, User
from app.services.notifications import NotificationDispatcher, ReviewNotice
from app.services.realtime import MessageType
from tests.conftest import ABUSIVE_CONTENT, CLEAN_CONTENT, auth_header


@pytest.fixture
def publisher() -> MagicMock:
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=1)
    return publisher


@pytest.fixture
def dispatcher(publisher: MagicMock) -> NotificationDispatcher:
    return NotificationDispatcher(publisher=publisher)


@pytest.fixture
def notice() -> ReviewNotice:
    return ReviewNotice(
        review_id=10,
        event_id=2,
        event_name="Jazz Night",
        organizer_id=7,
        author_id=3,
        rating=5,
        title="Lovely evening",
        status="APPROVED",
    )


def _published(publisher: MagicMock) -> list:
    return [c.args[0] for c in publisher.publish.await_args_list]


class TestReviewNotice:

    def test_from_review(self, approved_review: Review, sample_event: Event, organizer: User):
        notice = ReviewNotice.from_review(approved_review)

        assert notice.review_id == approved_review.id
        assert notice.event_name == "Jazz Night"
        assert notice.organizer_id == organizer.id
        assert notice.author_id == approved_review.user_id
        assert notice.status == "APPROVED"


class TestNotificationDispatcher:

    @pytest.mark.asyncio
    async def test_review_notification(self, dispatcher, publisher, notice):
        await dispatcher.send_review_notification(notice)

        organizer_message, public_message = _published(publisher)
        assert organizer_message.type == MessageType.REVIEW_RECEIVED
        assert organizer_message.channels == ["user:7"]
        assert public_message.type == MessageType.REVIEW_CREATED
        assert public_message.channels == ["reviews", "event:2"]
        assert public_message.data["review_id"] == 10

    @pytest.mark.asyncio
    async def test_moderation_notification(self, dispatcher, publisher, notice):
        await dispatcher.send_moderation_notification(notice)

        (message,) = _published(publisher)
        assert message.type == MessageType.REVIEW_FLAGGED
        assert message.channels == ["moderation"]

    @pytest.mark.asyncio
    async def test_report_below_threshold(self, dispatcher, publisher, notice):
        threshold = get_settings().report_notification_threshold

        sent = await dispatcher.send_report_notification(notice, threshold - 1)

        assert sent is False
        publisher.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_report_at_threshold(self, dispatcher, publisher, notice):
        threshold = get_settings().report_notification_threshold

        sent = await dispatcher.send_report_notification(notice, threshold)

        assert sent is True
        (message,) = _published(publisher)
        assert message.type == MessageType.REVIEW_REPORTED
        assert message.data["report_count"] == threshold

    @pytest.mark.asyncio
    async def test_moderation_result(self, dispatcher, publisher, notice):
        await dispatcher.send_moderation_result_notification(notice, "REJECTED", "Off topic")

        (message,) = _published(publisher)
        assert message.type == MessageType.REVIEW_MODERATED
        assert message.channels == ["user:3"]
        assert message.data["status"] == "REJECTED"
        assert message.data["reason"] == "Off topic"


class TestScheduledNotifications:
    """The review service hands notices to the dispatcher after committing."""

    @pytest.fixture
    def mock_dispatcher(self):
        dispatcher = MagicMock()
        dispatcher.send_review_notification = AsyncMock()
        dispatcher.send_moderation_notification = AsyncMock()
        dispatcher.send_report_notification = AsyncMock(return_value=False)
        dispatcher.send_moderation_result_notification = AsyncMock()
        with patch(
            "app.services.reviews.get_notification_dispatcher",
            return_value=dispatcher,
        ):
            yield dispatcher

    def test_published_review_notifies_organizer(
        self,
        client: TestClient,
        mock_dispatcher,
        sample_event: Event,
        sample_user: User,
    ):
        client.post(
            f"/api/v1/events/{sample_event.id}/reviews",
            json={"rating": 5, "content": CLEAN_CONTENT},
            headers=auth_header(sample_user),
        )

        mock_dispatcher.send_review_notification.assert_called_once()
        notice = mock_dispatcher.send_review_notification.call_args.args[0]
        assert notice.event_id == sample_event.id
        mock_dispatcher.send_moderation_notification.assert_not_called()

    def test_flagged_review_alerts_moderators(
        self,
        client: TestClient,
        mock_dispatcher,
        sample_event: Event,
        sample_user: User,
    ):
        client.post(
            f"/api/v1/events/{sample_event.id}/reviews",
            json={"rating": 1, "content": ABUSIVE_CONTENT},
            headers=auth_header(sample_user),
        )

        mock_dispatcher.send_moderation_notification.assert_called_once()
        mock_dispatcher.send_review_notification.assert_not_called()

    def test_report_passes_count(
        self,
        client: TestClient,
        mock_dispatcher,
        approved_review: Review,
        second_user: User,
    ):
        client.post(
            f"/api/v1/reviews/{approved_review.id}/report",
            json={"reason": "SPAM"},
            headers=auth_header(second_user),
        )

        mock_dispatcher.send_report_notification.assert_called_once()
        assert mock_dispatcher.send_report_notification.call_args.args[1] == 1

    def test_moderation_tells_author(
        self,
        client: TestClient,
        mock_dispatcher,
        pending_review: Review,
        admin_user: User,
    ):
        client.post(
            f"/api/v1/reviews/{pending_review.id}/moderate",
            json={"status": "APPROVED"},
            headers=auth_header(admin_user),
        )

        mock_dispatcher.send_moderation_result_notification.assert_called_once()
        args = mock_dispatcher.send_moderation_result_notification.call_args.args
        assert args[1] == "APPROVED"
        # Newly approved reviews are also announced
        mock_dispatcher.send_review_notification.assert_called_once()
