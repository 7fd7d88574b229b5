"""
Tests for event rating aggregation.

Covers:
- Average, total and distribution from APPROVED reviews only
- Upsert of the EventRating row
- Rating summary endpoint and admin recalculation
"""

from decimal import Decimal

from unittest.mock import MagicMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError
from app.models import Event, EventRating, ReviewStatus, User
from app.services.ratings import (
    STALE_RATINGS_KEY,
    calculate_aggregate_rating,
    forget_rolled_back_ratings,
    get_rating_summary,
    recalculate_all_event_ratings,
)
from tests.conftest import auth_header


class TestCalculateAggregateRating:
    """Tests for calculate_aggregate_rating()."""

    def test_no_reviews(self, db_session: Session, sample_event: Event):
        event_rating = calculate_aggregate_rating(db_session, sample_event.id)

        assert event_rating.total_reviews == 0
        assert event_rating.average_rating == Decimal("0.00")
        assert event_rating.rating_distribution == {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0}

    def test_counts_only_approved_reviews(
        self,
        db_session: Session,
        sample_event: Event,
        approved_review,
        pending_review,
        flagged_review,
    ):
        event_rating = calculate_aggregate_rating(db_session, sample_event.id)

        assert event_rating.total_reviews == 1
        assert event_rating.average_rating == Decimal("4.00")
        assert event_rating.rating_distribution["4"] == 1
        assert event_rating.rating_distribution["1"] == 0

    def test_average_is_rounded_to_two_places(
        self,
        db_session: Session,
        make_review,
        sample_event: Event,
        sample_user: User,
        second_user: User,
        third_user: User,
    ):
        make_review(sample_event, sample_user, rating=4)
        make_review(sample_event, second_user, rating=5)
        make_review(sample_event, third_user, rating=5)

        event_rating = calculate_aggregate_rating(db_session, sample_event.id)

        assert event_rating.total_reviews == 3
        assert event_rating.average_rating == Decimal("4.67")
        assert event_rating.rating_distribution == {"1": 0, "2": 0, "3": 0, "4": 1, "5": 2}

    def test_updates_existing_row(
        self,
        db_session: Session,
        sample_event: Event,
        approved_review,
    ):
        first = calculate_aggregate_rating(db_session, sample_event.id)

        approved_review.status = ReviewStatus.REJECTED.value
        second = calculate_aggregate_rating(db_session, sample_event.id)

        assert first.id == second.id
        assert second.total_reviews == 0
        assert db_session.query(EventRating).filter_by(event_id=sample_event.id).count() == 1

    def test_unknown_event(self, db_session: Session):
        with pytest.raises(NotFoundError):
            calculate_aggregate_rating(db_session, 99999)

    def test_recalculate_all(
        self,
        db_session: Session,
        sample_event: Event,
        approved_review,
    ):
        assert recalculate_all_event_ratings(db_session) == 1

        summary = get_rating_summary(db_session, sample_event.id)
        assert summary.total_reviews == 1


class TestRatingSummary:
    """Tests for get_rating_summary()."""

    def test_computes_when_missing(
        self,
        db_session: Session,
        sample_event: Event,
        approved_review,
    ):
        summary = get_rating_summary(db_session, sample_event.id)

        assert summary.event_id == sample_event.id
        assert summary.average_rating == 4.0
        assert summary.total_reviews == 1
        assert summary.rating_distribution == {1: 0, 2: 0, 3: 0, 4: 1, 5: 0}
        assert summary.last_calculated_at is not None


class TestCacheInvalidation:
    """The cached summary is dropped after the commit, never before."""

    def test_invalidated_on_commit(
        self, db_session: Session, sample_event: Event, approved_review
    ):
        with patch("app.services.ratings.invalidate_rating_cache") as invalidate:
            calculate_aggregate_rating(db_session, sample_event.id)
            invalidate.assert_not_called()

            db_session.commit()

        invalidate.assert_called_once_with(sample_event.id)
        assert STALE_RATINGS_KEY not in db_session.info

    def test_each_event_invalidated_once(
        self, db_session: Session, sample_event: Event, approved_review
    ):
        with patch("app.services.ratings.invalidate_rating_cache") as invalidate:
            calculate_aggregate_rating(db_session, sample_event.id)
            calculate_aggregate_rating(db_session, sample_event.id)
            db_session.commit()

        invalidate.assert_called_once_with(sample_event.id)

    def test_rollback_forgets_pending_invalidation(self):
        session = MagicMock()
        session.info = {STALE_RATINGS_KEY: {4, 5}}

        forget_rolled_back_ratings(session)

        assert session.info == {}


class TestRatingEndpoints:
    """Tests for /events/{event_id}/rating endpoints."""

    def test_get_rating(self, client: TestClient, sample_event: Event, approved_review):
        response = client.get(f"/api/v1/events/{sample_event.id}/rating")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["event_id"] == sample_event.id
        assert data["average_rating"] == 4.0
        assert data["total_reviews"] == 1
        assert data["rating_distribution"]["4"] == 1

    def test_get_rating_unknown_event(self, client: TestClient):
        response = client.get("/api/v1/events/99999/rating")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_recalculate_requires_admin(
        self, client: TestClient, sample_event: Event, organizer: User
    ):
        response = client.post(
            f"/api/v1/events/{sample_event.id}/rating/recalculate",
            headers=auth_header(organizer),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_recalculate_as_admin(
        self,
        client: TestClient,
        sample_event: Event,
        approved_review,
        admin_user: User,
    ):
        response = client.post(
            f"/api/v1/events/{sample_event.id}/rating/recalculate",
            headers=auth_header(admin_user),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["total_reviews"] == 1
