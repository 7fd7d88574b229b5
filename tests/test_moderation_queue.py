"""
Tests for moderator endpoints.

- GET /api/v1/reviews/moderation/queue: PENDING and FLAGGED reviews
- POST /api/v1/reviews/{review_id}/moderate: record a decision

Decisions recompute the event rating when a review enters or leaves
APPROVED, and settle the review's pending reports.
"""

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Event, EventRating, Review, ReviewReport, User
from tests.conftest import auth_header


def _moderate(client: TestClient, review: Review, moderator: User, new_status: str, reason=None):
    return client.post(
        f"/api/v1/reviews/{review.id}/moderate",
        json={"status": new_status, "moderation_reason": reason},
        headers=auth_header(moderator),
    )


def _report_statuses(db: Session, review: Review) -> list[str]:
    return list(
        db.execute(
            select(ReviewReport.status).where(ReviewReport.review_id == review.id)
        ).scalars()
    )


def _total_reviews(db: Session, event: Event) -> int:
    return db.execute(
        select(EventRating.total_reviews).where(EventRating.event_id == event.id)
    ).scalar_one()


class TestModerationQueue:

    def test_lists_pending_and_flagged(
        self,
        client: TestClient,
        admin_user: User,
        approved_review: Review,
        pending_review: Review,
        flagged_review: Review,
    ):
        response = client.get(
            "/api/v1/reviews/moderation/queue",
            headers=auth_header(admin_user),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 2
        assert {r["id"] for r in data["items"]} == {pending_review.id, flagged_review.id}

    def test_requires_admin(self, client: TestClient, organizer: User):
        response = client.get(
            "/api/v1/reviews/moderation/queue",
            headers=auth_header(organizer),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"] == "Admin privileges required"

    def test_requires_authentication(self, client: TestClient):
        response = client.get("/api/v1/reviews/moderation/queue")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestModerateReview:

    def test_approve_pending_review(
        self,
        client: TestClient,
        db_session: Session,
        sample_event: Event,
        admin_user: User,
        approved_review: Review,
        pending_review: Review,
    ):
        response = _moderate(client, pending_review, admin_user, "APPROVED", "Fine after all")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "APPROVED"
        assert data["moderation_reason"] == "Fine after all"

        db_session.refresh(pending_review)
        assert pending_review.moderator_id == admin_user.id
        assert pending_review.moderated_at is not None
        assert _total_reviews(db_session, sample_event) == 2

    def test_flagging_approved_review_lowers_rating(
        self,
        client: TestClient,
        db_session: Session,
        make_review,
        sample_event: Event,
        second_user: User,
        admin_user: User,
        approved_review: Review,
    ):
        make_review(sample_event, second_user, rating=2)

        response = _moderate(client, approved_review, admin_user, "FLAGGED", "Needs a second look")

        assert response.status_code == status.HTTP_200_OK
        assert _total_reviews(db_session, sample_event) == 1
        summary = client.get(f"/api/v1/events/{sample_event.id}/rating").json()
        assert summary["average_rating"] == 2.0
        assert summary["rating_distribution"]["4"] == 0

    def test_reject_resolves_reports(
        self,
        client: TestClient,
        db_session: Session,
        sample_event: Event,
        admin_user: User,
        approved_review: Review,
        second_user: User,
    ):
        client.post(
            f"/api/v1/reviews/{approved_review.id}/report",
            json={"reason": "FAKE"},
            headers=auth_header(second_user),
        )

        response = _moderate(client, approved_review, admin_user, "REJECTED", "Fake review")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "REJECTED"
        assert _report_statuses(db_session, approved_review) == ["RESOLVED"]
        assert _total_reviews(db_session, sample_event) == 0

    def test_approve_dismisses_reports(
        self,
        client: TestClient,
        db_session: Session,
        admin_user: User,
        approved_review: Review,
        second_user: User,
    ):
        client.post(
            f"/api/v1/reviews/{approved_review.id}/report",
            json={"reason": "OTHER"},
            headers=auth_header(second_user),
        )

        _moderate(client, approved_review, admin_user, "APPROVED")

        assert _report_statuses(db_session, approved_review) == ["DISMISSED"]

    def test_rejected_review_leaves_public_listing(
        self,
        client: TestClient,
        sample_event: Event,
        admin_user: User,
        approved_review: Review,
    ):
        _moderate(client, approved_review, admin_user, "REJECTED")

        data = client.get(f"/api/v1/events/{sample_event.id}/reviews").json()
        assert data["total"] == 0

    def test_requires_admin(self, client: TestClient, pending_review: Review, organizer: User):
        response = _moderate(client, pending_review, organizer, "APPROVED")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_invalid_status(self, client: TestClient, pending_review: Review, admin_user: User):
        response = _moderate(client, pending_review, admin_user, "DELETED")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_unknown_review(self, client: TestClient, admin_user: User):
        response = client.post(
            "/api/v1/reviews/99999/moderate",
            json={"status": "APPROVED"},
            headers=auth_header(admin_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
