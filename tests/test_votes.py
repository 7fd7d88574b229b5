"""
Tests for helpful votes: POST /api/v1/reviews/{review_id}/vote

Voting rules:
- First vote is recorded
- The same vote again removes it
- The opposite vote switches it
- helpful_count always equals the number of helpful votes
- Authors cannot vote on their own review; only APPROVED reviews take votes
"""

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import Review, ReviewVote, User
from tests.conftest import auth_header


def _vote(client: TestClient, review: Review, user: User, is_helpful: bool = True):
    return client.post(
        f"/api/v1/reviews/{review.id}/vote",
        json={"is_helpful": is_helpful},
        headers=auth_header(user),
    )


class TestVoteReview:

    def test_cast_helpful_vote(
        self, client: TestClient, approved_review: Review, second_user: User
    ):
        response = _vote(client, approved_review, second_user)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["helpful_count"] == 1
        assert data["user_has_voted"] is True
        assert data["user_vote_is_helpful"] is True

    def test_unhelpful_vote_does_not_count(
        self, client: TestClient, approved_review: Review, second_user: User
    ):
        data = _vote(client, approved_review, second_user, is_helpful=False).json()

        assert data["helpful_count"] == 0
        assert data["user_has_voted"] is True
        assert data["user_vote_is_helpful"] is False

    def test_same_vote_twice_removes_it(
        self,
        client: TestClient,
        db_session: Session,
        approved_review: Review,
        second_user: User,
    ):
        _vote(client, approved_review, second_user)
        data = _vote(client, approved_review, second_user).json()

        assert data["helpful_count"] == 0
        assert data["user_has_voted"] is False
        assert db_session.execute(select(func.count(ReviewVote.id))).scalar_one() == 0

    def test_opposite_vote_switches_it(
        self,
        client: TestClient,
        db_session: Session,
        approved_review: Review,
        second_user: User,
    ):
        _vote(client, approved_review, second_user, is_helpful=True)
        data = _vote(client, approved_review, second_user, is_helpful=False).json()

        assert data["helpful_count"] == 0
        assert data["user_vote_is_helpful"] is False
        assert db_session.execute(select(func.count(ReviewVote.id))).scalar_one() == 1

    def test_count_across_voters(
        self,
        client: TestClient,
        approved_review: Review,
        second_user: User,
        third_user: User,
        admin_user: User,
    ):
        _vote(client, approved_review, second_user, is_helpful=True)
        _vote(client, approved_review, third_user, is_helpful=True)
        data = _vote(client, approved_review, admin_user, is_helpful=False).json()

        assert data["helpful_count"] == 2

    def test_cannot_vote_on_own_review(
        self, client: TestClient, approved_review: Review, sample_user: User
    ):
        response = _vote(client, approved_review, sample_user)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "You cannot vote on your own review"

    def test_cannot_vote_on_pending_review(
        self, client: TestClient, pending_review: Review, sample_user: User
    ):
        response = _vote(client, pending_review, sample_user)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_review(self, client: TestClient, second_user: User):
        response = client.post(
            "/api/v1/reviews/99999/vote",
            json={"is_helpful": True},
            headers=auth_header(second_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_requires_authentication(self, client: TestClient, approved_review: Review):
        response = client.post(
            f"/api/v1/reviews/{approved_review.id}/vote",
            json={"is_helpful": True},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
