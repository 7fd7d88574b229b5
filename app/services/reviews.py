"""
Review Lifecycle Service

Business logic for reviews: submission, listing, editing, deletion,
helpful votes, abuse reports and moderation.

Transactions:
- Each write runs in the request's single database transaction. The
  rating aggregate is recomputed inside that same transaction before the
  commit, so an event's EventRating never disagrees with its reviews.
- Vote and report counters are recounted from their ledger tables while
  the review row is locked (SELECT ... FOR UPDATE), so concurrent voters
  cannot lose each other's updates.
- Notifications are scheduled as background tasks only after the commit.

Moderation status machine:
- create / edit of title or content: the heuristic picks APPROVED,
  PENDING or FLAGGED
- moderate (admin): any status -> any status
- REJECTED reviews can no longer be edited by their authors
"""

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.config import get_settings
from app.exceptions import (
    ConflictError,
    DuplicateReportError,
    DuplicateReviewError,
    InvalidAttachmentError,
    InvalidReviewStateError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models.event import Event
from app.models.report import ReportStatus, ReviewReport
from app.models.review import Review, ReviewStatus
from app.models.user import User
from app.models.vote import ReviewVote
from app.schemas.review import ReviewCreate, ReviewResponse, ReviewSort, ReviewUpdate
from app.services.moderation import get_initial_status
from app.services.notifications import ReviewNotice, get_notification_dispatcher
from app.services.ratings import update_event_rating
from app.services.storage import FileStorage
from app.services.uploads import claim_uploads, forget_uploads

logger = logging.getLogger(__name__)
settings = get_settings()

# Review.id breaks ties so pagination is stable
SORT_ORDERS = {
    "newest": (Review.created_at.desc(), Review.id.desc()),
    "oldest": (Review.created_at.asc(), Review.id.asc()),
    "highest_rated": (Review.rating.desc(), Review.created_at.desc(), Review.id.desc()),
    "lowest_rated": (Review.rating.asc(), Review.created_at.desc(), Review.id.desc()),
    "most_helpful": (Review.helpful_count.desc(), Review.created_at.desc(), Review.id.desc()),
}

MODERATION_QUEUE_STATUSES = (ReviewStatus.PENDING.value, ReviewStatus.FLAGGED.value)


@dataclass
class ReviewFilters:
    """Optional filters for list_reviews. None means "don't filter"."""

    event_id: int | None = None
    user_id: int | None = None
    rating: int | None = None
    status: ReviewStatus | None = None
    has_attachments: bool | None = None
    min_date: datetime | None = None
    max_date: datetime | None = None


# =============================================================================
# Helpers
# =============================================================================


def _review_query() -> Select:
    return select(Review).options(
        selectinload(Review.user),
        selectinload(Review.attachments),
        selectinload(Review.event),
    )


def _schedule(background_tasks: BackgroundTasks | None, func: Callable, *args: Any) -> None:
    if background_tasks is not None:
        background_tasks.add_task(func, *args)


def _get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    return event


def _lock_review(db: Session, review_id: int) -> Review:
    review = db.execute(
        select(Review).where(Review.id == review_id).with_for_update()
    ).scalar_one_or_none()
    if review is None:
        raise NotFoundError(f"Review {review_id} not found")
    return review


def can_manage(review: Review, user: User) -> bool:
    """Authors and admins may edit or delete a review."""
    return review.user_id == user.id or user.is_admin


def can_view(review: Review, user: User | None) -> bool:
    """Approved reviews are public; others only to their author and admins."""
    if review.is_approved:
        return True
    return user is not None and can_manage(review, user)


def get_review(db: Session, review_id: int) -> Review:
    """Load a review with its author, attachments and event."""
    review = db.execute(
        _review_query().where(Review.id == review_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if review is None:
        raise NotFoundError(f"Review {review_id} not found")
    return review


def get_visible_review(db: Session, review_id: int, user: User | None) -> Review:
    """
    Load a review the user is allowed to see.

    Raises:
        NotFoundError: No such review
        PermissionDeniedError: Review is not approved and the user is
            neither its author nor an admin
    """
    review = get_review(db, review_id)
    if not can_view(review, user):
        raise PermissionDeniedError("You do not have permission to view this review")
    return review


# =============================================================================
# Serialization
# =============================================================================


def get_user_votes(db: Session, user: User | None, review_ids: Sequence[int]) -> dict[int, bool]:
    """Map review id -> is_helpful for the user's votes among review_ids."""
    if user is None or not review_ids:
        return {}

    stmt = select(ReviewVote.review_id, ReviewVote.is_helpful).where(
        ReviewVote.user_id == user.id,
        ReviewVote.review_id.in_(review_ids),
    )
    return {review_id: is_helpful for review_id, is_helpful in db.execute(stmt).all()}


def to_review_responses(
    db: Session,
    reviews: Sequence[Review],
    current_user: User | None,
) -> list[ReviewResponse]:
    """Build API responses, including the current user's vote on each review."""
    votes = get_user_votes(db, current_user, [review.id for review in reviews])

    responses = []
    for review in reviews:
        response = ReviewResponse.model_validate(review)
        if review.id in votes:
            response.user_has_voted = True
            response.user_vote_is_helpful = votes[review.id]
        responses.append(response)
    return responses


def to_review_response(db: Session, review: Review, current_user: User | None) -> ReviewResponse:
    return to_review_responses(db, [review], current_user)[0]


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total > 0 else 0


# =============================================================================
# Create
# =============================================================================


def create_review(
    db: Session,
    event_id: int,
    data: ReviewCreate,
    user: User,
    background_tasks: BackgroundTasks | None = None,
) -> Review:
    """
    Submit a review for an event.

    The moderation heuristic picks the initial status. The review, its
    attachments and the recomputed event rating are committed together.
    The organizer is notified when the review goes live immediately,
    moderators when it was flagged.

    Raises:
        NotFoundError: Event does not exist
        DuplicateReviewError: User already reviewed this event
        InvalidAttachmentError: Too many attachments, or an attachment that
            is not an unused upload of this user
    """
    _get_event(db, event_id)

    existing = db.execute(
        select(Review.id).where(Review.event_id == event_id, Review.user_id == user.id)
    ).first()
    if existing is not None:
        raise DuplicateReviewError("You have already reviewed this event")

    if len(data.attachments) > settings.max_files_per_review:
        raise InvalidAttachmentError(
            f"At most {settings.max_files_per_review} files can be attached"
        )

    status = get_initial_status(data.content, data.title)

    review = Review(
        event_id=event_id,
        user_id=user.id,
        rating=data.rating,
        title=data.title,
        content=data.content,
        status=status.value,
        helpful_count=0,
        report_count=0,
    )
    review.attachments = claim_uploads(db, data.attachments, user)
    db.add(review)

    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateReviewError("You have already reviewed this event")

    update_event_rating(db, event_id)
    db.commit()

    review = get_review(db, review.id)
    logger.info(
        f"Review {review.id} created for event {event_id} by user {user.id} "
        f"(status={review.status}, attachments={len(review.attachments)})"
    )

    notice = ReviewNotice.from_review(review)
    dispatcher = get_notification_dispatcher()
    if status == ReviewStatus.APPROVED:
        _schedule(background_tasks, dispatcher.send_review_notification, notice)
    elif status == ReviewStatus.FLAGGED:
        _schedule(background_tasks, dispatcher.send_moderation_notification, notice)

    return review


# =============================================================================
# Read
# =============================================================================


def list_reviews(
    db: Session,
    filters: ReviewFilters,
    sort: ReviewSort = "newest",
    page: int = 1,
    limit: int = 20,
    current_user: User | None = None,
) -> tuple[list[Review], int]:
    """
    List reviews matching filters.

    Non-admins only see APPROVED reviews, except when listing their own
    reviews (user_id filter equal to their id), where every status is shown.

    Returns:
        (reviews on the requested page, total matching reviews)
    """
    stmt = select(Review)

    is_admin = current_user is not None and current_user.is_admin
    own_reviews = current_user is not None and filters.user_id == current_user.id
    if not (is_admin or own_reviews):
        stmt = stmt.where(Review.status == ReviewStatus.APPROVED)

    if filters.status is not None:
        stmt = stmt.where(Review.status == filters.status)
    if filters.event_id is not None:
        stmt = stmt.where(Review.event_id == filters.event_id)
    if filters.user_id is not None:
        stmt = stmt.where(Review.user_id == filters.user_id)
    if filters.rating is not None:
        stmt = stmt.where(Review.rating == filters.rating)
    if filters.has_attachments is True:
        stmt = stmt.where(Review.attachments.any())
    elif filters.has_attachments is False:
        stmt = stmt.where(~Review.attachments.any())
    if filters.min_date is not None:
        stmt = stmt.where(Review.created_at >= filters.min_date)
    if filters.max_date is not None:
        stmt = stmt.where(Review.created_at <= filters.max_date)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

    stmt = (
        stmt.options(
            selectinload(Review.user),
            selectinload(Review.attachments),
        )
        .order_by(*SORT_ORDERS[sort])
        .offset((page - 1) * limit)
        .limit(limit)
    )
    reviews = list(db.execute(stmt).scalars().all())
    return reviews, total


def get_moderation_queue(
    db: Session,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Review], int]:
    """PENDING and FLAGGED reviews, newest first."""
    base = select(Review).where(Review.status.in_(MODERATION_QUEUE_STATUSES))

    total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()

    stmt = (
        base.options(
            selectinload(Review.user),
            selectinload(Review.attachments),
            selectinload(Review.event),
        )
        .order_by(Review.created_at.desc(), Review.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all()), total


# =============================================================================
# Update / Delete
# =============================================================================


def update_review(
    db: Session,
    review_id: int,
    data: ReviewUpdate,
    user: User,
    background_tasks: BackgroundTasks | None = None,
) -> Review:
    """
    Edit a review's rating, title or content.

    Editing the text re-runs the moderation heuristic; if that changes the
    status, the previous moderator decision is cleared.

    Raises:
        NotFoundError: No such review
        PermissionDeniedError: User is neither the author nor an admin
        InvalidReviewStateError: Review was rejected
    """
    review = _lock_review(db, review_id)

    if not can_manage(review, user):
        raise PermissionDeniedError("You can only edit your own reviews")
    if review.status == ReviewStatus.REJECTED:
        raise InvalidReviewStateError("Rejected reviews cannot be edited")

    old_rating = review.rating
    old_status = review.status

    changes = data.model_dump(exclude_unset=True)
    text_changed = False
    for field_name, value in changes.items():
        if value is None and field_name in ("rating", "content"):
            continue
        setattr(review, field_name, value)
        if field_name in ("title", "content"):
            text_changed = True

    if text_changed:
        new_status = get_initial_status(review.content, review.title)
        if new_status != old_status:
            review.status = new_status.value
            review.moderator_id = None
            review.moderated_at = None
            review.moderation_reason = None

    if review.rating != old_rating or review.status != old_status:
        update_event_rating(db, review.event_id)

    db.commit()

    review = get_review(db, review_id)
    logger.info(f"Review {review_id} updated by user {user.id} (status={review.status})")

    if review.status != old_status:
        notice = ReviewNotice.from_review(review)
        dispatcher = get_notification_dispatcher()
        if review.status == ReviewStatus.FLAGGED:
            _schedule(background_tasks, dispatcher.send_moderation_notification, notice)
        elif review.status == ReviewStatus.APPROVED:
            _schedule(background_tasks, dispatcher.send_review_notification, notice)

    return review


def delete_review(
    db: Session,
    review_id: int,
    user: User,
    storage: FileStorage | None = None,
) -> None:
    """
    Delete a review with its attachments, votes and reports.

    Stored files are removed after the commit. A failed file deletion is
    logged and does not undo the review deletion.
    """
    review = get_review(db, review_id)

    if not can_manage(review, user):
        raise PermissionDeniedError("You can only delete your own reviews")

    event_id = review.event_id
    urls = [attachment.url for attachment in review.attachments]

    db.delete(review)
    forget_uploads(db, urls)
    update_event_rating(db, event_id)
    db.commit()

    logger.info(f"Review {review_id} deleted by user {user.id}")

    if storage is not None:
        storage.discard(urls)


# =============================================================================
# Votes & Reports
# =============================================================================


def vote_review(db: Session, review_id: int, is_helpful: bool, user: User) -> Review:
    """
    Cast, switch or withdraw a helpful vote.

    - no previous vote: the vote is recorded
    - same vote again: the vote is removed
    - opposite vote: the vote is switched

    helpful_count is then recounted from the vote ledger.

    Raises:
        NotFoundError: No such review
        InvalidReviewStateError: Review is not approved, or is the user's own
        ConflictError: A concurrent vote by the same user won the race
    """
    review = _lock_review(db, review_id)

    if not review.is_approved:
        raise InvalidReviewStateError("Only approved reviews can be voted on")
    if review.user_id == user.id:
        raise InvalidReviewStateError("You cannot vote on your own review")

    existing = db.execute(
        select(ReviewVote).where(
            ReviewVote.review_id == review_id,
            ReviewVote.user_id == user.id,
        )
    ).scalar_one_or_none()

    if existing is None:
        db.add(ReviewVote(review_id=review_id, user_id=user.id, is_helpful=is_helpful))
        action = "cast"
    elif existing.is_helpful == is_helpful:
        db.delete(existing)
        action = "removed"
    else:
        existing.is_helpful = is_helpful
        action = "switched"

    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Your vote was changed concurrently, please retry")

    review.helpful_count = db.execute(
        select(func.count(ReviewVote.id)).where(
            ReviewVote.review_id == review_id,
            ReviewVote.is_helpful.is_(True),
        )
    ).scalar_one()
    db.commit()

    logger.info(f"Vote {action} on review {review_id} by user {user.id} (helpful={is_helpful})")
    return get_review(db, review_id)


def report_review(
    db: Session,
    review_id: int,
    reason: str,
    description: str | None,
    user: User,
    background_tasks: BackgroundTasks | None = None,
) -> ReviewReport:
    """
    File an abuse report against an approved review.

    Moderators are alerted once the report count reaches
    REPORT_NOTIFICATION_THRESHOLD.

    Raises:
        NotFoundError: No such review
        PermissionDeniedError: Review is not visible to the user
        InvalidReviewStateError: Review is not approved
        DuplicateReportError: User already reported this review
    """
    review = _lock_review(db, review_id)

    if not can_view(review, user):
        raise PermissionDeniedError("You do not have permission to view this review")
    if not review.is_approved:
        raise InvalidReviewStateError("Only approved reviews can be reported")

    existing = db.execute(
        select(ReviewReport.id).where(
            ReviewReport.review_id == review_id,
            ReviewReport.reporter_id == user.id,
        )
    ).first()
    if existing is not None:
        raise DuplicateReportError("You have already reported this review")

    report = ReviewReport(
        review_id=review_id,
        reporter_id=user.id,
        reason=str(reason),
        description=description,
        status=ReportStatus.PENDING.value,
    )
    db.add(report)

    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateReportError("You have already reported this review")

    review.report_count = db.execute(
        select(func.count(ReviewReport.id)).where(ReviewReport.review_id == review_id)
    ).scalar_one()
    report_count = review.report_count
    db.commit()

    logger.info(
        f"Review {review_id} reported by user {user.id} "
        f"(reason={reason}, total reports={report_count})"
    )

    notice = ReviewNotice.from_review(get_review(db, review_id))
    _schedule(
        background_tasks,
        get_notification_dispatcher().send_report_notification,
        notice,
        report_count,
    )
    return report


# =============================================================================
# Moderation
# =============================================================================


def moderate_review(
    db: Session,
    review_id: int,
    status: ReviewStatus,
    reason: str | None,
    moderator: User,
    background_tasks: BackgroundTasks | None = None,
) -> Review:
    """
    Record a moderator decision.

    The event rating is recomputed when the review enters or leaves
    APPROVED. Pending reports are resolved when the review is rejected and
    dismissed when it is approved. The author is told the outcome.

    Raises:
        PermissionDeniedError: User is not an admin
        NotFoundError: No such review
    """
    if not moderator.is_admin:
        raise PermissionDeniedError("Only admins can moderate reviews")

    review = _lock_review(db, review_id)
    previous_status = ReviewStatus(review.status)
    status = ReviewStatus(status)

    review.status = status.value
    review.moderator_id = moderator.id
    review.moderated_at = datetime.now(UTC)
    review.moderation_reason = reason

    if ReviewStatus.APPROVED in (previous_status, status):
        update_event_rating(db, review.event_id)

    report_outcome = {
        ReviewStatus.REJECTED: ReportStatus.RESOLVED,
        ReviewStatus.APPROVED: ReportStatus.DISMISSED,
    }.get(status)
    if report_outcome is not None:
        db.execute(
            update(ReviewReport)
            .where(
                ReviewReport.review_id == review_id,
                ReviewReport.status == ReportStatus.PENDING.value,
            )
            .values(status=report_outcome.value)
        )

    db.commit()

    review = get_review(db, review_id)
    logger.info(
        f"Review {review_id} moderated by {moderator.id}: "
        f"{previous_status} -> {status}" + (f" ({reason})" if reason else "")
    )

    notice = ReviewNotice.from_review(review)
    dispatcher = get_notification_dispatcher()
    _schedule(
        background_tasks,
        dispatcher.send_moderation_result_notification,
        notice,
        status.value,
        reason,
    )
    if status == ReviewStatus.APPROVED and previous_status != ReviewStatus.APPROVED:
        _schedule(background_tasks, dispatcher.send_review_notification, notice)

    return review
