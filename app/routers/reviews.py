"""
Reviews Router

Endpoints for event reviews, helpful votes, abuse reports and moderation.

Endpoints:
- GET /events/{event_id}/reviews - List approved reviews of an event
- POST /events/{event_id}/reviews - Create a review (JSON, authenticated)
- POST /events/{event_id}/reviews/upload - Create a review with files (multipart)
- GET /reviews - List reviews with filters
- GET /reviews/moderation/queue - PENDING and FLAGGED reviews (admin)
- GET /reviews/{review_id} - Get a specific review
- PATCH /reviews/{review_id} - Update a review (author or admin)
- DELETE /reviews/{review_id} - Delete a review (author or admin)
- POST /reviews/{review_id}/vote - Helpful / unhelpful vote (toggle)
- POST /reviews/{review_id}/report - Report a review
- POST /reviews/{review_id}/moderate - Set moderation status (admin)

Business Rules:
- One review per user per event
- Non-approved reviews are only visible to their author and admins
- Errors raised by the service layer are mapped to HTTP statuses in main.py
"""

import logging

from fastapi import (
    APIRouter,
    BackgroundTasks,
    File,
    Form,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from app.config import get_settings
from app.dependencies import (
    ActiveUser,
    AdminUser,
    DbSession,
    OptionalUser,
    Pagination,
    ReviewFilterQuery,
    Storage,
    get_event_or_404,
)
from app.models.review import ReviewStatus
from app.schemas.review import (
    AttachmentCreate,
    MessageResponse,
    ModerateRequest,
    ReportRequest,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewSort,
    ReviewUpdate,
    VoteRequest,
)
from app.services import reviews as reviews_service
from app.services.rate_limiter import limiter
from app.services.uploads import record_uploads

logger = logging.getLogger(__name__)

settings = get_settings()

# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    tags=["Reviews"],
    responses={
        404: {"description": "Review or event not found"},
    },
)


def _list_response(
    db: DbSession,
    reviews: list,
    total: int,
    pagination: Pagination,
    current_user,
) -> ReviewListResponse:
    return ReviewListResponse(
        items=reviews_service.to_review_responses(db, reviews, current_user),
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        pages=reviews_service.page_count(total, pagination.limit),
    )


# =============================================================================
# Event Review Endpoints
# =============================================================================


@router.get(
    "/events/{event_id}/reviews",
    response_model=ReviewListResponse,
    summary="List reviews for an event",
    description="Paginated approved reviews of an event. Admins see every status.",
)
@limiter.limit(settings.rate_limit_default)
def list_event_reviews(
    request: Request,
    event_id: int,
    db: DbSession,
    pagination: Pagination,
    current_user: OptionalUser,
    sort: ReviewSort = Query(default="newest", description="Sort order"),
    rating: int | None = Query(default=None, ge=1, le=5, description="Only this star rating"),
) -> ReviewListResponse:
    get_event_or_404(db, event_id)

    filters = reviews_service.ReviewFilters(event_id=event_id, rating=rating)
    reviews, total = reviews_service.list_reviews(
        db,
        filters,
        sort=sort,
        page=pagination.page,
        limit=pagination.limit,
        current_user=current_user,
    )
    return _list_response(db, reviews, total, pagination, current_user)


@router.post(
    "/events/{event_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a review",
    responses={
        400: {"description": "Already reviewed this event, or too many attachments"},
        401: {"description": "Not authenticated"},
    },
)
@limiter.limit(settings.rate_limit_write)
def create_review(
    request: Request,
    event_id: int,
    review_data: ReviewCreate,
    db: DbSession,
    current_user: ActiveUser,
    background_tasks: BackgroundTasks,
) -> ReviewResponse:
    """
    Create a review for an event.

    The content is screened on submission: clean reviews are published
    immediately, doubtful ones wait in the moderation queue (PENDING) and
    abusive ones are FLAGGED for moderators.

    Attachments must already be stored through POST /uploads/files.
    """
    review = reviews_service.create_review(
        db, event_id, review_data, current_user, background_tasks
    )
    return reviews_service.to_review_response(db, review, current_user)


@router.post(
    "/events/{event_id}/reviews/upload",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a review with photos or videos",
    responses={
        400: {"description": "Invalid file type or already reviewed"},
        413: {"description": "File or batch too large"},
    },
)
@limiter.limit(settings.rate_limit_write)
def create_review_with_files(
    request: Request,
    event_id: int,
    db: DbSession,
    current_user: ActiveUser,
    storage: Storage,
    background_tasks: BackgroundTasks,
    rating: int = Form(..., ge=1, le=5),
    content: str = Form(..., min_length=1, max_length=5000),
    title: str | None = Form(default=None, max_length=255),
    files: list[UploadFile] = File(default=[]),
) -> ReviewResponse:
    """
    Multipart variant of review creation.

    Files are validated and stored first; if the review is then refused
    (duplicate, unknown event) the stored files are removed again.
    """
    try:
        review_data = ReviewCreate(rating=rating, title=title, content=content)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e

    incoming = storage.read_uploads([upload for upload in files if upload.filename])
    stored = storage.upload_multiple(incoming) if incoming else []
    review_data.attachments = [AttachmentCreate(**f.to_dict()) for f in stored]

    try:
        record_uploads(db, stored, current_user)
        review = reviews_service.create_review(
            db, event_id, review_data, current_user, background_tasks
        )
    except Exception:
        storage.discard(f.url for f in stored)
        raise

    return reviews_service.to_review_response(db, review, current_user)


# =============================================================================
# Review Endpoints
# =============================================================================


@router.get(
    "/reviews",
    response_model=ReviewListResponse,
    summary="List reviews",
    description="Filter reviews by event, author, rating, status, attachments and date range.",
)
@limiter.limit(settings.rate_limit_default)
def list_reviews(
    request: Request,
    db: DbSession,
    pagination: Pagination,
    filters: ReviewFilterQuery,
    current_user: OptionalUser,
    sort: ReviewSort = Query(default="newest", description="Sort order"),
) -> ReviewListResponse:
    review_filters = reviews_service.ReviewFilters(
        event_id=filters.event_id,
        user_id=filters.user_id,
        rating=filters.rating,
        status=filters.status,
        has_attachments=filters.has_attachments,
        min_date=filters.min_date,
        max_date=filters.max_date,
    )
    reviews, total = reviews_service.list_reviews(
        db,
        review_filters,
        sort=sort,
        page=pagination.page,
        limit=pagination.limit,
        current_user=current_user,
    )
    return _list_response(db, reviews, total, pagination, current_user)


# Declared before /reviews/{review_id} so "moderation" is not parsed as an id
@router.get(
    "/reviews/moderation/queue",
    response_model=ReviewListResponse,
    summary="Moderation queue",
    description="PENDING and FLAGGED reviews, newest first. Admin only.",
    responses={403: {"description": "Admin privileges required"}},
)
@limiter.limit(settings.rate_limit_default)
def moderation_queue(
    request: Request,
    db: DbSession,
    pagination: Pagination,
    admin: AdminUser,
) -> ReviewListResponse:
    reviews, total = reviews_service.get_moderation_queue(
        db, page=pagination.page, limit=pagination.limit
    )
    return _list_response(db, reviews, total, pagination, admin)


@router.get(
    "/reviews/{review_id}",
    response_model=ReviewResponse,
    summary="Get a review",
    responses={403: {"description": "Review not visible to this user"}},
)
@limiter.limit(settings.rate_limit_default)
def get_review(
    request: Request,
    review_id: int,
    db: DbSession,
    current_user: OptionalUser,
) -> ReviewResponse:
    review = reviews_service.get_visible_review(db, review_id, current_user)
    return reviews_service.to_review_response(db, review, current_user)


@router.patch(
    "/reviews/{review_id}",
    response_model=ReviewResponse,
    summary="Update a review",
    responses={
        400: {"description": "Review was rejected"},
        403: {"description": "Not the author"},
    },
)
@limiter.limit(settings.rate_limit_write)
def update_review(
    request: Request,
    review_id: int,
    review_data: ReviewUpdate,
    db: DbSession,
    current_user: ActiveUser,
    background_tasks: BackgroundTasks,
) -> ReviewResponse:
    """
    Update rating, title or content.

    Changing the text re-runs the content screening, so an approved review
    may go back to PENDING or FLAGGED.
    """
    review = reviews_service.update_review(
        db, review_id, review_data, current_user, background_tasks
    )
    return reviews_service.to_review_response(db, review, current_user)


@router.delete(
    "/reviews/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a review",
    responses={403: {"description": "Not the author or an admin"}},
)
@limiter.limit(settings.rate_limit_write)
def delete_review(
    request: Request,
    review_id: int,
    db: DbSession,
    current_user: ActiveUser,
    storage: Storage,
) -> None:
    reviews_service.delete_review(db, review_id, current_user, storage)


# =============================================================================
# Review Actions
# =============================================================================


@router.post(
    "/reviews/{review_id}/vote",
    response_model=ReviewResponse,
    summary="Vote a review helpful or unhelpful",
    description="Voting the same way twice removes the vote; voting the other way switches it.",
)
@limiter.limit(settings.rate_limit_write)
def vote_review(
    request: Request,
    review_id: int,
    vote: VoteRequest,
    db: DbSession,
    current_user: ActiveUser,
) -> ReviewResponse:
    review = reviews_service.vote_review(db, review_id, vote.is_helpful, current_user)
    return reviews_service.to_review_response(db, review, current_user)


@router.post(
    "/reviews/{review_id}/report",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report a review",
    responses={400: {"description": "Already reported or review not approved"}},
)
@limiter.limit(settings.rate_limit_write)
def report_review(
    request: Request,
    review_id: int,
    report: ReportRequest,
    db: DbSession,
    current_user: ActiveUser,
    background_tasks: BackgroundTasks,
) -> MessageResponse:
    reviews_service.report_review(
        db,
        review_id,
        report.reason,
        report.description,
        current_user,
        background_tasks,
    )
    return MessageResponse(message="Review reported successfully")


@router.post(
    "/reviews/{review_id}/moderate",
    response_model=ReviewResponse,
    summary="Moderate a review",
    responses={403: {"description": "Admin privileges required"}},
)
@limiter.limit(settings.rate_limit_write)
def moderate_review(
    request: Request,
    review_id: int,
    decision: ModerateRequest,
    db: DbSession,
    admin: AdminUser,
    background_tasks: BackgroundTasks,
) -> ReviewResponse:
    """
    Approve, reject or flag a review.

    The author is notified of the outcome. Rejecting resolves the review's
    pending reports; approving dismisses them.
    """
    review = reviews_service.moderate_review(
        db,
        review_id,
        ReviewStatus(decision.status),
        decision.moderation_reason,
        admin,
        background_tasks,
    )
    return reviews_service.to_review_response(db, review, admin)
