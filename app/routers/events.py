"""
Events Router

CRUD endpoints for reviewable events and their aggregated rating.

Endpoints:
- GET /events - List events (paginated, optional name search)
- POST /events - Create an event (organizers and admins)
- GET /events/{event_id} - Get an event with its rating summary
- PATCH /events/{event_id} - Update an event (organizer or admin)
- DELETE /events/{event_id} - Delete an event and its reviews (organizer or admin)
- GET /events/{event_id}/rating - Aggregated rating statistics
- POST /events/{event_id}/rating/recalculate - Force a recompute (admin)
"""

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from app.config import get_settings
from app.dependencies import (
    ActiveUser,
    AdminUser,
    DbSession,
    OrganizerUser,
    Pagination,
    Storage,
    get_event_or_404,
)
from app.models.attachment import ReviewAttachment
from app.models.event import Event
from app.models.review import Review
from app.schemas.event import EventCreate, EventListResponse, EventResponse, EventUpdate
from app.schemas.review import EventRatingSummary
from app.services.cache import invalidate_event_cache
from app.services.rate_limiter import limiter
from app.services.ratings import get_rating_summary, recalculate_rating
from app.services.reviews import page_count
from app.services.uploads import forget_uploads

logger = logging.getLogger(__name__)

settings = get_settings()

router = APIRouter(
    prefix="/events",
    tags=["Events"],
    responses={
        404: {"description": "Event not found"},
    },
)


def _check_can_edit(event: Event, user) -> None:
    if event.organizer_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the event organizer or an admin can modify this event",
        )


# =============================================================================
# Event CRUD
# =============================================================================


@router.get(
    "",
    response_model=EventListResponse,
    summary="List events",
    description="Paginated list of events, soonest first.",
)
@limiter.limit(settings.rate_limit_default)
def list_events(
    request: Request,
    db: DbSession,
    pagination: Pagination,
    q: str | None = Query(default=None, min_length=1, max_length=100, description="Search in event name"),
    organizer_id: int | None = Query(default=None, ge=1, description="Only events of this organizer"),
) -> EventListResponse:
    stmt = select(Event)
    if q:
        stmt = stmt.where(Event.name.ilike(f"%{q}%"))
    if organizer_id is not None:
        stmt = stmt.where(Event.organizer_id == organizer_id)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

    events = db.execute(
        stmt.options(selectinload(Event.rating))
        .order_by(Event.start_time.asc(), Event.id.asc())
        .offset(pagination.skip)
        .limit(pagination.limit)
    ).scalars().all()

    return EventListResponse(
        items=[EventResponse.model_validate(e) for e in events],
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        pages=page_count(total, pagination.limit),
    )


@router.post(
    "",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an event",
    responses={403: {"description": "Organizer privileges required"}},
)
@limiter.limit(settings.rate_limit_write)
def create_event(
    request: Request,
    event_data: EventCreate,
    db: DbSession,
    current_user: OrganizerUser,
) -> EventResponse:
    event = Event(**event_data.model_dump(), organizer_id=current_user.id)
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info(f"Event {event.id} created by user {current_user.id}")

    return EventResponse.model_validate(event)


@router.get(
    "/{event_id}",
    response_model=EventResponse,
    summary="Get an event",
)
@limiter.limit(settings.rate_limit_default)
def get_event(
    request: Request,
    event_id: int,
    db: DbSession,
) -> EventResponse:
    return EventResponse.model_validate(get_event_or_404(db, event_id))


@router.patch(
    "/{event_id}",
    response_model=EventResponse,
    summary="Update an event",
    responses={403: {"description": "Not the organizer"}},
)
@limiter.limit(settings.rate_limit_write)
def update_event(
    request: Request,
    event_id: int,
    event_data: EventUpdate,
    db: DbSession,
    current_user: ActiveUser,
) -> EventResponse:
    event = get_event_or_404(db, event_id)
    _check_can_edit(event, current_user)

    for field, value in event_data.model_dump(exclude_unset=True).items():
        setattr(event, field, value)

    if event.end_time is not None and event.end_time < event.start_time:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_time must be after start_time",
        )

    db.commit()
    db.refresh(event)
    invalidate_event_cache(event_id)

    return EventResponse.model_validate(event)


@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an event",
    description="Deletes the event with all its reviews, votes, reports and attachments.",
    responses={403: {"description": "Not the organizer"}},
)
@limiter.limit(settings.rate_limit_write)
def delete_event(
    request: Request,
    event_id: int,
    db: DbSession,
    current_user: ActiveUser,
    storage: Storage,
) -> None:
    event = get_event_or_404(db, event_id)
    _check_can_edit(event, current_user)

    urls = db.execute(
        select(ReviewAttachment.url)
        .join(Review, ReviewAttachment.review_id == Review.id)
        .where(Review.event_id == event_id)
    ).scalars().all()

    db.delete(event)
    forget_uploads(db, urls)
    db.commit()
    invalidate_event_cache(event_id)

    logger.info(f"Event {event_id} deleted by user {current_user.id}")

    storage.discard(urls)


# =============================================================================
# Rating
# =============================================================================


@router.get(
    "/{event_id}/rating",
    response_model=EventRatingSummary,
    summary="Get event rating",
    description="Average rating, approved review count and 1-5 distribution.",
)
@limiter.limit(settings.rate_limit_default)
def get_event_rating(
    request: Request,
    event_id: int,
    db: DbSession,
) -> EventRatingSummary:
    get_event_or_404(db, event_id)
    return get_rating_summary(db, event_id)


@router.post(
    "/{event_id}/rating/recalculate",
    response_model=EventRatingSummary,
    summary="Recalculate event rating",
    responses={403: {"description": "Admin privileges required"}},
)
@limiter.limit(settings.rate_limit_write)
def recalculate_event_rating(
    request: Request,
    event_id: int,
    db: DbSession,
    admin: AdminUser,
) -> EventRatingSummary:
    """Rebuild the stored aggregate from the approved reviews."""
    get_event_or_404(db, event_id)
    event_rating = recalculate_rating(db, event_id)
    db.commit()
    db.refresh(event_rating)

    logger.info(f"Rating of event {event_id} recalculated by admin {admin.id}")

    return EventRatingSummary.model_validate(event_rating)
