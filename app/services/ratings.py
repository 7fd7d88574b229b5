"""
Ratings Service

Maintains the denormalized EventRating row of each event:
- average_rating: mean of APPROVED review ratings, rounded to 2 places
- total_reviews: number of APPROVED reviews
- rating_distribution: count per star value, all of 1-5 present

The aggregate is rebuilt in the same transaction as the review write that
changed it. The event row is locked first (SELECT ... FOR UPDATE) so two
concurrent writers for one event recompute one after the other instead of
overwriting each other with stale counts. Functions here flush but never
commit; the request that called them commits once.

The cached summary of a recomputed event is dropped only once the session
commits. Dropping it earlier lets a concurrent reader cache the previous
committed aggregate again.
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import event, func, select
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError
from app.models.event import Event
from app.models.event_rating import EventRating, empty_distribution
from app.models.review import Review, ReviewStatus
from app.schemas.review import EventRatingSummary
from app.services.cache import cache_get, cache_set, invalidate_rating_cache, rating_cache_key

logger = logging.getLogger(__name__)

# Session.info key holding the ids of events whose aggregate changed
STALE_RATINGS_KEY = "stale_rating_events"


@event.listens_for(Session, "after_commit")
def invalidate_committed_ratings(session: Session) -> None:
    for event_id in session.info.pop(STALE_RATINGS_KEY, ()):
        invalidate_rating_cache(event_id)


@event.listens_for(Session, "after_rollback")
def forget_rolled_back_ratings(session: Session) -> None:
    session.info.pop(STALE_RATINGS_KEY, None)


def calculate_aggregate_rating(db: Session, event_id: int) -> EventRating:
    """
    Recompute and store an event's rating aggregate.

    Args:
        db: Database session (the caller's open transaction)
        event_id: ID of the event to update

    Returns:
        The updated (or newly created) EventRating

    Raises:
        NotFoundError: If the event does not exist
    """
    # Pending review changes must be visible to the aggregate query
    db.flush()

    locked = db.execute(
        select(Event).where(Event.id == event_id).with_for_update()
    ).scalar_one_or_none()
    if locked is None:
        raise NotFoundError(f"Event {event_id} not found")

    stmt = (
        select(Review.rating, func.count(Review.id))
        .where(Review.event_id == event_id, Review.status == ReviewStatus.APPROVED)
        .group_by(Review.rating)
    )
    counts = {rating: count for rating, count in db.execute(stmt).all()}

    distribution = empty_distribution()
    for rating, count in counts.items():
        distribution[str(rating)] = count

    total_reviews = sum(counts.values())
    if total_reviews:
        rating_sum = sum(rating * count for rating, count in counts.items())
        average = Decimal(str(round(rating_sum / total_reviews, 2)))
    else:
        average = Decimal("0.00")

    event_rating = db.execute(
        select(EventRating).where(EventRating.event_id == event_id)
    ).scalar_one_or_none()
    if event_rating is None:
        event_rating = EventRating(event_id=event_id)
        db.add(event_rating)

    event_rating.average_rating = average
    event_rating.total_reviews = total_reviews
    event_rating.rating_distribution = distribution
    event_rating.last_calculated_at = datetime.now(UTC)
    db.flush()

    db.info.setdefault(STALE_RATINGS_KEY, set()).add(event_id)
    logger.debug(
        f"Rating recalculated for event {event_id}: "
        f"avg={average} total={total_reviews}"
    )
    return event_rating


def update_event_rating(db: Session, event_id: int) -> EventRating:
    """Recompute after a review write. Used by the review service."""
    return calculate_aggregate_rating(db, event_id)


def recalculate_rating(db: Session, event_id: int) -> EventRating:
    """Forced recompute, used by the admin endpoint."""
    return calculate_aggregate_rating(db, event_id)


def get_rating_summary(db: Session, event_id: int) -> EventRatingSummary:
    """
    Return an event's rating summary.

    Served from Redis when cached. When the event has no stored aggregate
    yet it is computed and committed here.
    """
    key = rating_cache_key(event_id)
    cached = cache_get(key)
    if cached is not None:
        return EventRatingSummary.model_validate(cached)

    event_rating = db.execute(
        select(EventRating).where(EventRating.event_id == event_id)
    ).scalar_one_or_none()
    if event_rating is None:
        event_rating = calculate_aggregate_rating(db, event_id)
        db.commit()

    summary = EventRatingSummary.model_validate(event_rating)
    cache_set(key, summary.model_dump(mode="json"))
    return summary


def recalculate_all_event_ratings(db: Session) -> int:
    """
    Recalculate rating aggregates for all events.

    Useful after data migrations or to repair inconsistencies.

    Returns:
        Number of events updated
    """
    event_ids = db.execute(select(Event.id)).scalars().all()

    for event_id in event_ids:
        calculate_aggregate_rating(db, event_id)

    db.commit()
    logger.info(f"Recalculated ratings for {len(event_ids)} events")
    return len(event_ids)
