"""
FastAPI Dependencies Module

Dependencies are reusable components injected into route handlers.
FastAPI's Depends() function manages their lifecycle.

Common Dependency Patterns:
- Database sessions (per-request)
- Authentication (current user, admin check)
- Pagination and review filter parameters
- Lookups that 404 (events)
- File storage provider
"""

from datetime import datetime
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.models.review import ReviewStatus
from app.services.storage import FileStorage, get_storage

if TYPE_CHECKING:
    from app.models.event import Event
    from app.models.user import User

settings = get_settings()

# =============================================================================
# Type Aliases with Annotated
# =============================================================================
# Instead of writing:
#   def list_events(db: Session = Depends(get_db)):
#
# You can write:
#   def list_events(db: DbSession):

DbSession = Annotated[Session, Depends(get_db)]
Storage = Annotated[FileStorage, Depends(get_storage)]


# =============================================================================
# Pagination Parameters
# =============================================================================
class PaginationParams:
    """
    Common pagination parameters for list endpoints.

    - page: Which page to return (1-indexed)
    - limit: How many items per page
    - skip: Calculated offset for database query

    Usage in route:
        @router.get("/events")
        def list_events(db: DbSession, pagination: Pagination):
            stmt = select(Event).offset(pagination.skip).limit(pagination.limit)
    """

    def __init__(
        self,
        page: int = Query(
            default=1,
            ge=1,
            description="Page number (1-indexed)",
            examples=[1, 2, 3],
        ),
        limit: int = Query(
            default=20,
            ge=1,
            le=100,
            description="Number of items per page (max 100)",
            examples=[10, 20, 50],
        ),
    ) -> None:
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        """
        Number of records to skip.

        Page 1 -> skip 0, page 2 -> skip limit, page 3 -> skip 2 * limit
        """
        return (self.page - 1) * self.limit


Pagination = Annotated[PaginationParams, Depends()]


# =============================================================================
# Review Filters
# =============================================================================
class ReviewFilterParams:
    """
    Filter parameters for GET /reviews.

    All parameters are optional and can be combined:
        GET /api/v1/reviews?event_id=3&rating=5&has_attachments=true
    """

    def __init__(
        self,
        event_id: int | None = Query(default=None, ge=1, description="Only reviews of this event"),
        user_id: int | None = Query(default=None, ge=1, description="Only reviews by this user"),
        rating: int | None = Query(default=None, ge=1, le=5, description="Only this star rating"),
        status: ReviewStatus | None = Query(
            default=None,
            description="Moderation status (non-admins only see APPROVED, except their own)",
        ),
        has_attachments: bool | None = Query(
            default=None,
            description="Only reviews with (true) or without (false) attachments",
        ),
        min_date: datetime | None = Query(default=None, description="Created at or after"),
        max_date: datetime | None = Query(default=None, description="Created at or before"),
    ) -> None:
        self.event_id = event_id
        self.user_id = user_id
        self.rating = rating
        self.status = status
        self.has_attachments = has_attachments
        self.min_date = min_date
        self.max_date = max_date


ReviewFilterQuery = Annotated[ReviewFilterParams, Depends()]


# =============================================================================
# Lookups
# =============================================================================
def get_event_or_404(db: Session, event_id: int) -> "Event":
    """Get an event by ID or raise 404."""
    from app.models.event import Event

    event = db.get(Event, event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event with id {event_id} not found",
        )
    return event


# =============================================================================
# JWT Authentication
# =============================================================================
# OAuth2PasswordBearer extracts the token from "Authorization: Bearer <token>"
# and adds the "Authorize" button to Swagger UI.

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"/api/{settings.api_version}/auth/login",
    auto_error=True,
)

# Does not raise when the header is missing
oauth2_scheme_optional = OAuth2PasswordBearer(
    tokenUrl=f"/api/{settings.api_version}/auth/login",
    auto_error=False,
)


def _load_user(db: Session, token: str) -> "User | None":
    from app.models.user import User
    from app.services.security import get_user_id_from_token

    user_id = get_user_id_from_token(token)
    if user_id is None:
        return None

    return db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    """
    Extract and validate the current user from the JWT token.

    Raises:
        HTTPException: 401 if the token is invalid or the user is gone
    """
    user = _load_user(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_active_user(
    current_user=Depends(get_current_user),
):
    """
    Verify the current user is active.

    Raises:
        HTTPException: 403 if the account is inactive
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return current_user


def get_current_admin(
    current_user=Depends(get_current_active_user),
):
    """
    Verify the current user is an admin (moderation endpoints).

    Raises:
        HTTPException: 403 if the user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def get_current_organizer(
    current_user=Depends(get_current_active_user),
):
    """
    Verify the current user may publish events (organizer or admin).

    Raises:
        HTTPException: 403 otherwise
    """
    if not current_user.can_organize:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organizer privileges required",
        )
    return current_user


def get_optional_current_user(
    token: str | None = Depends(oauth2_scheme_optional),
    db: Session = Depends(get_db),
):
    """
    Get the current user if a valid token was sent, None otherwise.

    Used by read endpoints that show more to authors and admins
    (non-approved reviews, the caller's own votes).
    """
    if not token:
        return None

    user = _load_user(db, token)
    if user is None or not user.is_active:
        return None
    return user


# Type aliases for cleaner route signatures
ActiveUser = Annotated["User", Depends(get_current_active_user)]
AdminUser = Annotated["User", Depends(get_current_admin)]
OrganizerUser = Annotated["User", Depends(get_current_organizer)]
OptionalUser = Annotated["User | None", Depends(get_optional_current_user)]
