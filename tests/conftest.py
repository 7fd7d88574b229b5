"""
pytest Fixtures for Event Reviews API Tests

Shared fixtures:
- engine / db_session: SQLite in-memory database, rolled back after each test
- client: TestClient whose get_db dependency yields the test session
- users of every role, an event, and reviews in each moderation status

For database tests we use:
- session scope for the engine (expensive to create)
- function scope for sessions (isolation between tests)
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="event-reviews-uploads-")
os.environ["CDN_BASE_URL"] = "http://testserver/uploads"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-at-least-32-characters-long"

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import Event, Review, ReviewStatus, StoredUpload, User, UserRole
from app.services.security import create_access_token, hash_password

# =============================================================================
# DATABASE FIXTURES
# =============================================================================
# SQLite ignores SELECT ... FOR UPDATE; row locking is only exercised on
# PostgreSQL.


@pytest.fixture(scope="session")
def engine():
    """
    Create a SQLite in-memory database engine.

    StaticPool keeps the single connection alive for the whole session,
    otherwise the in-memory database would disappear between connections.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """
    Create a fresh database session for each test.

    The session is bound to a connection inside an outer transaction that
    is rolled back afterwards, so commits made by the code under test never
    leak into other tests.
    """
    TestSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    connection = engine.connect()
    transaction = connection.begin()
    session = TestSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database.

    get_db is overridden so every request uses the test session.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Session cleanup handled by db_session fixture

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# HELPERS
# =============================================================================


def auth_header(user: User) -> dict:
    """Authorization header carrying an access token for the user."""
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


CLEAN_CONTENT = "The sound was excellent and the staff were friendly all night."
SUSPICIOUS_CONTENT = "Decent show overall. Click here for cheaper tickets next year."
ABUSIVE_CONTENT = "The crowd was full of hate, violence and abuse towards everyone."


def _create_user(db: Session, username: str, role: UserRole = UserRole.USER) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        hashed_password=hash_password("SecurePass123"),
        full_name=username.title(),
        role=role.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# =============================================================================
# USER FIXTURES
# =============================================================================


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Regular attendee."""
    return _create_user(db_session, "attendee")


@pytest.fixture
def second_user(db_session: Session) -> User:
    """Another attendee, for ownership scenarios."""
    return _create_user(db_session, "seconduser")


@pytest.fixture
def third_user(db_session: Session) -> User:
    return _create_user(db_session, "thirduser")


@pytest.fixture
def organizer(db_session: Session) -> User:
    """Organizer of sample_event."""
    return _create_user(db_session, "organizer", UserRole.ORGANIZER)


@pytest.fixture
def admin_user(db_session: Session) -> User:
    """Moderator."""
    return _create_user(db_session, "moderator", UserRole.ADMIN)


@pytest.fixture
def inactive_user(db_session: Session) -> User:
    user = _create_user(db_session, "sleeper")
    user.is_active = False
    db_session.commit()
    return user


# =============================================================================
# EVENT / REVIEW FIXTURES
# =============================================================================


@pytest.fixture
def sample_event(db_session: Session, organizer: User) -> Event:
    """An event that took place last week."""
    start = datetime.now(UTC) - timedelta(days=7)
    event = Event(
        name="Jazz Night",
        description="An evening of live jazz.",
        location="Blue Note",
        start_time=start,
        end_time=start + timedelta(hours=3),
        organizer_id=organizer.id,
    )
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event


@pytest.fixture
def make_review(db_session: Session) -> Callable[..., Review]:
    """
    Factory inserting a review directly, bypassing the content screening.

    Usage:
        review = make_review(event, user, rating=5, status=ReviewStatus.PENDING)
    """

    def _make(
        event: Event,
        user: User,
        rating: int = 4,
        status: ReviewStatus = ReviewStatus.APPROVED,
        content: str = CLEAN_CONTENT,
        title: str | None = "Lovely evening",
    ) -> Review:
        review = Review(
            event_id=event.id,
            user_id=user.id,
            rating=rating,
            title=title,
            content=content,
            status=status.value,
            helpful_count=0,
            report_count=0,
        )
        db_session.add(review)
        db_session.commit()
        db_session.refresh(review)
        return review

    return _make


@pytest.fixture
def approved_review(make_review, sample_event: Event, sample_user: User) -> Review:
    return make_review(sample_event, sample_user, rating=4)


@pytest.fixture
def pending_review(make_review, sample_event: Event, second_user: User) -> Review:
    return make_review(
        sample_event,
        second_user,
        rating=2,
        status=ReviewStatus.PENDING,
        content=SUSPICIOUS_CONTENT,
    )


@pytest.fixture
def flagged_review(make_review, sample_event: Event, third_user: User) -> Review:
    return make_review(
        sample_event,
        third_user,
        rating=1,
        status=ReviewStatus.FLAGGED,
        content=ABUSIVE_CONTENT,
    )


@pytest.fixture
def make_upload(db_session: Session) -> Callable[..., StoredUpload]:
    """Factory recording a stored file as uploaded by a user."""

    def _make(owner: User, name: str = "stage.jpg") -> StoredUpload:
        upload = StoredUpload(
            owner_id=owner.id,
            url=f"http://testserver/uploads/{name}",
            type="PHOTO",
            filename=name,
            mime_type="image/jpeg",
            size=2048,
        )
        db_session.add(upload)
        db_session.commit()
        db_session.refresh(upload)
        return upload

    return _make


def attachment_of(upload: StoredUpload) -> dict:
    """Attachment metadata as returned by POST /uploads/files."""
    return {
        "type": upload.type,
        "url": upload.url,
        "filename": upload.filename,
        "mime_type": upload.mime_type,
        "size": upload.size,
    }
