# backend/modules/reviews/tests/conftest.py

import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
import uuid

from core.auth import create_access_token
from core.database import Base, enable_sqlite_savepoints, get_db
from core.mixins import utcnow
from modules.establishments.models.establishment_models import Establishment, EstablishmentStatus
from modules.reviews.models.review_models import Review
from modules.reviews.services.quota_service import DatabaseQuotaBackend, QuotaTracker
from modules.reviews.services.review_service import ReviewLifecycleService
from modules.reviews.services.review_store import ReviewStore
from modules.reviews.services.aggregation_service import AggregateMaintainer


PARTNER_ID = "partner-1"
AUTHOR_ID = "user-1"
OTHER_AUTHOR_ID = "user-2"


class FrozenClock:
    """Controllable replacement for the quota tracker's clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def db_engine():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session.

    Objects stay loaded after commit so reading fixture attributes never opens
    a transaction on the connection the request sessions share.
    """
    session = session_factory(expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def make_establishment(db_session: Session):
    """Factory for establishments in any publication status"""
    def _make(status: EstablishmentStatus = EstablishmentStatus.ACTIVE, partner_id: str = PARTNER_ID, name: str = None):
        establishment = Establishment(
            id=uuid.uuid4(),
            partner_id=partner_id,
            name=name or f"Cafe {uuid.uuid4().hex[:6]}",
            status=status,
        )
        db_session.add(establishment)
        db_session.commit()
        return establishment

    return _make


@pytest.fixture
def establishment(make_establishment) -> Establishment:
    return make_establishment()


@pytest.fixture
def make_review(db_session: Session):
    """Insert a review row directly, bypassing the lifecycle"""
    def _make(establishment_id, author_id: str = AUTHOR_ID, rating: int = 4,
              content: str = "Solid food, friendly staff.", created_at: datetime = None,
              is_active: bool = True):
        created_at = created_at or utcnow()
        review = Review(
            id=uuid.uuid4(),
            author_id=author_id,
            establishment_id=establishment_id,
            rating=rating,
            content=content,
            is_active=is_active,
            deleted_at=None if is_active else created_at,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(review)
        db_session.commit()
        return review

    return _make


@pytest.fixture
def clock() -> FrozenClock:
    # 10:00 in Minsk (UTC+3)
    return FrozenClock(datetime(2026, 3, 14, 7, 0, tzinfo=timezone.utc))


@pytest.fixture
def quota_tracker(db_session: Session, clock: FrozenClock) -> QuotaTracker:
    return QuotaTracker(
        DatabaseQuotaBackend(db_session),
        timezone_name="Europe/Minsk",
        fail_open=False,
        clock=clock,
    )


@pytest.fixture
def review_store(db_session: Session) -> ReviewStore:
    return ReviewStore(db_session)


@pytest.fixture
def aggregate_maintainer(db_session: Session) -> AggregateMaintainer:
    return AggregateMaintainer(db_session)


@pytest.fixture
def review_service(db_session: Session, quota_tracker: QuotaTracker) -> ReviewLifecycleService:
    return ReviewLifecycleService(db_session, quota_tracker=quota_tracker)


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    """Create a test client backed by the per-test database."""
    from app.main import app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer headers for an arbitrary user id"""
    def _headers(user_id: str = AUTHOR_ID):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
