import os

# Must be set before marketplace modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LISTING_LOCK_ENABLED"] = "false"
os.environ["MUTATION_BACKOFF_MS"] = "1"

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from marketplace.engine import ListingSnapshot  # noqa: E402
from marketplace.infrastructure.database import SessionLocal, drop_db, init_db  # noqa: E402
from marketplace.services import ListingService  # noqa: E402

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
SELLER = "seller-1"


@pytest.fixture(autouse=True)
def clean_db():
    """Fresh tables for every test"""
    drop_db()
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_snapshot(now):
    """Snapshot factory: start 100, increment 10, one hour left"""
    def _make(**overrides):
        data = dict(
            listing_id=1,
            seller_id=SELLER,
            starting_price=100.0,
            current_price=100.0,
            min_increment=10.0,
            ends_at=now + timedelta(hours=1),
        )
        data.update(overrides)
        return ListingSnapshot(**data)
    return _make


@pytest.fixture
def make_listing(db, now):
    """Create a stored listing through the service"""
    def _make(**overrides):
        data = dict(
            seller_id=SELLER,
            title="Test Listing",
            starting_price=100.0,
            min_increment=10.0,
            buy_now_price=500.0,
            duration_hours=24,
            now=now,
        )
        data.update(overrides)
        return ListingService.create_listing(db=db, **data)
    return _make


@pytest.fixture
def client():
    from marketplace.main import app
    with TestClient(app) as test_client:
        yield test_client
