"""
API Routes Tests

Tests all endpoints:
- Listings (create, list, get, statistics, buy now, relist, close)
- Bids (place, history, my bids, my listings)
- Admin (health, expiry)
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import redis

from marketplace.services import BidService, ListingService

SELLER = {"X-User-Id": "seller-1"}
ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


def _create(client, **overrides):
    payload = {
        "title": "Test Listing",
        "description": "Test Description",
        "starting_price": 100.0,
        "min_increment": 10.0,
        "buy_now_price": 500.0,
        "duration_hours": 24,
    }
    payload.update(overrides)
    return client.post("/listings", json=payload, headers=SELLER)


def _ended_listing(db, hours_ago=5):
    """Listing whose one-hour auction finished `hours_ago` hours ago"""
    started = datetime.now(timezone.utc) - timedelta(hours=hours_ago)
    listing = ListingService.create_listing(
        db=db,
        seller_id="seller-1",
        title="Ended Listing",
        starting_price=100.0,
        min_increment=10.0,
        duration_hours=1,
        now=started
    )
    return listing, started


# ============================================================================
# LISTING TESTS
# ============================================================================
class TestListingRoutes:
    """Test listing-related endpoints"""

    def test_create_listing_success(self, client):
        """Test creating a valid listing"""
        response = _create(client)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["listing"]["title"] == "Test Listing"
        assert data["listing"]["starting_price"] == 100.0
        assert data["listing"]["status"] == "ACTIVE"
        assert data["listing"]["is_own"] is True
        assert data["listing"]["minimum_allowed_bid"] == 110.0

    def test_create_listing_requires_user(self, client):
        """Signed-out callers cannot list items"""
        response = client.post("/listings", json={"title": "x", "starting_price": 100.0})

        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHENTICATED"

    def test_create_listing_invalid_price(self, client):
        """Test creating listing with invalid price"""
        response = _create(client, starting_price=-100.0)

        assert response.status_code == 400
        assert "positive" in response.json()["message"].lower()

    def test_create_listing_buy_now_not_above_start(self, client):
        response = _create(client, buy_now_price=90.0)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_AMOUNT"

    def test_list_listings(self, client):
        """Test listing all listings"""
        _create(client)
        _create(client, title="Second")

        response = client.get("/listings")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["listings"][0]["title"] == "Second"

    def test_list_listings_filter_by_status(self, client, db):
        """Test filtering listings by derived status"""
        _create(client)
        _ended_listing(db)

        response = client.get("/listings?status=ENDED")

        assert response.status_code == 200
        listings = response.json()["listings"]
        assert [item["title"] for item in listings] == ["Ended Listing"]

    def test_list_listings_bad_status(self, client):
        response = client.get("/listings?status=PAUSED")
        assert response.status_code == 422

    def test_get_listing(self, client):
        """Test getting a specific listing"""
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.get(f"/listings/{listing_id}", headers=ALICE)

        assert response.status_code == 200
        data = response.json()
        assert data["listing"]["listing_id"] == listing_id
        assert data["listing"]["is_own"] is False
        assert data["recent_bids"] == []

    def test_get_listing_not_found(self, client):
        """Test getting non-existent listing"""
        response = client.get("/listings/99999")

        assert response.status_code == 404

    def test_get_listing_statistics(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]
        client.post(f"/listings/{listing_id}/bids", json={"amount": 120}, headers=ALICE)

        response = client.get(f"/listings/{listing_id}/statistics")

        assert response.status_code == 200
        data = response.json()
        assert data["total_bids"] == 1
        assert data["price_increase"] == 20.0

    def test_statistics_not_found(self, client):
        response = client.get("/listings/99999/statistics")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"


# ============================================================================
# BUY NOW / RELIST / CLOSE TESTS
# ============================================================================
class TestListingActions:

    def test_buy_now(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/buy-now", headers=ALICE)

        assert response.status_code == 200
        data = response.json()
        assert data["listing"]["status"] == "SOLD"
        assert data["listing"]["buyer_id"] == "alice"
        assert data["listing"]["time_left"] == "Item sold"

        again = client.post(f"/listings/{listing_id}/buy-now", headers=BOB)
        assert again.status_code == 409
        assert again.json()["closed_reason"] == "SOLD"

        bid = client.post(f"/listings/{listing_id}/bids", json={"amount": 1000}, headers=BOB)
        assert bid.status_code == 409
        assert bid.json()["message"] == "This item has been sold."

    def test_buy_now_own_listing(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/buy-now", headers=SELLER)

        assert response.status_code == 403
        assert response.json()["error"] == "SELF_PURCHASE_REJECTED"

    def test_buy_now_signed_out(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/buy-now")

        assert response.status_code == 401

    def test_relist(self, client, db):
        listing, _ = _ended_listing(db)

        response = client.post(f"/listings/{listing.id}/relist", headers=SELLER)

        assert response.status_code == 200
        data = response.json()["listing"]
        assert data["status"] == "ACTIVE"
        assert data["current_price"] == 100.0
        assert data["time_left"].startswith("2d 23h") or data["time_left"].startswith("3d")

    def test_relist_with_duration(self, client, db):
        listing, _ = _ended_listing(db)

        response = client.post(
            f"/listings/{listing.id}/relist",
            json={"duration_hours": 2},
            headers=SELLER
        )

        assert response.status_code == 200
        assert response.json()["listing"]["seconds_left"] <= 2 * 3600

    def test_relist_invalid_duration(self, client, db):
        listing, _ = _ended_listing(db)

        response = client.post(
            f"/listings/{listing.id}/relist",
            json={"duration_hours": 0},
            headers=SELLER
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_DURATION"

    def test_relist_by_other_user(self, client, db):
        listing, _ = _ended_listing(db)

        response = client.post(f"/listings/{listing.id}/relist", headers=ALICE)

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    def test_relist_active_listing(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/relist", headers=SELLER)

        assert response.status_code == 409
        assert response.json()["error"] == "NOT_RELISTABLE"

    def test_close_out(self, client, db):
        listing, started = _ended_listing(db)
        BidService.place_bid(listing.id, "alice", 150, db, now=started + timedelta(minutes=10))

        response = client.post(f"/listings/{listing.id}/close", headers=SELLER)

        assert response.status_code == 200
        data = response.json()
        assert data["listing"]["status"] == "SOLD"
        assert data["listing"]["buyer_id"] == "alice"
        assert data["message"] == "Sold to the highest bidder for 150 AED."


# ============================================================================
# BID TESTS
# ============================================================================
class TestBidRoutes:
    """Test bid-related endpoints"""

    def test_place_bid_success(self, client):
        """Test placing a valid bid"""
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/bids", json={"amount": 110}, headers=ALICE)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["bid"]["amount"] == 110.0
        assert data["listing"]["current_price"] == 110.0

    def test_place_bid_too_low(self, client):
        """Test placing bid below the minimum"""
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/bids", json={"amount": 109}, headers=ALICE)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "BID_TOO_LOW"
        assert data["minimum_allowed_bid"] == 110.0
        assert data["message"] == "Your bid must be at least 110 AED."

    def test_place_bid_own_listing(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/bids", json={"amount": 115}, headers=SELLER)

        assert response.status_code == 403
        assert response.json()["error"] == "SELF_BID_REJECTED"

    def test_place_bid_signed_out(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/bids", json={"amount": 200})

        assert response.status_code == 401

    def test_place_bid_blank_user_header(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(
            f"/listings/{listing_id}/bids",
            json={"amount": 200},
            headers={"X-User-Id": "   "}
        )

        assert response.status_code == 401

    def test_place_bid_invalid_amount(self, client):
        listing_id = _create(client).json()["listing"]["listing_id"]

        response = client.post(f"/listings/{listing_id}/bids", json={"amount": -5}, headers=ALICE)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_AMOUNT"

    def test_place_bid_unknown_listing(self, client):
        response = client.post("/listings/99999/bids", json={"amount": 200}, headers=ALICE)

        assert response.status_code == 404

    def test_place_bid_ended_listing(self, client, db):
        listing, _ = _ended_listing(db)

        response = client.post(f"/listings/{listing.id}/bids", json={"amount": 500}, headers=ALICE)

        assert response.status_code == 409
        assert response.json()["closed_reason"] == "TIMED_OUT"

    def test_bid_history(self, client):
        """Test getting bid history for a listing"""
        listing_id = _create(client).json()["listing"]["listing_id"]
        client.post(f"/listings/{listing_id}/bids", json={"amount": 110}, headers=ALICE)
        client.post(f"/listings/{listing_id}/bids", json={"amount": 130}, headers=BOB)

        response = client.get(f"/listings/{listing_id}/bids")

        assert response.status_code == 200
        data = response.json()
        assert data["bid_count"] == 2
        assert [bid["bidder_id"] for bid in data["bids"]] == ["bob", "alice"]

    def test_bid_history_not_found(self, client):
        response = client.get("/listings/99999/bids")
        assert response.status_code == 404

    def test_my_bids(self, client):
        """Test getting the caller's bids"""
        listing_id = _create(client).json()["listing"]["listing_id"]
        client.post(f"/listings/{listing_id}/bids", json={"amount": 110}, headers=ALICE)
        client.post(f"/listings/{listing_id}/bids", json={"amount": 130}, headers=BOB)

        response = client.get("/users/me/bids", headers=ALICE)

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "alice"
        assert data["total_bids"] == 1
        assert data["bids"][0]["is_leading"] is False

    def test_my_bids_signed_out(self, client):
        assert client.get("/users/me/bids").status_code == 401

    def test_my_listings(self, client, db):
        _create(client)
        _ended_listing(db)

        response = client.get("/users/me/listings", headers=SELLER)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        flags = {item["title"]: item["can_relist"] for item in data["listings"]}
        assert flags == {"Test Listing": False, "Ended Listing": True}


# ============================================================================
# ADMIN TESTS
# ============================================================================
class TestAdminRoutes:
    """Test admin endpoints"""

    def test_health_check(self, client):
        """Test system health check"""
        response = client.get("/admin/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["redis"] == "disabled"

    def test_expire_listings(self, client, db):
        _ended_listing(db)
        _create(client)

        response = client.post("/admin/expire-listings")

        assert response.status_code == 200
        assert response.json() == {"expired": 1}


class TestRootAndTracing:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_trace_id_echoed(self, client):
        response = client.get("/", headers={"X-Trace-ID": "trace-123"})

        assert response.headers["X-Trace-ID"] == "trace-123"

    def test_error_body_carries_trace_id(self, client):
        response = client.get("/listings/99999/statistics", headers={"X-Trace-ID": "trace-404"})

        assert response.status_code == 404
        assert response.json()["trace_id"] == "trace-404"
        assert response.headers["X-Trace-ID"] == "trace-404"


class TestListingLockRoutes:
    """Bids with the Redis listing lock switched on"""

    def test_redis_down_returns_listing_busy(self, client):
        from marketplace.core.dependencies import get_listing_lock
        from marketplace.infrastructure.lock import ListingLock
        from marketplace.main import app

        redis_client = MagicMock()
        redis_client.set.side_effect = redis.ConnectionError("down")
        app.dependency_overrides[get_listing_lock] = lambda: ListingLock(
            redis_client, retry_delay=0, max_retries=1
        )
        try:
            listing_id = _create(client).json()["listing"]["listing_id"]
            response = client.post(f"/listings/{listing_id}/bids", json={"amount": 110}, headers=ALICE)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 409
        assert response.json()["error"] == "LISTING_BUSY"
        assert client.get(f"/listings/{listing_id}/bids").json()["bids"] == []
