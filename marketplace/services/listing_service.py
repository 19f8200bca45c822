"""
Listing Service - Business Logic

Handles:
- Listing creation
- Buy now, relist and close-out
- Lazy expiry of timed-out listings
- Listing queries and statistics

Every decision is made by the auction engine; this module only reads
state, hands it over, and writes back what the engine accepted.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from marketplace.core.config import get_settings
from marketplace.engine import (
    AuctionFailure,
    FailureReason,
    ListingSnapshot,
    ListingStatus,
    derive_status,
    evaluate_buy_now,
    evaluate_close_out,
    evaluate_new_listing,
    evaluate_relist,
    format_time_left,
    minimum_allowed_bid,
    seconds_left,
)
from marketplace.infrastructure.lock import ListingLock
from marketplace.models import Bid, Listing
from marketplace.services.errors import AuctionRuleError, InvalidListingInput, format_amount
from marketplace.services.mutation import commit_listing_mutation, load_listing

logger = logging.getLogger(__name__)


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def describe_listing(listing: Listing, now: datetime, caller_id: Optional[str] = None) -> Dict:
    """Listing dict with the derived status and countdown filled in"""
    snapshot = listing.to_snapshot()
    status = derive_status(snapshot, now)

    data = listing.to_dict()
    data["status"] = status.value
    data["is_own"] = bool(caller_id) and caller_id == listing.seller_id

    if status == ListingStatus.ACTIVE:
        remaining = seconds_left(snapshot, now)
        data["seconds_left"] = remaining
        data["time_left"] = format_time_left(remaining)
        data["minimum_allowed_bid"] = minimum_allowed_bid(snapshot)
    else:
        data["seconds_left"] = 0
        data["time_left"] = "Item sold" if status == ListingStatus.SOLD else format_time_left(0)
        data["minimum_allowed_bid"] = None

    return data


def _status_filter(status: ListingStatus, now: datetime):
    """SQL equivalent of derive_status(...) == status"""
    if status == ListingStatus.SOLD:
        return Listing.status == ListingStatus.SOLD
    if status == ListingStatus.ENDED:
        return and_(Listing.status != ListingStatus.SOLD, Listing.ends_at <= now)
    return and_(Listing.status != ListingStatus.SOLD, Listing.ends_at > now)


def current_round_top_bid(db: Session, listing_id: int) -> Optional[Bid]:
    """Highest bid placed since the listing was last (re)opened"""
    started_at = select(Listing.started_at).where(Listing.id == listing_id).scalar_subquery()
    query = (
        select(Bid)
        .where(Bid.listing_id == listing_id, Bid.created_at >= started_at)
        .order_by(Bid.amount.desc(), Bid.created_at.asc())
        .limit(1)
    )
    return db.execute(query).scalar_one_or_none()


class ListingService:
    """
    Service for listing-related business logic

    Methods are static and take the session explicitly, so routes,
    scripts and tests can call them the same way.
    """

    @staticmethod
    def create_listing(
        db: Session,
        seller_id: Optional[str],
        title: str,
        starting_price: float,
        min_increment: float,
        buy_now_price: Optional[float] = None,
        duration_hours: Optional[float] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        location: Optional[str] = None,
        image_url: Optional[str] = None,
        currency: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Listing:
        """
        Create a new listing

        Business rules:
        - Seller must be signed in
        - Title is required
        - Starting price and increment must be positive
        - Buy now price, if given, must exceed the starting price
        - Duration must be positive

        Raises:
            AuctionRuleError: A price or duration rule failed
            InvalidListingInput: Title missing
        """
        settings = get_settings()
        now = _now(now)
        currency = currency or settings.DEFAULT_CURRENCY
        if duration_hours is None:
            duration_hours = settings.DEFAULT_DURATION_HOURS

        draft = evaluate_new_listing(
            seller_id=seller_id,
            starting_price=starting_price,
            min_increment=min_increment,
            buy_now_price=buy_now_price,
            duration_hours=duration_hours,
            now=now
        )
        if isinstance(draft, AuctionFailure):
            raise AuctionRuleError(draft, currency)

        if not title or not title.strip():
            raise InvalidListingInput("Title is required.")

        listing = Listing(
            seller_id=draft.seller_id,
            title=title.strip(),
            description=description or None,
            category=category or None,
            location=location or None,
            image_url=image_url or None,
            currency=currency,
            starting_price=draft.starting_price,
            current_price=draft.current_price,
            min_increment=draft.min_increment,
            buy_now_price=draft.buy_now_price,
            started_at=draft.started_at,
            ends_at=draft.ends_at,
            status=draft.status,
            bid_count=0,
            version=1,
            created_at=now
        )

        db.add(listing)
        db.commit()
        db.refresh(listing)

        logger.info(
            f"Created listing {listing.id}: {listing.title}",
            extra={'listing_id': listing.id, 'user_id': seller_id}
        )

        return listing

    @staticmethod
    def get_listing(listing_id: int, db: Session) -> Optional[Listing]:
        """Get listing row by ID"""
        return load_listing(db, listing_id)

    @staticmethod
    def get_listing_detail(
        listing_id: int,
        db: Session,
        caller_id: Optional[str] = None,
        bid_limit: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Optional[Dict]:
        """
        Listing with derived status, countdown and its most recent bids

        Returns None when the listing does not exist.
        """
        now = _now(now)
        listing = load_listing(db, listing_id)
        if listing is None:
            return None

        if bid_limit is None:
            bid_limit = get_settings().BID_HISTORY_LIMIT

        bids = db.execute(
            select(Bid)
            .where(Bid.listing_id == listing_id)
            .order_by(Bid.created_at.desc(), Bid.id.desc())
            .limit(bid_limit)
        ).scalars().all()

        return {
            "listing": describe_listing(listing, now, caller_id),
            "recent_bids": [bid.to_dict() for bid in bids],
        }

    @staticmethod
    def list_listings(
        db: Session,
        status: Optional[ListingStatus] = None,
        seller_id: Optional[str] = None,
        limit: Optional[int] = 50,
        caller_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Dict]:
        """
        List listings, newest first

        The status filter matches the derived status, so a row still stored
        as ACTIVE whose end time has passed shows up under ENDED.
        """
        now = _now(now)
        query = select(Listing)

        if status is not None:
            query = query.where(_status_filter(ListingStatus(status), now))
        if seller_id:
            query = query.where(Listing.seller_id == seller_id)

        query = query.order_by(Listing.created_at.desc(), Listing.id.desc())
        if limit:
            query = query.limit(limit)

        listings = db.execute(query).scalars().all()
        return [describe_listing(listing, now, caller_id) for listing in listings]

    @staticmethod
    def get_seller_listings(
        seller_id: str,
        db: Session,
        now: Optional[datetime] = None
    ) -> List[Dict]:
        """Seller's own listings with the actions currently open to them"""
        now = _now(now)
        listings = ListingService.list_listings(
            db, seller_id=seller_id, limit=None, caller_id=seller_id, now=now
        )
        for data in listings:
            ended = data["status"] == ListingStatus.ENDED.value
            data["can_relist"] = ended
            data["can_close"] = ended and data["bid_count"] > 0
        return listings

    @staticmethod
    def buy_now(
        listing_id: int,
        caller_id: Optional[str],
        db: Session,
        lock: Optional[ListingLock] = None,
        now: Optional[datetime] = None
    ) -> Dict:
        """
        Buy a listing at its buy now price

        Raises:
            AuctionRuleError: Engine refused
            ConcurrentUpdateError: Lost every write race
        """
        now = _now(now)

        def decide(snapshot: Optional[ListingSnapshot]):
            return evaluate_buy_now(snapshot, caller_id, now)

        def build_write(decision, snapshot):
            return decision.listing_changes(), []

        decision = commit_listing_mutation(db, listing_id, decide, build_write, lock=lock)

        listing = load_listing(db, listing_id)
        logger.info(
            f"Listing {listing_id} sold via buy now for {decision.current_price}",
            extra={'listing_id': listing_id, 'user_id': caller_id}
        )

        return {
            "success": True,
            "message": (
                f"Item marked as sold for {format_amount(decision.current_price)} {listing.currency}. "
                "Payment is arranged separately."
            ),
            "listing": describe_listing(listing, now, caller_id),
        }

    @staticmethod
    def relist(
        listing_id: int,
        caller_id: Optional[str],
        db: Session,
        duration_hours: Optional[float] = None,
        lock: Optional[ListingLock] = None,
        now: Optional[datetime] = None
    ) -> Dict:
        """
        Reopen an ended, unsold listing

        The price goes back to the starting price and a new bidding round
        begins; earlier bids stay in the history.
        """
        now = _now(now)
        if duration_hours is None:
            duration_hours = get_settings().RELIST_DURATION_HOURS

        def decide(snapshot: Optional[ListingSnapshot]):
            return evaluate_relist(snapshot, caller_id, now, duration_hours)

        def build_write(decision, snapshot):
            values = decision.listing_changes()
            values.update(started_at=now, bid_count=0, buyer_id=None)
            return values, []

        commit_listing_mutation(db, listing_id, decide, build_write, lock=lock)

        listing = load_listing(db, listing_id)
        logger.info(
            f"Relisted listing {listing_id} until {listing.ends_at}",
            extra={'listing_id': listing_id, 'user_id': caller_id}
        )

        return {
            "success": True,
            "message": "Listing relisted successfully",
            "listing": describe_listing(listing, now, caller_id),
        }

    @staticmethod
    def close_out(
        listing_id: int,
        caller_id: Optional[str],
        db: Session,
        lock: Optional[ListingLock] = None,
        now: Optional[datetime] = None
    ) -> Dict:
        """Sell a timed-out listing to the highest bidder of its last round"""
        now = _now(now)

        def decide(snapshot: Optional[ListingSnapshot]):
            winning = None
            if snapshot is not None:
                top_bid = current_round_top_bid(db, snapshot.listing_id)
                winning = top_bid.to_record() if top_bid is not None else None
            return evaluate_close_out(snapshot, caller_id, winning, now)

        def build_write(decision, snapshot):
            return decision.listing_changes(), []

        decision = commit_listing_mutation(db, listing_id, decide, build_write, lock=lock)

        listing = load_listing(db, listing_id)
        logger.info(
            f"Closed listing {listing_id}, sold to {decision.buyer_id}",
            extra={'listing_id': listing_id, 'user_id': caller_id}
        )

        return {
            "success": True,
            "message": f"Sold to the highest bidder for {format_amount(decision.current_price)} {listing.currency}.",
            "listing": describe_listing(listing, now, caller_id),
        }

    @staticmethod
    def expire_listings(db: Session, now: Optional[datetime] = None) -> int:
        """
        Persist ENDED for every ACTIVE listing past its end time

        Reads already derive the status, so this only tidies storage.

        Returns:
            Number of listings expired
        """
        now = _now(now)
        result = db.execute(
            update(Listing)
            .where(Listing.status == ListingStatus.ACTIVE, Listing.ends_at <= now)
            .values(status=ListingStatus.ENDED, version=Listing.version + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()

        expired = result.rowcount or 0
        if expired:
            logger.info(f"Auto-expired {expired} listings")

        return expired

    @staticmethod
    def get_listing_statistics(
        listing_id: int,
        db: Session,
        now: Optional[datetime] = None
    ) -> Dict:
        """
        Get detailed statistics for a listing

        Raises:
            AuctionRuleError: Listing not found
        """
        now = _now(now)
        listing = load_listing(db, listing_id)

        if listing is None:
            raise AuctionRuleError(AuctionFailure(FailureReason.NOT_FOUND))

        bids = db.execute(
            select(Bid).where(Bid.listing_id == listing_id).order_by(Bid.created_at.asc())
        ).scalars().all()

        if bids:
            unique_bidders = len(set(bid.bidder_id for bid in bids))
            avg_bid = sum(bid.amount for bid in bids) / len(bids)
            price_increase = listing.current_price - listing.starting_price
            # Corrupted rows can carry a zero starting price
            if listing.starting_price > 0:
                price_increase_pct = round((price_increase / listing.starting_price) * 100, 2)
            else:
                price_increase_pct = None
        else:
            unique_bidders = 0
            avg_bid = 0
            price_increase = 0
            price_increase_pct = 0

        described = describe_listing(listing, now)

        return {
            "listing_id": listing_id,
            "status": described["status"],
            "total_bids": len(bids),
            "current_round_bids": listing.bid_count,
            "unique_bidders": unique_bidders,
            "starting_price": listing.starting_price,
            "current_price": listing.current_price,
            "price_increase": price_increase,
            "price_increase_percent": price_increase_pct,
            "average_bid": round(avg_bid, 2) if bids else 0,
            "time_left": described["time_left"],
        }


