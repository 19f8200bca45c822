"""
Bid Service - Business Logic

Handles:
- Bid placement (engine decision + optimistic write)
- Bid history
- A bidder's own bids
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.config import get_settings
from marketplace.engine import ListingSnapshot, ListingStatus, derive_status, evaluate_bid
from marketplace.infrastructure.lock import ListingLock
from marketplace.models import Bid, Listing
from marketplace.models.listing import as_utc
from marketplace.services.listing_service import describe_listing
from marketplace.services.mutation import commit_listing_mutation, load_listing

logger = logging.getLogger(__name__)


class BidService:
    """
    Service for bid-related business logic

    Centralizes bid operations
    """

    @staticmethod
    def place_bid(
        listing_id: int,
        caller_id: Optional[str],
        amount: float,
        db: Session,
        lock: Optional[ListingLock] = None,
        now: Optional[datetime] = None
    ) -> Dict:
        """
        Place a bid on a listing

        The engine validates against a fresh read; the write only lands if
        nobody else changed the listing in between, otherwise it is
        re-evaluated against the newer state.

        Args:
            listing_id: Listing ID
            caller_id: Bidder identity (None if signed out)
            amount: Bid amount
            db: Database session
            lock: Optional per-listing lock
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            Result with the stored bid and updated listing

        Raises:
            AuctionRuleError: Engine refused the bid
            ConcurrentUpdateError: Lost every write race
        """
        now = now if now is not None else datetime.now(timezone.utc)
        stored = []

        def decide(snapshot: Optional[ListingSnapshot]):
            return evaluate_bid(snapshot, caller_id, amount, now)

        def build_write(decision, snapshot):
            bid = Bid(
                listing_id=decision.bid.listing_id,
                bidder_id=decision.bid.bidder_id,
                amount=decision.bid.amount,
                previous_price=decision.bid.previous_price,
                created_at=decision.bid.created_at
            )
            stored[:] = [bid]
            values = decision.listing_changes()
            values["bid_count"] = Listing.bid_count + 1
            return values, [bid]

        decision = commit_listing_mutation(db, listing_id, decide, build_write, lock=lock)

        bid = stored[0]
        db.refresh(bid)
        listing = load_listing(db, listing_id)

        logger.info(
            f"Bid accepted on listing {listing_id}: "
            f"{decision.bid.previous_price} -> {decision.current_price}",
            extra={'listing_id': listing_id, 'user_id': caller_id, 'bid_id': bid.id}
        )

        return {
            "success": True,
            "message": "Your bid has been placed successfully.",
            "bid": bid.to_dict(),
            "listing": describe_listing(listing, now, caller_id),
        }

    @staticmethod
    def get_bid_history(
        listing_id: int,
        db: Session,
        limit: Optional[int] = None
    ) -> List[Dict]:
        """
        Get bid history for a listing, newest first

        Args:
            listing_id: Listing ID
            db: Database session
            limit: Maximum results (defaults to BID_HISTORY_LIMIT)

        Returns:
            List of bids
        """
        if limit is None:
            limit = get_settings().BID_HISTORY_LIMIT

        bids = db.execute(
            select(Bid)
            .where(Bid.listing_id == listing_id)
            .order_by(Bid.created_at.desc(), Bid.id.desc())
            .limit(limit)
        ).scalars().all()

        return [bid.to_dict() for bid in bids]

    @staticmethod
    def get_user_bids(
        bidder_id: str,
        db: Session,
        limit: Optional[int] = 50,
        now: Optional[datetime] = None
    ) -> List[Dict]:
        """
        Get all bids by a user, each with a summary of its listing

        is_leading: the bid is the top bid of the listing's current round
        and the listing is not sold. is_winner: the listing was sold to
        this bidder.
        """
        now = now if now is not None else datetime.now(timezone.utc)

        query = (
            select(Bid, Listing)
            .join(Listing, Bid.listing_id == Listing.id)
            .where(Bid.bidder_id == bidder_id)
            .order_by(Bid.created_at.desc(), Bid.id.desc())
        )
        if limit:
            query = query.limit(limit)

        results = []
        for bid, listing in db.execute(query).all():
            status = derive_status(listing.to_snapshot(), now)
            in_current_round = as_utc(bid.created_at) >= as_utc(listing.started_at)

            entry = bid.to_dict()
            entry["listing"] = {
                "listing_id": listing.id,
                "title": listing.title,
                "image_url": listing.image_url,
                "currency": listing.currency,
                "current_price": listing.current_price,
                "starting_price": listing.starting_price,
                "ends_at": as_utc(listing.ends_at).isoformat(),
                "status": status.value,
            }
            entry["is_leading"] = (
                status != ListingStatus.SOLD
                and in_current_round
                and bid.amount == listing.current_price
            )
            entry["is_winner"] = status == ListingStatus.SOLD and listing.buyer_id == bidder_id
            results.append(entry)

        return results
