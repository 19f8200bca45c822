"""
Auction Engine - Pure Decision Logic

Every function takes the current listing snapshot, the caller and the
current time explicitly and returns either an accepted decision or an
AuctionFailure. No I/O, no logging, no clock reads.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Union
import math

from marketplace.engine.types import (
    AuctionFailure,
    BidAccepted,
    BidRecord,
    BuyNowAccepted,
    CloseOutAccepted,
    ClosedReason,
    FailureReason,
    ListingDraft,
    ListingSnapshot,
    ListingStatus,
    NewBid,
    RelistAccepted,
)


def _is_positive_number(value) -> bool:
    """True for finite numbers above zero (bools excluded)"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _money(value) -> Decimal:
    """Exact decimal of a price as written (0.1 + 0.2 == 0.3)"""
    return Decimal(repr(value))


def derive_status(listing: ListingSnapshot, now: datetime) -> ListingStatus:
    """
    Effective status of a listing at `now`

    The stored flag only wins for SOLD; time decides between ACTIVE and ENDED.
    """
    if listing.status == ListingStatus.SOLD:
        return ListingStatus.SOLD
    if now >= listing.ends_at:
        return ListingStatus.ENDED
    return ListingStatus.ACTIVE


def _closed(status: ListingStatus) -> AuctionFailure:
    reason = ClosedReason.SOLD if status == ListingStatus.SOLD else ClosedReason.TIMED_OUT
    return AuctionFailure(FailureReason.AUCTION_CLOSED, closed_reason=reason)


def minimum_allowed_bid(listing: ListingSnapshot) -> float:
    """
    Lowest amount the next bid may have

    With no bid in the current round the floor is the starting price,
    afterwards it is the current price. Both get the increment added.
    """
    floor = listing.current_price if listing.bid_count > 0 else listing.starting_price
    return float(_money(floor) + _money(listing.min_increment))


def evaluate_bid(
    listing: Optional[ListingSnapshot],
    caller_id: Optional[str],
    amount,
    now: datetime
) -> Union[BidAccepted, AuctionFailure]:
    """
    Decide whether `caller_id` may bid `amount` on `listing`

    Checks run in a fixed order and the first one that fails is reported:
    existence, open auction, authentication, self-bid, amount sanity,
    minimum increment.
    """
    if listing is None:
        return AuctionFailure(FailureReason.NOT_FOUND)

    status = derive_status(listing, now)
    if status != ListingStatus.ACTIVE:
        return _closed(status)

    if not caller_id:
        return AuctionFailure(FailureReason.UNAUTHENTICATED)

    if caller_id == listing.seller_id:
        return AuctionFailure(FailureReason.SELF_BID_REJECTED)

    if not _is_positive_number(amount):
        return AuctionFailure(FailureReason.INVALID_AMOUNT, detail="amount must be a positive number")

    if not (_is_finite_number(listing.current_price)
            and _is_positive_number(listing.starting_price)
            and _is_positive_number(listing.min_increment)):
        return AuctionFailure(FailureReason.INVALID_LISTING_STATE, detail="stored prices are malformed")

    required = minimum_allowed_bid(listing)
    if _money(amount) < _money(required):
        return AuctionFailure(FailureReason.BID_TOO_LOW, minimum_allowed_bid=required)

    bid = NewBid(
        listing_id=listing.listing_id,
        bidder_id=caller_id,
        amount=float(amount),
        previous_price=listing.current_price,
        created_at=now
    )
    return BidAccepted(bid=bid, current_price=float(amount))


def evaluate_buy_now(
    listing: Optional[ListingSnapshot],
    caller_id: Optional[str],
    now: datetime
) -> Union[BuyNowAccepted, AuctionFailure]:
    """Decide whether `caller_id` may buy `listing` outright"""
    if listing is None:
        return AuctionFailure(FailureReason.NOT_FOUND)

    if listing.buy_now_price is None:
        return AuctionFailure(FailureReason.BUY_NOW_UNAVAILABLE)

    status = derive_status(listing, now)
    if status != ListingStatus.ACTIVE:
        return _closed(status)

    if not caller_id:
        return AuctionFailure(FailureReason.UNAUTHENTICATED)

    if caller_id == listing.seller_id:
        return AuctionFailure(FailureReason.SELF_PURCHASE_REJECTED)

    if not _is_positive_number(listing.buy_now_price):
        return AuctionFailure(FailureReason.INVALID_LISTING_STATE, detail="buy now price is malformed")

    # Price must not go down while the auction is open
    if listing.current_price >= listing.buy_now_price:
        return AuctionFailure(
            FailureReason.BUY_NOW_UNAVAILABLE,
            detail="bidding has reached the buy now price"
        )

    return BuyNowAccepted(buyer_id=caller_id, current_price=listing.buy_now_price)


def evaluate_relist(
    listing: Optional[ListingSnapshot],
    caller_id: Optional[str],
    now: datetime,
    duration_hours
) -> Union[RelistAccepted, AuctionFailure]:
    """Decide whether the seller may reopen an ended, unsold listing"""
    if listing is None:
        return AuctionFailure(FailureReason.NOT_FOUND)

    if not caller_id or caller_id != listing.seller_id:
        return AuctionFailure(FailureReason.FORBIDDEN)

    status = derive_status(listing, now)
    if status != ListingStatus.ENDED:
        return AuctionFailure(FailureReason.NOT_RELISTABLE, detail=f"listing is {status.value}")

    if not _is_positive_number(duration_hours):
        return AuctionFailure(FailureReason.INVALID_DURATION)

    if not _is_positive_number(listing.starting_price):
        return AuctionFailure(FailureReason.INVALID_LISTING_STATE, detail="starting price is invalid")

    return RelistAccepted(
        current_price=listing.starting_price,
        ends_at=now + timedelta(hours=duration_hours)
    )


def evaluate_close_out(
    listing: Optional[ListingSnapshot],
    caller_id: Optional[str],
    winning_bid: Optional[BidRecord],
    now: datetime
) -> Union[CloseOutAccepted, AuctionFailure]:
    """
    Decide whether the seller may settle a timed-out auction

    winning_bid is the highest bid of the current round, if any.
    """
    if listing is None:
        return AuctionFailure(FailureReason.NOT_FOUND)

    if not caller_id or caller_id != listing.seller_id:
        return AuctionFailure(FailureReason.FORBIDDEN)

    status = derive_status(listing, now)
    if status == ListingStatus.SOLD:
        return _closed(status)
    if status == ListingStatus.ACTIVE:
        return AuctionFailure(FailureReason.NOT_CLOSABLE, detail="auction is still running")

    if winning_bid is None:
        return AuctionFailure(FailureReason.NO_WINNING_BID)

    if winning_bid.listing_id != listing.listing_id or winning_bid.amount != listing.current_price:
        return AuctionFailure(
            FailureReason.INVALID_LISTING_STATE,
            detail="highest bid does not match current price"
        )

    return CloseOutAccepted(buyer_id=winning_bid.bidder_id, current_price=listing.current_price)


def evaluate_new_listing(
    seller_id: Optional[str],
    starting_price,
    min_increment,
    buy_now_price,
    duration_hours,
    now: datetime
) -> Union[ListingDraft, AuctionFailure]:
    """Validate the numbers a seller submits when creating a listing"""
    if not seller_id:
        return AuctionFailure(FailureReason.UNAUTHENTICATED)

    if not _is_positive_number(starting_price):
        return AuctionFailure(FailureReason.INVALID_AMOUNT, detail="Starting price must be a positive number.")

    if not _is_positive_number(min_increment):
        return AuctionFailure(FailureReason.INVALID_AMOUNT, detail="Minimum increment must be a positive number.")

    if buy_now_price is not None:
        if not _is_positive_number(buy_now_price):
            return AuctionFailure(FailureReason.INVALID_AMOUNT, detail="Buy Now price must be a positive number.")
        if buy_now_price <= starting_price:
            return AuctionFailure(
                FailureReason.INVALID_AMOUNT,
                detail="Buy Now price must be higher than the starting price."
            )

    if not _is_positive_number(duration_hours):
        return AuctionFailure(FailureReason.INVALID_DURATION)

    return ListingDraft(
        seller_id=seller_id,
        starting_price=float(starting_price),
        current_price=float(starting_price),
        min_increment=float(min_increment),
        buy_now_price=float(buy_now_price) if buy_now_price is not None else None,
        started_at=now,
        ends_at=now + timedelta(hours=duration_hours)
    )
