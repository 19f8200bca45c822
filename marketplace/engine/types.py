"""
Auction Engine Types

Value objects the engine reads and returns. Nothing here knows about the
database or HTTP; the service layer converts records into these.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
import enum


class ListingStatus(str, enum.Enum):
    """Listing status enum"""
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    SOLD = "SOLD"


class ClosedReason(str, enum.Enum):
    """Why an auction no longer accepts bids"""
    TIMED_OUT = "TIMED_OUT"
    SOLD = "SOLD"


class FailureReason(str, enum.Enum):
    """Every way an engine decision can be refused"""
    NOT_FOUND = "NOT_FOUND"
    AUCTION_CLOSED = "AUCTION_CLOSED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    SELF_BID_REJECTED = "SELF_BID_REJECTED"
    SELF_PURCHASE_REJECTED = "SELF_PURCHASE_REJECTED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    BID_TOO_LOW = "BID_TOO_LOW"
    BUY_NOW_UNAVAILABLE = "BUY_NOW_UNAVAILABLE"
    FORBIDDEN = "FORBIDDEN"
    NOT_RELISTABLE = "NOT_RELISTABLE"
    INVALID_DURATION = "INVALID_DURATION"
    INVALID_LISTING_STATE = "INVALID_LISTING_STATE"
    NOT_CLOSABLE = "NOT_CLOSABLE"
    NO_WINNING_BID = "NO_WINNING_BID"


@dataclass(frozen=True)
class ListingSnapshot:
    """
    Validated, read-only view of a listing at one moment

    bid_count counts bids placed since the listing was (re)opened.
    """
    listing_id: int
    seller_id: str
    starting_price: float
    current_price: float
    min_increment: float
    ends_at: datetime
    status: ListingStatus = ListingStatus.ACTIVE
    buy_now_price: Optional[float] = None
    buyer_id: Optional[str] = None
    bid_count: int = 0
    version: int = 1


@dataclass(frozen=True)
class BidRecord:
    """An accepted bid as read back from the store"""
    bid_id: int
    listing_id: int
    bidder_id: str
    amount: float
    created_at: datetime


@dataclass(frozen=True)
class NewBid:
    """A bid the engine has accepted but nobody has stored yet"""
    listing_id: int
    bidder_id: str
    amount: float
    previous_price: float
    created_at: datetime


@dataclass(frozen=True)
class AuctionFailure:
    """
    Tagged refusal

    closed_reason is set for AUCTION_CLOSED, minimum_allowed_bid for
    BID_TOO_LOW. detail is a short developer-facing note.
    """
    reason: FailureReason
    closed_reason: Optional[ClosedReason] = None
    minimum_allowed_bid: Optional[float] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class BidAccepted:
    bid: NewBid
    current_price: float

    def listing_changes(self) -> dict:
        return {"current_price": self.current_price}


@dataclass(frozen=True)
class BuyNowAccepted:
    buyer_id: str
    current_price: float
    status: ListingStatus = ListingStatus.SOLD

    def listing_changes(self) -> dict:
        return {
            "status": self.status,
            "current_price": self.current_price,
            "buyer_id": self.buyer_id,
        }


@dataclass(frozen=True)
class RelistAccepted:
    current_price: float
    ends_at: datetime
    status: ListingStatus = ListingStatus.ACTIVE

    def listing_changes(self) -> dict:
        return {
            "status": self.status,
            "current_price": self.current_price,
            "ends_at": self.ends_at,
        }


@dataclass(frozen=True)
class CloseOutAccepted:
    buyer_id: str
    current_price: float
    status: ListingStatus = ListingStatus.SOLD

    def listing_changes(self) -> dict:
        return {"status": self.status, "buyer_id": self.buyer_id}


@dataclass(frozen=True)
class ListingDraft:
    """Fields of a listing that passed creation rules"""
    seller_id: str
    starting_price: float
    current_price: float
    min_increment: float
    buy_now_price: Optional[float]
    started_at: datetime
    ends_at: datetime
    status: ListingStatus = ListingStatus.ACTIVE


Decision = Union[
    BidAccepted,
    BuyNowAccepted,
    RelistAccepted,
    CloseOutAccepted,
    ListingDraft,
    AuctionFailure,
]
