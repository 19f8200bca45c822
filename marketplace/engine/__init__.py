"""
Auction Engine
"""
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
from marketplace.engine.auction_engine import (
    derive_status,
    evaluate_bid,
    evaluate_buy_now,
    evaluate_close_out,
    evaluate_new_listing,
    evaluate_relist,
    minimum_allowed_bid,
)
from marketplace.engine.countdown import format_time_left, seconds_left

__all__ = [
    "AuctionFailure",
    "BidAccepted",
    "BidRecord",
    "BuyNowAccepted",
    "CloseOutAccepted",
    "ClosedReason",
    "FailureReason",
    "ListingDraft",
    "ListingSnapshot",
    "ListingStatus",
    "NewBid",
    "RelistAccepted",
    "derive_status",
    "evaluate_bid",
    "evaluate_buy_now",
    "evaluate_close_out",
    "evaluate_new_listing",
    "evaluate_relist",
    "minimum_allowed_bid",
    "format_time_left",
    "seconds_left",
]
