"""
Service-layer exceptions

Engine failures come back as values; the services raise them as
AuctionRuleError so routes and handlers deal with one exception family.
"""
from typing import Optional

from marketplace.engine.types import AuctionFailure, ClosedReason, FailureReason


class MarketplaceError(Exception):
    """Base exception for marketplace service errors"""
    status_code = 400
    error_code = "MARKETPLACE_ERROR"

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.error_code,
            "message": str(self),
        }


_STATUS_CODES = {
    FailureReason.NOT_FOUND: 404,
    FailureReason.UNAUTHENTICATED: 401,
    FailureReason.FORBIDDEN: 403,
    FailureReason.SELF_BID_REJECTED: 403,
    FailureReason.SELF_PURCHASE_REJECTED: 403,
    FailureReason.AUCTION_CLOSED: 409,
    FailureReason.NOT_RELISTABLE: 409,
    FailureReason.NOT_CLOSABLE: 409,
    FailureReason.NO_WINNING_BID: 409,
    FailureReason.INVALID_LISTING_STATE: 409,
}


def format_amount(value: float) -> str:
    """2850 -> "2,850", 12.5 -> "12.50" """
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def failure_message(failure: AuctionFailure, currency: str = "AED") -> str:
    """User-facing text for an engine failure"""
    reason = failure.reason

    if reason == FailureReason.NOT_FOUND:
        return "Listing not found."
    if reason == FailureReason.AUCTION_CLOSED:
        if failure.closed_reason == ClosedReason.SOLD:
            return "This item has been sold."
        return "The auction has already ended."
    if reason == FailureReason.UNAUTHENTICATED:
        return "You must be signed in to do that."
    if reason == FailureReason.SELF_BID_REJECTED:
        return "You cannot bid on your own listing."
    if reason == FailureReason.SELF_PURCHASE_REJECTED:
        return "You cannot buy your own listing."
    if reason == FailureReason.INVALID_AMOUNT:
        return failure.detail or "Enter a valid positive number."
    if reason == FailureReason.BID_TOO_LOW:
        return f"Your bid must be at least {format_amount(failure.minimum_allowed_bid)} {currency}."
    if reason == FailureReason.BUY_NOW_UNAVAILABLE:
        if failure.detail:
            return "Buy Now is no longer available for this listing."
        return "This listing has no Buy Now price."
    if reason == FailureReason.FORBIDDEN:
        return "Only the seller can do that."
    if reason == FailureReason.NOT_RELISTABLE:
        return "Only ended, unsold listings can be relisted."
    if reason == FailureReason.INVALID_DURATION:
        return "Duration must be a positive number."
    if reason == FailureReason.INVALID_LISTING_STATE:
        return "This listing has invalid stored data and cannot be changed."
    if reason == FailureReason.NOT_CLOSABLE:
        return "The auction is still running."
    if reason == FailureReason.NO_WINNING_BID:
        return "There are no bids to accept."
    return reason.value


class AuctionRuleError(MarketplaceError):
    """Raised when the engine refuses an operation"""

    def __init__(self, failure: AuctionFailure, currency: str = "AED"):
        self.failure = failure
        self.status_code = _STATUS_CODES.get(failure.reason, 400)
        self.error_code = failure.reason.value
        super().__init__(failure_message(failure, currency))

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.failure.closed_reason is not None:
            data["closed_reason"] = self.failure.closed_reason.value
        if self.failure.minimum_allowed_bid is not None:
            data["minimum_allowed_bid"] = self.failure.minimum_allowed_bid
        return data


class ConcurrentUpdateError(MarketplaceError):
    """Raised when optimistic writes keep losing to other writers"""
    status_code = 409
    error_code = "CONCURRENT_UPDATE"

    def __init__(self, listing_id: int, attempts: Optional[int] = None):
        self.listing_id = listing_id
        self.attempts = attempts
        super().__init__("This listing was updated by someone else. Please try again.")


class ListingBusyError(MarketplaceError):
    """Raised when the per-listing lock cannot be acquired"""
    status_code = 409
    error_code = "LISTING_BUSY"

    def __init__(self, listing_id: int):
        self.listing_id = listing_id
        super().__init__("This listing is busy. Please try again.")


class InvalidListingInput(MarketplaceError):
    """Raised for listing fields the engine does not check (title etc.)"""
    status_code = 400
    error_code = "INVALID_INPUT"
