"""
Business Logic Services
"""
from marketplace.services.listing_service import ListingService
from marketplace.services.bid_service import BidService
from marketplace.services.errors import (
    AuctionRuleError,
    ConcurrentUpdateError,
    InvalidListingInput,
    ListingBusyError,
    MarketplaceError,
)

__all__ = [
    "ListingService",
    "BidService",
    "AuctionRuleError",
    "ConcurrentUpdateError",
    "InvalidListingInput",
    "ListingBusyError",
    "MarketplaceError",
]
