"""
Bid API Routes

Handles:
- Placing bids
- Getting bid history
- The caller's own bids and listings
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from marketplace.core.dependencies import get_current_user_id, get_db, get_listing_lock
from marketplace.infrastructure.lock import ListingLock
from marketplace.services import BidService, ListingService

router = APIRouter(tags=["bids"])


# ============================================================================
# REQUEST MODELS
# ============================================================================
class PlaceBidRequest(BaseModel):
    """Request model for placing bid"""
    amount: float


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="You must be signed in to do that.")
    return user_id


# ============================================================================
# ROUTES
# ============================================================================
@router.post("/listings/{listing_id}/bids")
async def place_bid(
    listing_id: int,
    request: PlaceBidRequest,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
    lock: Optional[ListingLock] = Depends(get_listing_lock)
):
    """Place a bid"""
    return BidService.place_bid(listing_id, user_id, request.amount, db, lock=lock)


@router.get("/listings/{listing_id}/bids")
async def get_listing_bids(
    listing_id: int,
    limit: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """
    Get bid history for a listing

    Args:
        listing_id: Listing ID
        limit: Maximum number of bids to return
        db: Database session

    Returns:
        List of bids for this listing, newest first
    """
    listing = ListingService.get_listing(listing_id, db)

    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")

    bids = BidService.get_bid_history(listing_id, db, limit=limit)

    return {
        "listing_id": listing_id,
        "bid_count": listing.bid_count,
        "bids": bids
    }


@router.get("/users/me/bids")
async def get_my_bids(
    limit: int = 50,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id)
):
    """Bids placed by the caller across all listings"""
    user_id = _require_user(user_id)
    bids = BidService.get_user_bids(user_id, db, limit=limit)

    return {
        "user_id": user_id,
        "total_bids": len(bids),
        "bids": bids
    }


@router.get("/users/me/listings")
async def get_my_listings(
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id)
):
    """Listings created by the caller, with relist/close flags"""
    user_id = _require_user(user_id)
    listings = ListingService.get_seller_listings(user_id, db)

    return {
        "user_id": user_id,
        "total": len(listings),
        "listings": listings
    }
