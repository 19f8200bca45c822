"""
Listing API Routes

Handles:
- Creating and browsing listings
- Buy now, relist and close-out
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from marketplace.core.dependencies import get_current_user_id, get_db, get_listing_lock
from marketplace.engine import ListingStatus
from marketplace.infrastructure.lock import ListingLock
from marketplace.services import ListingService
from marketplace.services.listing_service import describe_listing

router = APIRouter(prefix="/listings", tags=["listings"])


# ============================================================================
# REQUEST MODELS
# ============================================================================
class CreateListingRequest(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    starting_price: float
    min_increment: float = 10
    buy_now_price: Optional[float] = None
    duration_hours: Optional[float] = None


class RelistRequest(BaseModel):
    duration_hours: Optional[float] = None


# ============================================================================
# ROUTES
# ============================================================================
@router.post("")
async def create_listing(
    request: CreateListingRequest,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id)
):
    """Create a new listing"""
    listing = ListingService.create_listing(
        db=db,
        seller_id=user_id,
        title=request.title,
        description=request.description,
        category=request.category,
        location=request.location,
        image_url=request.image_url,
        starting_price=request.starting_price,
        min_increment=request.min_increment,
        buy_now_price=request.buy_now_price,
        duration_hours=request.duration_hours
    )

    return {
        "success": True,
        "message": "Listing created successfully.",
        "listing": describe_listing(listing, datetime.now(timezone.utc), user_id)
    }


@router.get("")
async def list_listings(
    status: Optional[ListingStatus] = None,
    seller_id: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id)
):
    """List listings, filtered by derived status and/or seller"""
    listings = ListingService.list_listings(
        db=db,
        status=status,
        seller_id=seller_id,
        limit=limit,
        caller_id=user_id
    )

    return {
        "total": len(listings),
        "listings": listings
    }


@router.get("/{listing_id}")
async def get_listing(
    listing_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id)
):
    """Get one listing with its most recent bids"""
    detail = ListingService.get_listing_detail(listing_id, db, caller_id=user_id)

    if detail is None:
        raise HTTPException(status_code=404, detail="Listing not found")

    return detail


@router.get("/{listing_id}/statistics")
async def get_listing_statistics(listing_id: int, db: Session = Depends(get_db)):
    """Get listing statistics"""
    return ListingService.get_listing_statistics(listing_id, db)


@router.post("/{listing_id}/buy-now")
async def buy_now(
    listing_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
    lock: Optional[ListingLock] = Depends(get_listing_lock)
):
    """Buy the item at its buy now price"""
    return ListingService.buy_now(listing_id, user_id, db, lock=lock)


@router.post("/{listing_id}/relist")
async def relist(
    listing_id: int,
    request: Optional[RelistRequest] = None,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
    lock: Optional[ListingLock] = Depends(get_listing_lock)
):
    """Reopen an ended listing (default 72 hours)"""
    duration_hours = request.duration_hours if request is not None else None
    return ListingService.relist(listing_id, user_id, db, duration_hours=duration_hours, lock=lock)


@router.post("/{listing_id}/close")
async def close_out(
    listing_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
    lock: Optional[ListingLock] = Depends(get_listing_lock)
):
    """Sell an ended listing to its highest bidder"""
    return ListingService.close_out(listing_id, user_id, db, lock=lock)
