"""
Seed Demo Listings

Creates the sample listings shown on a fresh marketplace.

Usage:
    python -m marketplace.seed
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from marketplace.core.logging_config import setup_logging
from marketplace.infrastructure.database import SessionLocal, init_db
from marketplace.models import Bid, Listing
from marketplace.services import ListingService

logger = logging.getLogger(__name__)

DEMO_SELLER_ID = "demo-seller"

SAMPLE_LISTINGS = [
    {
        "title": "iPhone 14 Pro 256 GB - Deep Purple",
        "description": (
            "Gently used for 8 months, original box and charger included. "
            "No major scratches, battery health 93%."
        ),
        "category": "Mobiles & Tablets",
        "location": "Dubai, UAE",
        "starting_price": 2850,
        "min_increment": 50,
        "buy_now_price": 3550,
        "duration_hours": 3,
    },
    {
        "title": "3-Seater Fabric Sofa - Light Grey",
        "description": "Comfortable 3-seater sofa, smoke-free home. Minor wear on armrest, no stains.",
        "category": "Home & Furniture",
        "location": "Abu Dhabi, UAE",
        "starting_price": 420,
        "min_increment": 20,
        "buy_now_price": 650,
        "duration_hours": 24,
    },
    {
        "title": "PlayStation 5 Digital Edition",
        "description": "PS5 Digital Edition, one controller, HDMI and power cable included. Lightly used.",
        "category": "Electronics",
        "location": "Sharjah, UAE",
        "starting_price": 1350,
        "min_increment": 50,
        "buy_now_price": 1800,
        "duration_hours": 6,
    },
]


def seed_listings(
    db: Session,
    seller_id: str = DEMO_SELLER_ID,
    clear: bool = False,
    now: Optional[datetime] = None
) -> List[Listing]:
    """
    Create the sample listings through the normal creation rules

    Args:
        db: Database session
        seller_id: Owner of the sample listings
        clear: Delete all bids and listings first
        now: Creation time (defaults to the current UTC time)

    Returns:
        Created listings
    """
    now = now if now is not None else datetime.now(timezone.utc)

    if clear:
        db.execute(delete(Bid))
        db.execute(delete(Listing))
        db.commit()
        logger.info("Cleared existing listings and bids")

    created = []
    for sample in SAMPLE_LISTINGS:
        created.append(ListingService.create_listing(db=db, seller_id=seller_id, now=now, **sample))

    logger.info(f"Seeded {len(created)} listings for {seller_id}")
    return created


if __name__ == "__main__":
    setup_logging()
    init_db()

    db = SessionLocal()
    try:
        seed_listings(db, clear=True)
    finally:
        db.close()
