"""
Bid Model
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey

from marketplace.models import Base
from marketplace.models.listing import utcnow, as_utc
from marketplace.engine.types import BidRecord


class Bid(Base):
    """Bid database model (rows are insert-only)"""

    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    bidder_id = Column(String, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    previous_price = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    def to_record(self) -> BidRecord:
        return BidRecord(
            bid_id=self.id,
            listing_id=self.listing_id,
            bidder_id=self.bidder_id,
            amount=float(self.amount),
            created_at=as_utc(self.created_at)
        )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "bid_id": self.id,
            "listing_id": self.listing_id,
            "bidder_id": self.bidder_id,
            "amount": self.amount,
            "previous_price": self.previous_price,
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
        }
