"""
Listing Model
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Enum as SQLEnum
from datetime import datetime, timezone

from marketplace.models import Base
from marketplace.engine.types import ListingSnapshot, ListingStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored in UTC"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Listing(Base):
    """Listing database model"""

    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True)
    location = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    currency = Column(String, nullable=False, default="AED")
    starting_price = Column(Float, nullable=False)
    current_price = Column(Float, nullable=False)
    min_increment = Column(Float, nullable=False)
    buy_now_price = Column(Float, nullable=True)
    started_at = Column(DateTime(timezone=True), default=utcnow)
    ends_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(SQLEnum(ListingStatus), nullable=False, default=ListingStatus.ACTIVE)
    buyer_id = Column(String, nullable=True, index=True)
    bid_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_snapshot(self) -> ListingSnapshot:
        """Convert the stored row into the engine's validated view"""
        return ListingSnapshot(
            listing_id=self.id,
            seller_id=self.seller_id,
            starting_price=float(self.starting_price),
            current_price=float(self.current_price),
            min_increment=float(self.min_increment),
            buy_now_price=float(self.buy_now_price) if self.buy_now_price is not None else None,
            ends_at=as_utc(self.ends_at),
            status=ListingStatus(self.status),
            buyer_id=self.buyer_id,
            bid_count=self.bid_count or 0,
            version=self.version
        )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "listing_id": self.id,
            "seller_id": self.seller_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "image_url": self.image_url,
            "currency": self.currency,
            "starting_price": self.starting_price,
            "current_price": self.current_price,
            "min_increment": self.min_increment,
            "buy_now_price": self.buy_now_price,
            "started_at": as_utc(self.started_at).isoformat() if self.started_at else None,
            "ends_at": as_utc(self.ends_at).isoformat() if self.ends_at else None,
            "stored_status": self.status.value if isinstance(self.status, ListingStatus) else self.status,
            "buyer_id": self.buyer_id,
            "bid_count": self.bid_count,
            "version": self.version,
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
        }
