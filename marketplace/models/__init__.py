"""
Database Models
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models after Base is defined
from marketplace.models.listing import Listing  # noqa: E402
from marketplace.models.bid import Bid  # noqa: E402
from marketplace.engine.types import ListingStatus  # noqa: E402

__all__ = ["Base", "Listing", "ListingStatus", "Bid"]
