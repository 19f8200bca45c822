"""
FastAPI Dependencies
"""
from typing import Optional

from fastapi import Header

from marketplace.core.config import get_settings
from marketplace.infrastructure.database import get_db  # noqa: F401
from marketplace.infrastructure.lock import ListingLock
from marketplace.infrastructure.redis_client import get_redis_client


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """
    Caller identity as supplied by the identity provider

    The provider sits in front of this service and forwards the
    authenticated user id in X-User-Id. Missing or blank means signed out.
    """
    if x_user_id is None:
        return None
    x_user_id = x_user_id.strip()
    return x_user_id or None


def get_listing_lock() -> Optional[ListingLock]:
    """Per-listing Redis lock, or None when disabled"""
    if not get_settings().LISTING_LOCK_ENABLED:
        return None
    return ListingLock(get_redis_client())
