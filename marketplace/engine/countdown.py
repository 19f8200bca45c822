"""
Countdown helpers for display only. They never decide whether an auction is open.
"""
from datetime import datetime
import math

from marketplace.engine.types import ListingSnapshot


def seconds_left(listing: ListingSnapshot, now: datetime) -> int:
    """Whole seconds until ends_at, never negative"""
    remaining = (listing.ends_at - now).total_seconds()
    return max(0, math.floor(remaining))


def format_time_left(seconds: int) -> str:
    """
    Compact countdown text

    Examples:
        200000 -> "2d 7h"
        11520  -> "3h 12m"
        245    -> "4m 5s"
        0      -> "Auction ended"
    """
    if seconds <= 0:
        return "Auction ended"

    days = seconds // (24 * 3600)
    hours = (seconds % (24 * 3600)) // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
