"""
Optimistic listing writes

Read the listing, ask the engine, then commit with
UPDATE ... WHERE id = :id AND version = :read_version. A write that matches
no row lost a race: re-read and ask the engine again, backing off
exponentially (10 ms, 20 ms, 40 ms, ...).
"""
import logging
import time
from contextlib import ExitStack
from typing import Callable, List, Optional, Tuple

import redis
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from marketplace.core.config import get_settings
from marketplace.engine.types import AuctionFailure, ListingSnapshot
from marketplace.infrastructure.lock import ListingLock
from marketplace.models import Listing
from marketplace.services.errors import (
    AuctionRuleError,
    ConcurrentUpdateError,
    ListingBusyError,
)

logger = logging.getLogger(__name__)

# decide(snapshot or None) -> accepted decision or AuctionFailure
Decide = Callable[[Optional[ListingSnapshot]], object]
# build_write(decision, snapshot) -> (column values, new rows to insert)
BuildWrite = Callable[[object, ListingSnapshot], Tuple[dict, List[object]]]


def load_listing(db: Session, listing_id: int) -> Optional[Listing]:
    """Fresh read that bypasses whatever the session already holds"""
    query = (
        select(Listing)
        .where(Listing.id == listing_id)
        .execution_options(populate_existing=True)
    )
    return db.execute(query).scalar_one_or_none()


def commit_listing_mutation(
    db: Session,
    listing_id: int,
    decide: Decide,
    build_write: BuildWrite,
    lock: Optional[ListingLock] = None,
    max_retries: Optional[int] = None
):
    """
    Run one read-decide-write cycle for a listing, retrying on conflict

    Args:
        db: Database session
        listing_id: Listing to mutate
        decide: Engine call producing the decision from a fresh snapshot
        build_write: Turns an accepted decision into column values and rows
        lock: Optional per-listing lock held for the whole cycle
        max_retries: Extra attempts after the first (defaults to settings)

    Returns:
        The accepted decision

    Raises:
        AuctionRuleError: The engine refused
        ConcurrentUpdateError: Every attempt lost to a concurrent writer
        ListingBusyError: The lock could not be acquired
    """
    settings = get_settings()
    if max_retries is None:
        max_retries = settings.MUTATION_MAX_RETRIES
    backoff_ms = settings.MUTATION_BACKOFF_MS

    with ExitStack() as stack:
        if lock is not None:
            try:
                stack.enter_context(lock.lock(listing_id))
            except (TimeoutError, redis.RedisError) as e:
                logger.warning(
                    f"Could not lock listing {listing_id}: {e}",
                    extra={'listing_id': listing_id}
                )
                raise ListingBusyError(listing_id) from e

        for attempt in range(max_retries + 1):
            row = load_listing(db, listing_id)
            snapshot = row.to_snapshot() if row is not None else None
            currency = row.currency if row is not None else settings.DEFAULT_CURRENCY

            decision = decide(snapshot)
            if isinstance(decision, AuctionFailure):
                db.rollback()
                raise AuctionRuleError(decision, currency)

            values, new_rows = build_write(decision, snapshot)
            values["version"] = Listing.version + 1

            result = db.execute(
                update(Listing)
                .where(Listing.id == listing_id, Listing.version == snapshot.version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 1:
                for new_row in new_rows:
                    db.add(new_row)
                db.commit()
                return decision

            db.rollback()
            logger.warning(
                "Listing changed during write, retrying",
                extra={'listing_id': listing_id, 'attempt': attempt + 1}
            )
            if attempt < max_retries:
                time.sleep(backoff_ms / 1000)
                backoff_ms *= 2

    raise ConcurrentUpdateError(listing_id, attempts=max_retries + 1)
