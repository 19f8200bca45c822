"""
Per-listing distributed lock with retry tracking
"""
import logging
import time
import uuid
import redis
from contextlib import contextmanager

from marketplace.core.config import get_settings

logger = logging.getLogger(__name__)


class ListingLock:
    """
    Redis SET NX PX lock keyed by listing id

    Serialises read-decide-write for one listing across processes. The
    version check in the service layer still runs underneath it.
    """

    # Lua script for atomic unlock
    UNLOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis_client: redis.Redis, expire_ms: int = None,
                 retry_delay: float = None, max_retries: int = None):
        settings = get_settings()
        self.redis = redis_client
        self.lock_expire_ms = expire_ms if expire_ms is not None else settings.LOCK_EXPIRE_MS
        self.retry_delay = retry_delay if retry_delay is not None else settings.LOCK_RETRY_DELAY
        self.max_retries = max_retries if max_retries is not None else settings.LOCK_MAX_RETRIES

    @staticmethod
    def key_for(listing_id: int) -> str:
        return f"listing:lock:{listing_id}"

    def acquire(self, listing_id: int) -> tuple[str, str, int]:
        """
        Try to acquire lock with retry

        Returns: (lock_key, request_id, retry_count)
        Raises: TimeoutError if can't acquire
        """
        lock_key = self.key_for(listing_id)
        request_id = str(uuid.uuid4())

        for attempt in range(self.max_retries):
            acquired = self.redis.set(
                lock_key,
                request_id,
                nx=True,
                px=self.lock_expire_ms
            )

            if acquired:
                return lock_key, request_id, attempt

            if attempt < self.max_retries - 1:
                time.sleep(self.retry_delay)

        raise TimeoutError(f"Could not acquire lock for listing {listing_id}")

    def release(self, lock_key: str, request_id: str):
        """Release lock only if we own it"""
        try:
            self.redis.eval(self.UNLOCK_SCRIPT, 1, lock_key, request_id)
        except redis.RedisError as e:
            # The key expires on its own after lock_expire_ms
            logger.warning(f"Error releasing lock {lock_key}: {e}")

    @contextmanager
    def lock(self, listing_id: int):
        """
        Context manager for easy usage

        Usage:
            with listing_lock.lock(listing_id) as retry_count:
                apply_mutation()
        """
        lock_key, request_id, retry_count = self.acquire(listing_id)

        try:
            yield retry_count
        finally:
            self.release(lock_key, request_id)
