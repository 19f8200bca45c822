"""
Listing lock tests against a mocked Redis client
"""
from unittest.mock import MagicMock

import pytest
import redis

from marketplace.infrastructure.lock import ListingLock


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.set.return_value = True
    return client


class TestListingLock:

    def test_acquire_first_try(self, redis_client):
        lock = ListingLock(redis_client, expire_ms=3000, retry_delay=0, max_retries=3)

        key, request_id, attempt = lock.acquire(42)

        assert key == "listing:lock:42"
        assert attempt == 0
        redis_client.set.assert_called_once_with(key, request_id, nx=True, px=3000)

    def test_acquire_after_retries(self, redis_client):
        redis_client.set.side_effect = [None, None, True]
        lock = ListingLock(redis_client, retry_delay=0, max_retries=5)

        _, _, attempt = lock.acquire(1)

        assert attempt == 2
        assert redis_client.set.call_count == 3

    def test_acquire_timeout(self, redis_client):
        redis_client.set.return_value = None
        lock = ListingLock(redis_client, retry_delay=0, max_retries=4)

        with pytest.raises(TimeoutError):
            lock.acquire(1)
        assert redis_client.set.call_count == 4

    def test_release_uses_owner_check(self, redis_client):
        lock = ListingLock(redis_client, retry_delay=0, max_retries=1)

        lock.release("listing:lock:1", "abc")

        redis_client.eval.assert_called_once_with(ListingLock.UNLOCK_SCRIPT, 1, "listing:lock:1", "abc")

    def test_release_error_is_logged_not_raised(self, redis_client):
        redis_client.eval.side_effect = redis.ConnectionError("gone")
        lock = ListingLock(redis_client, retry_delay=0, max_retries=1)

        lock.release("listing:lock:1", "abc")

    def test_context_manager_releases_on_error(self, redis_client):
        lock = ListingLock(redis_client, retry_delay=0, max_retries=1)

        with pytest.raises(ValueError):
            with lock.lock(7) as retry_count:
                assert retry_count == 0
                raise ValueError("boom")

        redis_client.eval.assert_called_once()
        assert redis_client.eval.call_args.args[2] == "listing:lock:7"

    def test_explicit_zero_settings_are_kept(self, redis_client):
        lock = ListingLock(redis_client, expire_ms=0, retry_delay=0, max_retries=0)

        assert lock.lock_expire_ms == 0
        assert lock.max_retries == 0
        with pytest.raises(TimeoutError):
            lock.acquire(1)
        redis_client.set.assert_not_called()
