"""
Unit tests for TokenCache.

Covers:
- get/put semantics and overwrite
- per-client invalidation used on uninstall
- tenant isolation (a key never resolves to another tenant's token)
- concurrent writers never leave a torn entry
"""

import threading
import time

import pytest

from hipchat_addon.credentials.records import TenantKey
from hipchat_addon.services.token_cache import TokenCache


@pytest.fixture
def cache():
    return TokenCache()


class TestGetPut:

    def test_get_unset_key_misses(self, cache):
        assert cache.get(TenantKey(1, 0)) == (None, False)

    def test_put_then_get_hits(self, cache):
        cache.put(TenantKey(1, 0), "tok1")
        assert cache.get(TenantKey(1, 0)) == ("tok1", True)

    def test_put_overwrites(self, cache):
        key = TenantKey(1, 0)
        cache.put(key, "tok1")
        cache.put(key, "tok2")
        assert cache.get(key) == ("tok2", True)
        assert len(cache) == 1

    def test_keys_are_isolated(self, cache):
        cache.put(TenantKey(1, 0), "group-one")
        cache.put(TenantKey(1, 5), "room-five")
        cache.put(TenantKey(2, 0), "group-two")

        assert cache.get(TenantKey(1, 0))[0] == "group-one"
        assert cache.get(TenantKey(1, 5))[0] == "room-five"
        assert cache.get(TenantKey(2, 0))[0] == "group-two"
        assert cache.get(TenantKey(2, 5)) == (None, False)

    def test_empty_token_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.put(TenantKey(1, 0), "")

    def test_contains(self, cache):
        cache.put(TenantKey(1, 0), "tok1")
        assert TenantKey(1, 0) in cache
        assert TenantKey(1, 1) not in cache


class TestInvalidation:

    def test_invalidate_single_key(self, cache):
        cache.put(TenantKey(1, 0), "tok1", oauth_id="abc")

        assert cache.invalidate(TenantKey(1, 0)) is True
        assert cache.invalidate(TenantKey(1, 0)) is False
        assert cache.get(TenantKey(1, 0)) == (None, False)

    def test_invalidate_client_drops_only_its_keys(self, cache):
        cache.put(TenantKey(1, 0), "tok-abc", oauth_id="abc")
        cache.put(TenantKey(2, 0), "tok-def", oauth_id="def")

        removed = cache.invalidate_client("abc")

        assert removed == [TenantKey(1, 0)]
        assert cache.get(TenantKey(1, 0)) == (None, False)
        assert cache.get(TenantKey(2, 0)) == ("tok-def", True)

    def test_invalidate_client_uses_extra_keys(self, cache):
        # Entry cached without an owner, owner known only from the store
        cache.put(TenantKey(1, 0), "tok1")

        removed = cache.invalidate_client("abc", extra_keys=[TenantKey(1, 0)])

        assert removed == [TenantKey(1, 0)]
        assert len(cache) == 0

    def test_invalidate_client_keeps_key_taken_over_by_another_client(self, cache):
        key = TenantKey(1, 0)
        cache.put(key, "old", oauth_id="abc")
        cache.put(key, "new", oauth_id="def")

        removed = cache.invalidate_client("abc", extra_keys=[key])

        assert removed == []
        assert cache.get(key) == ("new", True)

    def test_invalidate_unknown_client_is_noop(self, cache):
        assert cache.invalidate_client("nobody") == []


class TestConcurrency:

    def test_concurrent_puts_leave_one_whole_token(self, cache):
        key = TenantKey(1, 0)
        tokens = [f"token-{i:03d}-" + "x" * 64 for i in range(50)]
        barrier = threading.Barrier(len(tokens))

        def writer(token):
            barrier.wait()
            cache.put(key, token, oauth_id="abc")

        threads = [threading.Thread(target=writer, args=(t,)) for t in tokens]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        token, found = cache.get(key)
        assert found
        assert token in tokens
        assert len(cache) == 1

    def test_locked_is_reentrant(self, cache):
        key = TenantKey(1, 0)
        with cache.locked(key):
            with cache.locked(key):
                cache.put(key, "tok1")
            assert cache.get(key) == ("tok1", True)

    def test_readers_of_other_keys_not_blocked_by_held_key_lock(self, cache):
        cache.put(TenantKey(2, 0), "other")
        result = {}

        with cache.locked(TenantKey(1, 0)):
            reader = threading.Thread(
                target=lambda: result.setdefault("value", cache.get(TenantKey(2, 0)))
            )
            reader.start()
            reader.join(timeout=2)

        assert result["value"] == ("other", True)

    def test_same_key_is_serialized(self, cache):
        key = TenantKey(1, 0)
        entered = threading.Event()
        result = {}

        def writer():
            entered.set()
            cache.put(key, "from-writer")
            result["done"] = True

        with cache.locked(key):
            thread = threading.Thread(target=writer)
            thread.start()
            assert entered.wait(timeout=2)
            thread.join(timeout=0.1)
            assert "done" not in result

        thread.join(timeout=2)
        assert cache.get(key) == ("from-writer", True)


class TestLockTable:

    def test_locks_released_after_use(self, cache):
        for room_id in range(100):
            key = TenantKey(1, room_id)
            cache.put(key, f"tok-{room_id}", oauth_id=f"client-{room_id}")
            cache.get(key)
            cache.invalidate(key)

        assert cache.lock_count == 0
        assert len(cache) == 0

    def test_lock_kept_while_held_then_dropped(self, cache):
        key = TenantKey(1, 0)

        with cache.locked(key):
            assert cache.lock_count == 1

        assert cache.lock_count == 0

    def test_invalidate_client_releases_locks(self, cache):
        cache.put(TenantKey(1, 0), "tok1", oauth_id="abc")
        cache.put(TenantKey(1, 5), "tok2", oauth_id="abc")

        cache.invalidate_client("abc")

        assert cache.lock_count == 0

    def test_waiter_shares_lock_with_holder(self, cache):
        key = TenantKey(1, 0)
        inside = []
        barrier = threading.Barrier(2)

        def contender():
            barrier.wait()
            with cache.locked(key):
                inside.append("contender")

        thread = threading.Thread(target=contender)
        with cache.locked(key):
            thread.start()
            barrier.wait()
            # The contender is counted against the same slot while it waits
            for _ in range(100):
                if cache._locks[key].users == 2:
                    break
                time.sleep(0.01)
            inside.append("holder")
        thread.join(timeout=2)

        assert inside == ["holder", "contender"]
        assert cache.lock_count == 0
