"""
In-memory access token cache keyed by tenant.

Owned by one LifecycleController; there is no process-wide instance.

Locking:
- each tenant key has its own re-entrant lock guarding its entry
- a short guard lock protects only the lock table and the oauth_id index
- there is no lock held across all tenants
- a key's lock is dropped from the table once nobody holds or waits on it

NO EVICTION: entries live until overwritten, invalidated on uninstall, or
the process restarts. Token expiry handling is out of scope, so a cached
token may be stale; losing the cache is always safe.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from hipchat_addon.credentials.records import TenantKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedToken:
    access_token: str = field(repr=False)
    oauth_id: Optional[str] = None


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class TokenCache:
    """Tenant key -> access token, safe for concurrent use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[TenantKey, _KeyLock] = {}
        self._entries: dict[TenantKey, CachedToken] = {}
        self._by_client: dict[str, set[TenantKey]] = {}

    @contextmanager
    def locked(self, key: TenantKey) -> Iterator[None]:
        """
        Hold the per-key lock; callers use it to make miss-then-fill atomic
        for one tenant. Re-entrant on the same thread.
        """
        with self._guard:
            slot = self._locks.get(key)
            if slot is None:
                slot = _KeyLock()
                self._locks[key] = slot
            # Counted before acquiring, so waiters keep the slot alive
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._locks[key]

    def get(self, key: TenantKey) -> tuple[Optional[str], bool]:
        """Return (token, True) on hit, (None, False) on miss."""
        with self.locked(key):
            entry = self._entries.get(key)
        if entry is None:
            return None, False
        return entry.access_token, True

    def put(self, key: TenantKey, token: str, oauth_id: Optional[str] = None) -> None:
        """Store or overwrite the token for key."""
        if not token:
            raise ValueError("Cannot cache an empty token")
        with self.locked(key):
            previous = self._entries.get(key)
            self._entries[key] = CachedToken(access_token=token, oauth_id=oauth_id)
            with self._guard:
                if previous is not None and previous.oauth_id and previous.oauth_id != oauth_id:
                    self._unindex(previous.oauth_id, key)
                if oauth_id:
                    self._by_client.setdefault(oauth_id, set()).add(key)

    def invalidate(self, key: TenantKey) -> bool:
        """Drop the entry for key. Returns True if something was removed."""
        with self.locked(key):
            entry = self._entries.pop(key, None)
            if entry is not None and entry.oauth_id:
                with self._guard:
                    self._unindex(entry.oauth_id, key)
        return entry is not None

    def invalidate_client(self, oauth_id: str, extra_keys: Optional[list[TenantKey]] = None) -> list[TenantKey]:
        """
        Drop every entry owned by oauth_id.

        Args:
            oauth_id: OAuth client id being uninstalled
            extra_keys: Tenant keys known from the store, for entries cached
                before the owner was recorded

        Returns:
            Keys that were removed
        """
        with self._guard:
            keys = set(self._by_client.pop(oauth_id, set()))
        keys.update(extra_keys or [])

        removed = []
        for key in keys:
            with self.locked(key):
                entry = self._entries.get(key)
                # Never drop a token that a re-install by another client now owns
                if entry is None or (entry.oauth_id and entry.oauth_id != oauth_id):
                    continue
                del self._entries[key]
                removed.append(key)
        return removed

    def _unindex(self, oauth_id: str, key: TenantKey) -> None:
        keys = self._by_client.get(oauth_id)
        if keys is None:
            return
        keys.discard(key)
        if not keys:
            del self._by_client[oauth_id]

    @property
    def lock_count(self) -> int:
        """Number of per-key locks currently in the table."""
        with self._guard:
            return len(self._locks)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def __contains__(self, key: TenantKey) -> bool:
        return self.get(key)[1]
