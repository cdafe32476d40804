"""Per-identity response cache for read endpoints."""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable

from refhub.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class ResponseCache:
    """TTL cache keyed by (identity, resource path).

    Entries are grouped per identity so ``invalidate_all`` drops every path
    of one user in a single step. All operations hold one lock; the cache is
    shared by every request handled by the process.

    A miss is reported as ``None``, so ``None`` itself is never cached.
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            default_ttl: Lifetime of entries stored without an explicit TTL
            clock: Monotonic time source in seconds
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[Hashable, dict[str, CacheEntry]] = {}
        self._lock = threading.Lock()

    def get(self, identity: Hashable, resource_path: str) -> Any | None:
        """Return the cached value, or None on a miss or expired entry."""
        with self._lock:
            paths = self._entries.get(identity)
            if not paths:
                return None

            entry = paths.get(resource_path)
            if entry is None:
                return None

            if entry.expires_at <= self._clock():
                del paths[resource_path]
                if not paths:
                    del self._entries[identity]
                return None

            return entry.value

    def put(
        self,
        identity: Hashable,
        resource_path: str,
        value: Any,
        ttl_seconds: int | None = None,
    ) -> None:
        """Store a value for identity+path."""
        if value is None:
            raise ValueError("None cannot be cached")

        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries.setdefault(identity, {})[resource_path] = CacheEntry(
                value=value,
                expires_at=self._clock() + ttl,
            )

    def invalidate_all(self, identity: Hashable) -> int:
        """Drop every entry of one identity.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = len(self._entries.pop(identity, {}))

        if removed:
            logger.debug("cache_invalidated", identity=identity, entries=removed)
        return removed

    def get_or_load(
        self,
        identity: Hashable,
        resource_path: str,
        loader: Callable[[], Any],
        ttl_seconds: int | None = None,
    ) -> Any:
        """Return the cached value or compute, store and return it.

        The loader runs outside the lock; concurrent misses may both load.
        """
        cached = self.get(identity, resource_path)
        if cached is not None:
            return cached

        value = loader()
        self.put(identity, resource_path, value, ttl_seconds)
        return value

    def purge_expired(self) -> int:
        """Remove expired entries of all identities."""
        now = self._clock()
        removed = 0
        with self._lock:
            for identity in list(self._entries):
                paths = self._entries[identity]
                for path in [p for p, e in paths.items() if e.expires_at <= now]:
                    del paths[path]
                    removed += 1
                if not paths:
                    del self._entries[identity]
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(paths) for paths in self._entries.values())
