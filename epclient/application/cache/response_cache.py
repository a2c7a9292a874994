"""Bounded response cache with per-entry TTL and LRU eviction."""

import json
from collections import OrderedDict
from typing import Any, Dict, Mapping, Optional

from .models import CacheEntry
from .statistics import CacheStatistics
from ...constants import DEFAULT_CACHE_TTL_MS, DEFAULT_MAX_CACHE_ENTRIES
from ...infrastructure.clock import Clock, DEFAULT_CLOCK
from ...logging import debug, LogRecord, LogEvent


class ResponseCache:
    """
    Key/value store for parsed EP API responses.

    Entries expire ``ttl_ms`` after they were stored and are purged lazily:
    on the read that finds them stale, or by the sweep that runs when the
    store is full. Recency is tracked by position in an ``OrderedDict``: every
    ``get`` hit and every ``set`` moves the key to the end, so the head is
    always the least recently used entry. Entries touched at the same instant
    are therefore ordered by the sequence of touches, which among entries
    never read is their insertion order.

    All methods are synchronous; nothing here suspends, so concurrent tasks on
    one event loop cannot interleave inside an operation.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_CACHE_ENTRIES,
        ttl_ms: float = DEFAULT_CACHE_TTL_MS,
        clock: Clock = DEFAULT_CLOCK,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        self.max_entries = max_entries
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._statistics = CacheStatistics()

    @staticmethod
    def make_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Normalize an endpoint and its query parameters into a cache key.

        Parameter order never changes the key, ``None`` values are dropped and
        a leading slash on the endpoint is ignored.
        """
        normalized = {
            str(k): v for k, v in (params or {}).items() if v is not None
        }
        return json.dumps(
            {"endpoint": endpoint.lstrip("/"), "params": normalized},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a cached value.

        Args:
            key: Cache key
            default: Returned when the key is missing or expired; pass a
                sentinel to tell a cached ``None`` apart from a miss

        Returns:
            The stored value, or ``default``
        """
        entry = self._entries.get(key)
        if entry is None:
            self._statistics.record_miss()
            return default

        now = self._clock.monotonic_ms()
        if entry.is_expired(now):
            del self._entries[key]
            self._statistics.record_expiration()
            self._statistics.record_miss()
            return default

        entry.update_access(now)
        self._entries.move_to_end(key)
        self._statistics.record_hit()
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[float] = None) -> None:
        """Insert or overwrite ``key``, evicting the LRU entry when full."""
        ttl = self.ttl_ms if ttl_ms is None else ttl_ms
        if ttl <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl}")
        now = self._clock.monotonic_ms()

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            self.purge_expired()
            while len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._statistics.record_eviction()
                debug(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message="Evicted least recently used cache entry",
                        data={"cache_key": evicted_key[:80]},
                    )
                )

        self._entries[key] = CacheEntry(
            key=key, value=value, stored_at=now, ttl_ms=ttl
        )
        self._statistics.record_set()

    def invalidate(self, key: str) -> bool:
        """Remove ``key``; returns whether an entry was present."""
        return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock.monotonic_ms()
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for k in expired:
            del self._entries[k]
        if expired:
            self._statistics.record_expiration(len(expired))
        return len(expired)

    def clear(self) -> None:
        """Clear all cache entries and reset statistics."""
        self._entries.clear()
        self._statistics.reset()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics including current occupancy."""
        stats = self._statistics.get_stats()
        stats.update(
            {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_ms": self.ttl_ms,
            }
        )
        return stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired(self._clock.monotonic_ms())
