"""Cache statistics tracking and reporting."""

from typing import Dict, Any


class CacheStatistics:
    """Tracks and manages cache performance statistics."""

    def __init__(self):
        """Initialize cache statistics."""
        self.cache_hits = 0
        self.cache_misses = 0
        self.evictions = 0
        self.expirations = 0
        self.sets = 0

    def record_hit(self):
        """Record a cache hit."""
        self.cache_hits += 1

    def record_miss(self):
        """Record a cache miss."""
        self.cache_misses += 1

    def record_eviction(self, count: int = 1):
        """Record LRU eviction(s)."""
        self.evictions += count

    def record_expiration(self, count: int = 1):
        """Record entries dropped because their TTL elapsed."""
        self.expirations += count

    def record_set(self):
        self.sets += 1

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    def get_stats(self) -> Dict[str, Any]:
        """Get all statistics as a dictionary."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": round(self.hit_rate, 3),
            "evictions": self.evictions,
            "expirations": self.expirations,
            "sets": self.sets,
        }

    def reset(self):
        """Reset all statistics."""
        self.cache_hits = 0
        self.cache_misses = 0
        self.evictions = 0
        self.expirations = 0
        self.sets = 0
