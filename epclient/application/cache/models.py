"""Data models for the cache module."""

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """Represents a cached response with metadata."""

    key: str
    value: Any
    stored_at: float
    ttl_ms: float
    access_count: int = 0
    last_accessed: float = 0.0

    def __post_init__(self):
        if not self.last_accessed:
            self.last_accessed = self.stored_at

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl_ms

    def is_expired(self, now_ms: float) -> bool:
        """Check if this entry has reached its expiry instant."""
        return now_ms >= self.expires_at

    def update_access(self, now_ms: float):
        """Update access count and timestamp."""
        self.access_count += 1
        self.last_accessed = now_ms
