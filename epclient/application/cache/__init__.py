"""Cache module for bounded, TTL-aware response caching."""

from .response_cache import ResponseCache
from .models import CacheEntry
from .statistics import CacheStatistics

__all__ = ["ResponseCache", "CacheEntry", "CacheStatistics"]
