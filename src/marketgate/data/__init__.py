"""Response caching."""

from marketgate.data.cache import CacheEntry, CacheStats, ResponseCache


__all__ = ["CacheEntry", "CacheStats", "ResponseCache"]
