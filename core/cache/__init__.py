"""
Offline-tolerant HTTP caching for httpx clients.
"""
from core.cache.store import CachedResponse, ResponseCache
from core.cache.strategies import CACHE_DURATIONS, CACHE_NAMES, classify
from core.cache.transport import StrategyCacheTransport

__all__ = [
    "CachedResponse",
    "ResponseCache",
    "CACHE_DURATIONS",
    "CACHE_NAMES",
    "classify",
    "StrategyCacheTransport",
]
