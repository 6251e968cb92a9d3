"""
In-memory named response caches with insert timestamps.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

# Dropped on store: the body is kept decoded, so these no longer describe it.
_HOP_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


@dataclass
class CachedResponse:
    status_code: int
    headers: List[Tuple[str, str]]
    content: bytes
    cached_at: float

    def age(self, now: float) -> float:
        return now - self.cached_at

    def is_expired(self, max_age: float, now: float) -> bool:
        return self.age(now) > max_age


def clean_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    return [(k, v) for k, v in headers if k.lower() not in _HOP_HEADERS]


class ResponseCache:
    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._caches: Dict[str, "OrderedDict[str, CachedResponse]"] = {}
        self._lock = threading.Lock()

    def _cache(self, name: str) -> "OrderedDict[str, CachedResponse]":
        return self._caches.setdefault(name, OrderedDict())

    def match(self, name: str, key: str) -> Optional[CachedResponse]:
        with self._lock:
            return self._caches.get(name, {}).get(key)

    def put(self, name: str, key: str, status_code: int, headers, content: bytes) -> CachedResponse:
        entry = CachedResponse(status_code, clean_headers(headers), content, self.clock())
        with self._lock:
            cache = self._cache(name)
            cache.pop(key, None)
            cache[key] = entry
        return entry

    def delete(self, name: str, key: str) -> bool:
        with self._lock:
            return self._caches.get(name, {}).pop(key, None) is not None

    def size(self, name: str) -> int:
        with self._lock:
            return len(self._caches.get(name, {}))

    def evict_oldest(self, name: str, max_entries: int, count: int) -> int:
        """When `name` holds more than max_entries, drop the `count` oldest. Returns how many went."""
        with self._lock:
            cache = self._caches.get(name)
            if not cache or len(cache) <= max_entries:
                return 0
            oldest = sorted(cache.items(), key=lambda item: item[1].cached_at)[:count]
            for key, _ in oldest:
                del cache[key]
            return len(oldest)

    def cache_names(self) -> List[str]:
        with self._lock:
            return list(self._caches)

    def drop_caches_except(self, keep: Iterable[str], prefix: str = "") -> List[str]:
        keep = set(keep)
        with self._lock:
            dropped = [n for n in self._caches if n.startswith(prefix) and n not in keep]
            for name in dropped:
                del self._caches[name]
        return dropped

    def clear(self) -> None:
        with self._lock:
            self._caches.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {name: len(entries) for name, entries in self._caches.items()}
