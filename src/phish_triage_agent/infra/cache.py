"""In-memory cache utilities."""

from __future__ import annotations

import time
from typing import Callable, Protocol


class CacheStore(Protocol):
    def get(self, key: str) -> object | None: ...

    def set(self, key: str, value: object, ttl_s: float) -> None: ...


class TTLCache:
    """Process-wide key/value store with per-entry expiry.

    Expired entries are swept on every write, and `maxsize` bounds the live
    entries by evicting the one closest to expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, maxsize: int = 10_000) -> None:
        self._store: dict[str, tuple[float, object]] = {}
        self._clock = clock
        self._maxsize = max(1, int(maxsize))

    def get(self, key: str, default: object | None = None) -> object | None:
        entry = self._store.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._store.pop(key, None)
            return default
        return value

    def set(self, key: str, value: object, ttl_s: float) -> None:
        now = self._clock()
        self._purge(now)
        if key not in self._store and len(self._store) >= self._maxsize:
            soonest = min(self._store, key=lambda item: self._store[item][0])
            del self._store[soonest]
        self._store[key] = (now + max(0.0, float(ttl_s)), value)

    def _purge(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._store.items() if now >= expires_at]
        for key in expired:
            del self._store[key]

    def __len__(self) -> int:
        return len(self._store)
