"""In-memory TTL cache shared by discovery and extraction.

Entries are immutable once written. Expired entries are removed lazily when
read, and in bulk by ``sweep()`` which also runs automatically on writes once
``sweep_interval_seconds`` has passed since the previous sweep.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Callable

from loguru import logger

from recipe_finder.tools.web_utils import canonical_url

CACHE_VERSION = 1


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float


def fingerprint(kind: str, *parts: Any) -> str:
    """Deterministic cache key from normalized request parameters."""
    normalized: list[str] = []
    for part in parts:
        text = str(part).strip()
        if text.startswith(("http://", "https://")):
            text = canonical_url(text)
        else:
            text = " ".join(text.lower().split())
        normalized.append(text)
    material = f"v{CACHE_VERSION}|{kind}|" + "|".join(normalized)
    return sha256(material.encode("utf-8")).hexdigest()


class TTLCache:
    def __init__(
        self,
        *,
        default_ttl_seconds: float = 24 * 3600,
        sweep_interval_seconds: float = 3600,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl_seconds = max(float(default_ttl_seconds), 0.0)
        self.sweep_interval_seconds = max(float(sweep_interval_seconds), 0.0)
        self.max_entries = max(int(max_entries), 1)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(float(ttl_seconds), 0.0)
        if ttl == 0:
            return
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.sweep_interval_seconds:
                self._sweep_locked(now)
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=now + ttl)
            if len(self._entries) > self.max_entries:
                oldest = min(self._entries.values(), key=lambda item: item.expires_at)
                del self._entries[oldest.key]
                self._evictions += 1

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)
        self._last_sweep = now
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
