"""
Caching Module - Render state and in-memory caches.

Provides:
- RenderCache: the "rendered" flag of a Source or Mixture plus its file
- Derived file naming for target/interferer/copy files
- LRUCache: small thread-safe LRU used for loaded HRTF datasets

A RenderCache is a view over files on disk, not their owner. Files survive
the objects that wrote them; `rendered` only says whether the file at
`filename` reflects the current properties of its entity.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

TARGET_SUFFIX = "_target"
INTERFERER_SUFFIX = "_interferer"
COPY_SUFFIX = "_copy"


def append_filename(filename: str | os.PathLike | None, suffix: str) -> Path | None:
    """Insert suffix between the stem and the extension of filename.

    Example:
        append_filename("out/mix.wav", "_target")  # out/mix_target.wav
    """
    if filename is None or str(filename) == "":
        return None
    path = Path(filename)
    return path.with_name(f"{path.stem}{suffix}{path.suffix}")


def target_filename(filename: str | os.PathLike | None) -> Path | None:
    return append_filename(filename, TARGET_SUFFIX)


def interferer_filename(filename: str | os.PathLike | None) -> Path | None:
    return append_filename(filename, INTERFERER_SUFFIX)


def copy_filename(filename: str | os.PathLike | None) -> Path | None:
    return append_filename(filename, COPY_SUFFIX)


@dataclass
class RenderCache:
    """Cache-validity flag plus the file it refers to.

    Attributes:
        filename: Backing file (None if unset)
        rendered: True when the file matches the owner's current properties
    """
    filename: Path | None = None
    rendered: bool = False

    def invalidate(self, reason: str = "") -> None:
        if self.rendered:
            logger.debug(f"Cache invalidated for {self.filename} ({reason or 'change'})")
        self.rendered = False

    def validate(self) -> None:
        self.rendered = True

    def hit(self, path: Path | None = None) -> bool:
        """True if rendered and the file (default: self.filename) exists."""
        path = self.filename if path is None else path
        return self.rendered and path is not None and path.is_file()


@dataclass
class CacheStats:
    """Cache statistics."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class LRUCache(Generic[T]):
    """Thread-safe LRU cache with size limit.

    Example:
        cache = LRUCache[HRTFDataset](max_size=8)
        cache.put(key, dataset)
        dataset = cache.get(key)
    """

    def __init__(self, max_size: int = 100):
        self.max_size = max_size
        self._cache: OrderedDict[str, T] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = CacheStats(max_size=max_size)

    def get(self, key: str) -> T | None:
        """Get item from cache, or None if not found."""
        with self._lock:
            if key not in self._cache:
                self._stats.misses += 1
                return None

            # Move to end (most recent)
            self._cache.move_to_end(key)
            self._stats.hits += 1
            return self._cache[key]

    def put(self, key: str, value: T) -> None:
        """Put item in cache, evicting the least recently used if full."""
        with self._lock:
            if key in self._cache:
                del self._cache[key]

            while len(self._cache) >= self.max_size:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]
                self._stats.evictions += 1

            self._cache[key] = value
            self._stats.size = len(self._cache)

    @property
    def stats(self) -> CacheStats:
        return self._stats
