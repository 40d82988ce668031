"""Injectable embedding caches.

Caching is a best-effort optimization: a miss only costs a redundant
provider call, so callers must never rely on an entry being present or
evicted.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Protocol


class EmbeddingCache(Protocol):
    """Key→vector cache used by ``EmbeddingProvider``."""

    def get(self, key: str) -> list[float] | None: ...

    def set(self, key: str, vector: list[float]) -> None: ...


class InMemoryEmbeddingCache:
    """Process-local LRU cache; unbounded when ``max_entries`` is ``None``."""

    def __init__(self, max_entries: int | None = 10_000) -> None:
        self._max_entries = max_entries
        self._entries: OrderedDict[str, list[float]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> list[float] | None:
        vector = self._entries.get(key)
        if vector is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return vector

    def set(self, key: str, vector: list[float]) -> None:
        self._entries[key] = vector
        self._entries.move_to_end(key)
        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class NullEmbeddingCache:
    """Cache that never stores anything."""

    def get(self, key: str) -> list[float] | None:
        return None

    def set(self, key: str, vector: list[float]) -> None:
        return None
