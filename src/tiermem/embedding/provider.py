"""Embedding provider: adapter call plus prefix-keyed cache."""

from __future__ import annotations

import logging

from tiermem.config import EmbeddingConfig
from tiermem.embedding.adapters import EmbeddingAdapter
from tiermem.embedding.cache import EmbeddingCache
from tiermem.embedding.cache import InMemoryEmbeddingCache
from tiermem.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingProvider:
    """Turns text into vectors for the semantic tier.

    The cache key is the first ``cache_key_chars`` characters of the input,
    which caps key size; inputs sharing that prefix share a vector.  Inputs
    are truncated to ``max_input_chars`` before reaching the adapter.
    """

    def __init__(
        self,
        adapter: EmbeddingAdapter,
        *,
        cache: EmbeddingCache | None = None,
        config: EmbeddingConfig | None = None,
    ) -> None:
        self._adapter = adapter
        self._cache = cache if cache is not None else InMemoryEmbeddingCache()
        self._config = config or EmbeddingConfig()

    async def embed(self, text: str) -> list[float]:
        """Return the embedding for *text*, raising ``EmbeddingError`` on failure.

        Cache failures never fail the call: a broken read counts as a miss
        and a broken write is skipped.
        """
        key = text[: self._config.cache_key_chars]
        try:
            cached = self._cache.get(key)
        except Exception as exc:
            logger.warning("embedding cache read failed, treating as miss: %s", exc)
            cached = None
        if cached is not None:
            return cached

        vector = await self._adapter.embed(text[: self._config.max_input_chars])
        if not vector:
            raise EmbeddingError("embedding adapter returned an empty vector")
        try:
            self._cache.set(key, vector)
        except Exception as exc:
            logger.warning("embedding cache write failed, not cached: %s", exc)
        logger.debug("embedded %d chars (cache miss)", len(text))
        return vector
