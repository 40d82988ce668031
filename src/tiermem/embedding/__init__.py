"""Embedding domain — text→vector adapters, caching and the provider."""

from tiermem.embedding.adapters import build_embedding_adapter
from tiermem.embedding.adapters import EmbeddingAdapter
from tiermem.embedding.adapters import HashEmbeddingAdapter
from tiermem.embedding.adapters import OpenAICompatibleEmbeddingAdapter
from tiermem.embedding.cache import EmbeddingCache
from tiermem.embedding.cache import InMemoryEmbeddingCache
from tiermem.embedding.cache import NullEmbeddingCache
from tiermem.embedding.provider import EmbeddingProvider

__all__ = [
    "EmbeddingAdapter",
    "EmbeddingCache",
    "EmbeddingProvider",
    "HashEmbeddingAdapter",
    "InMemoryEmbeddingCache",
    "NullEmbeddingCache",
    "OpenAICompatibleEmbeddingAdapter",
    "build_embedding_adapter",
]
