"""Concrete embedding adapters and factory helpers."""

from __future__ import annotations

import asyncio
import hashlib
import json
import math
import re
from typing import Protocol
from typing import runtime_checkable
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from tiermem.config import EmbeddingConfig
from tiermem.errors import EmbeddingError


@runtime_checkable
class EmbeddingAdapter(Protocol):
    """Protocol for text→vector providers."""

    async def embed(self, text: str) -> list[float]: ...


class OpenAICompatibleEmbeddingAdapter:
    """OpenAI-compatible ``/embeddings`` adapter."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._embed_sync, text)

    def _embed_sync(self, text: str) -> list[float]:
        payload = {"model": self._model, "input": text}
        request = Request(
            url=f"{self._base_url}/embeddings",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise EmbeddingError(f"provider HTTP {exc.code}: {detail[:200]}") from exc
        except URLError as exc:
            raise EmbeddingError(f"provider network error: {exc.reason}") from exc
        except OSError as exc:
            raise EmbeddingError(f"provider IO error: {exc}") from exc

        try:
            vector = json.loads(raw)["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingError(
                "provider response missing data[0].embedding"
            ) from exc

        if not isinstance(vector, list) or not vector:
            raise EmbeddingError("provider returned an empty embedding")
        return [float(v) for v in vector]


_WORD_RE = re.compile(r"[a-z0-9]+")


class HashEmbeddingAdapter:
    """Deterministic offline adapter (feature hashing over word tokens).

    Texts that share words get positive cosine similarity, which is enough
    for local development and tests without an embedding service.
    """

    def __init__(self, dimensions: int = 1536) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for token in _WORD_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimensions
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            # Cosine is undefined on the zero vector
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]


def build_embedding_adapter(config: EmbeddingConfig) -> EmbeddingAdapter:
    """Create a concrete adapter from ``EmbeddingConfig``."""
    provider = config.provider.strip().lower()
    if provider == "openai":
        if not config.api_key:
            raise ValueError("embedding.api_key is required when provider='openai'")
        return OpenAICompatibleEmbeddingAdapter(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )
    if provider == "hash":
        return HashEmbeddingAdapter(config.dimensions)
    raise ValueError(
        f"Unsupported embedding.provider '{config.provider}'. "
        "Supported providers: openai, hash."
    )
