"""Redis-backed working memory store.

Each (agent, task) pair owns one Redis list at
``tiermem:wm:{agent_id}:{task_id}`` holding JSON-encoded entries in
insertion order.  Every append resets the key's TTL, so an active task
never expires mid-flight while an abandoned one is reclaimed by Redis.
"""

from __future__ import annotations

import logging
import math

from redis.asyncio import Redis  # type: ignore[import-untyped]

from tiermem.config import WorkingMemoryConfig
from tiermem.models.working import WorkingMemoryEntry

logger = logging.getLogger(__name__)

_PREFIX = "tiermem:wm"


def _key(agent_id: str, task_id: str) -> str:
    return f"{_PREFIX}:{agent_id}:{task_id}"


class WorkingMemoryStore:
    """Append-only, TTL-bound task transcript."""

    def __init__(
        self,
        redis: Redis,
        config: WorkingMemoryConfig | None = None,
    ) -> None:
        self._redis = redis
        self._config = config or WorkingMemoryConfig()

    @property
    def ttl_seconds(self) -> int:
        return self._config.ttl_seconds

    async def append(
        self, agent_id: str, task_id: str, entry: WorkingMemoryEntry
    ) -> None:
        """Append *entry* and reset the key's TTL in one transaction."""
        key = _key(agent_id, task_id)
        pipe = self._redis.pipeline(transaction=True)
        pipe.rpush(key, entry.model_dump_json())
        pipe.expire(key, self._config.ttl_seconds)
        await pipe.execute()

    async def read(
        self,
        agent_id: str,
        task_id: str,
        max_entries: int | None = None,
    ) -> list[WorkingMemoryEntry]:
        """Return at most the last *max_entries* entries, oldest first."""
        limit = (
            self._config.default_max_entries if max_entries is None else max_entries
        )
        if limit <= 0:
            return []
        raw = await self._redis.lrange(_key(agent_id, task_id), -limit, -1)
        return [WorkingMemoryEntry.model_validate_json(item) for item in raw]

    async def clear(self, agent_id: str, task_id: str) -> None:
        """Drop the whole transcript for one task."""
        await self._redis.delete(_key(agent_id, task_id))

    async def count(self, agent_id: str, task_id: str) -> int:
        """Number of live entries for one task."""
        return await self._redis.llen(_key(agent_id, task_id))

    async def token_count(self, agent_id: str, task_id: str) -> int:
        """Estimated tokens held by the default read window."""
        entries = await self.read(agent_id, task_id)
        return sum(math.ceil(len(entry.content) / 4) for entry in entries)

    async def close(self) -> None:
        await self._redis.aclose()
