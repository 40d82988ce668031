"""Memory domain — the four tier stores.

- core: durable identity document per agent (Neo4j)
- working: TTL-bound task transcript per (agent, task) (Redis)
- episodic: ranked past outcomes (Neo4j)
- semantic: vector-indexed organization knowledge (Neo4j)
"""

from __future__ import annotations

from tiermem.memory.core import CoreMemoryStore
from tiermem.memory.episodic import EpisodicMemoryStore
from tiermem.memory.semantic import SemanticMemoryStore
from tiermem.memory.working import WorkingMemoryStore

__all__ = [
    "CoreMemoryStore",
    "EpisodicMemoryStore",
    "SemanticMemoryStore",
    "WorkingMemoryStore",
]
