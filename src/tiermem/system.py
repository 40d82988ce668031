"""Wiring for a complete memory system.

``MemorySystem.connect(config)`` opens the Neo4j driver and Redis client,
initializes the schema and builds every store and engine on top of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from neo4j import AsyncDriver
from neo4j import AsyncGraphDatabase
from redis.asyncio import Redis  # type: ignore[import-untyped]

from tiermem.audit import AuditLogger
from tiermem.config import MemoryConfig
from tiermem.embedding import build_embedding_adapter
from tiermem.embedding import EmbeddingAdapter
from tiermem.embedding import EmbeddingCache
from tiermem.embedding import EmbeddingProvider
from tiermem.embedding import InMemoryEmbeddingCache
from tiermem.engine.consolidation import ConsolidationEngine
from tiermem.engine.consolidation import ConsolidationResult
from tiermem.engine.context import ContextAssembler
from tiermem.engine.side_effects import SideEffectQueue
from tiermem.memory import CoreMemoryStore
from tiermem.memory import EpisodicMemoryStore
from tiermem.memory import SemanticMemoryStore
from tiermem.memory import WorkingMemoryStore
from tiermem.models.context import AssembledContext
from tiermem.models.working import EntryRole
from tiermem.models.working import WorkingMemoryEntry
from tiermem.storage import init_schema

logger = logging.getLogger(__name__)


@dataclass
class MemorySystem:
    """All four tiers plus the assembler and consolidation engine."""

    config: MemoryConfig
    driver: AsyncDriver
    redis: Redis
    embeddings: EmbeddingProvider
    core: CoreMemoryStore
    working: WorkingMemoryStore
    episodic: EpisodicMemoryStore
    semantic: SemanticMemoryStore
    assembler: ContextAssembler
    consolidator: ConsolidationEngine
    side_effects: SideEffectQueue
    audit: AuditLogger

    @classmethod
    async def connect(
        cls,
        config: MemoryConfig | None = None,
        *,
        embedding_adapter: EmbeddingAdapter | None = None,
        embedding_cache: EmbeddingCache | None = None,
        init_db: bool = True,
    ) -> MemorySystem:
        """Open connections and build the system described by *config*."""
        config = config or MemoryConfig.from_env()
        auth = (
            (config.neo4j.user, config.neo4j.password or "")
            if config.neo4j.user
            else None
        )
        driver = AsyncGraphDatabase.driver(config.neo4j.url, auth=auth)
        if init_db:
            await init_schema(
                driver,
                dimensions=config.embedding.dimensions,
                database=config.neo4j.database,
            )
        redis = Redis.from_url(config.redis.url)
        return cls.build(
            config,
            driver,
            redis,
            embedding_adapter=embedding_adapter,
            embedding_cache=embedding_cache,
        )

    @classmethod
    def build(
        cls,
        config: MemoryConfig,
        driver: AsyncDriver,
        redis: Redis,
        *,
        embedding_adapter: EmbeddingAdapter | None = None,
        embedding_cache: EmbeddingCache | None = None,
    ) -> MemorySystem:
        """Build stores and engines over already-open clients."""
        database = config.neo4j.database
        audit = AuditLogger(config.audit)
        side_effects = SideEffectQueue(config.side_effects, audit_logger=audit)
        embeddings = EmbeddingProvider(
            embedding_adapter or build_embedding_adapter(config.embedding),
            cache=(
                embedding_cache
                if embedding_cache is not None
                else InMemoryEmbeddingCache()
            ),
            config=config.embedding,
        )
        core = CoreMemoryStore(driver, config.core, database=database)
        working = WorkingMemoryStore(redis, config.working)
        episodic = EpisodicMemoryStore(
            driver, config.episodic, side_effects=side_effects, database=database
        )
        semantic = SemanticMemoryStore(
            driver, embeddings, config.semantic, database=database
        )
        return cls(
            config=config,
            driver=driver,
            redis=redis,
            embeddings=embeddings,
            core=core,
            working=working,
            episodic=episodic,
            semantic=semantic,
            assembler=ContextAssembler(
                core, working, episodic, semantic, config.context, audit_logger=audit
            ),
            consolidator=ConsolidationEngine(
                episodic, semantic, working, config.consolidation, audit_logger=audit
            ),
            side_effects=side_effects,
            audit=audit,
        )

    # ----- convenience -----

    async def record_message(
        self, agent_id: str, task_id: str, role: EntryRole | str, content: str
    ) -> None:
        await self.working.append(
            agent_id, task_id, WorkingMemoryEntry(role=EntryRole(role), content=content)
        )

    async def assemble(
        self,
        agent_id: str,
        org_id: str,
        task_goal: str,
        task_id: str,
        **kwargs,
    ) -> AssembledContext:
        return await self.assembler.assemble(
            agent_id, org_id, task_goal, task_id, **kwargs
        )

    async def consolidate(
        self,
        result_text: str,
        goal: str,
        success: bool,
        *,
        agent_id: str,
        org_id: str,
        task_id: str,
        importance: int | None = None,
    ) -> ConsolidationResult:
        return await self.consolidator.consolidate(
            result_text,
            goal,
            success,
            agent_id=agent_id,
            org_id=org_id,
            task_id=task_id,
            importance=importance,
        )

    async def close(self) -> None:
        """Drain side effects, then close both clients."""
        await self.side_effects.close()
        await self.working.close()
        await self.driver.close()
        logger.debug("memory system closed")
