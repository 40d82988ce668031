"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.  Plain
defaults can be overridden at construction time; ``MemoryConfig.from_env``
reads the three connection settings (embedding service, durable store,
ephemeral store) from ``TIERMEM_*`` environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field

_ENV_PREFIX = "TIERMEM_"


@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding service settings."""

    provider: str = "openai"
    model: str = "text-embedding-3-small"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    dimensions: int = 1536
    timeout_seconds: float = 30.0
    # Cache key is this many leading characters of the input
    cache_key_chars: int = 200
    max_input_chars: int = 8000


@dataclass(frozen=True)
class Neo4jConfig:
    """Durable store connection (core, episodic and semantic tiers)."""

    url: str = "bolt://localhost:7687"
    user: str | None = None
    password: str | None = None
    database: str | None = None


@dataclass(frozen=True)
class RedisConfig:
    """Ephemeral store connection (working memory tier)."""

    url: str = "redis://localhost:6379"


@dataclass(frozen=True)
class WorkingMemoryConfig:
    """Working memory lifetime and read window."""

    ttl_seconds: int = 60 * 60 * 4
    default_max_entries: int = 20


@dataclass(frozen=True)
class CoreMemoryConfig:
    """Bounded lists on the core memory record."""

    max_directives: int = 10
    max_pinned_facts: int = 20
    max_merge_retries: int = 3


@dataclass(frozen=True)
class EpisodicConfig:
    """Recall defaults for the episodic tier."""

    default_limit: int = 10
    default_min_importance: int = 3
    correction_importance: int = 9


@dataclass(frozen=True)
class SemanticConfig:
    """Search defaults for the semantic tier."""

    default_limit: int = 8
    default_min_importance: int = 3
    onboarding_importance: int = 8
    list_limit: int = 20


@dataclass(frozen=True)
class ContextConfig:
    """Token budget and per-tier limits used during assembly."""

    max_tokens: int = 6000
    working_max_entries: int = 20
    episode_limit: int = 6
    episode_min_importance: int = 4
    semantic_limit: int = 6
    trimmed_limit: int = 3
    agent_memory_limit: int = 15


@dataclass(frozen=True)
class ConsolidationConfig:
    """Tuneable parameters for post-task consolidation."""

    default_importance: int = 5
    failure_importance_bonus: int = 2
    promotion_min_chars: int = 100
    promotion_max_chars: int = 500
    summary_max_chars: int = 300


@dataclass(frozen=True)
class SideEffectConfig:
    """Background queue for advisory writes (access counters)."""

    max_pending: int = 1000


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "tiermem_audit.jsonl"
    enabled: bool = True


@dataclass(frozen=True)
class MemoryConfig:
    """Aggregate configuration for a fully wired memory system."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    neo4j: Neo4jConfig = field(default_factory=Neo4jConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    working: WorkingMemoryConfig = field(default_factory=WorkingMemoryConfig)
    core: CoreMemoryConfig = field(default_factory=CoreMemoryConfig)
    episodic: EpisodicConfig = field(default_factory=EpisodicConfig)
    semantic: SemanticConfig = field(default_factory=SemanticConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    consolidation: ConsolidationConfig = field(default_factory=ConsolidationConfig)
    side_effects: SideEffectConfig = field(default_factory=SideEffectConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> MemoryConfig:
        """Build a config from ``TIERMEM_*`` variables, defaulting the rest."""
        env = os.environ if environ is None else environ

        def _get(name: str, default: str | None = None) -> str | None:
            return env.get(f"{_ENV_PREFIX}{name}", default)

        embedding_defaults = EmbeddingConfig()
        embedding = EmbeddingConfig(
            provider=_get("EMBEDDING_PROVIDER", embedding_defaults.provider),
            model=_get("EMBEDDING_MODEL", embedding_defaults.model),
            api_key=_get("EMBEDDING_API_KEY"),
            base_url=_get("EMBEDDING_BASE_URL", embedding_defaults.base_url),
            dimensions=int(
                _get("EMBEDDING_DIMENSIONS", str(embedding_defaults.dimensions))
            ),
        )
        neo4j = Neo4jConfig(
            url=_get("NEO4J_URL", Neo4jConfig.url),
            user=_get("NEO4J_USER"),
            password=_get("NEO4J_PASSWORD"),
            database=_get("NEO4J_DATABASE"),
        )
        redis = RedisConfig(url=_get("REDIS_URL", RedisConfig.url))
        audit = AuditConfig(
            file_path=_get("AUDIT_FILE", AuditConfig.file_path),
            enabled=_get("AUDIT_ENABLED", "true").strip().lower()
            not in {"0", "false", "no"},
        )
        return cls(embedding=embedding, neo4j=neo4j, redis=redis, audit=audit)
