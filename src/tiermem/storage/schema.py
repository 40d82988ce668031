"""Neo4j schema initialization — constraints and indexes for the durable tiers.

All statements use ``IF NOT EXISTS`` so they are safe to run repeatedly.
Only uniqueness constraints are enforced at the DB level; field presence
is handled by pydantic validation (Community Edition has no existence
constraints).
"""

from __future__ import annotations

from neo4j import AsyncDriver

VECTOR_INDEX_NAME = "knowledge_embedding"

_CONSTRAINTS = [
    "CREATE CONSTRAINT agent_unique_id IF NOT EXISTS FOR (n:Agent) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT episode_unique_id IF NOT EXISTS FOR (n:Episode) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT knowledge_unique_id IF NOT EXISTS FOR (n:Knowledge) REQUIRE n.id IS UNIQUE",
]

_NODE_INDEXES = [
    # Recall: filter by agent, sort by importance then recency
    "CREATE INDEX episode_agent IF NOT EXISTS FOR (n:Episode) ON (n.agent_id)",
    "CREATE INDEX episode_rank IF NOT EXISTS FOR (n:Episode) ON (n.importance, n.created_at)",
    "CREATE INDEX episode_type IF NOT EXISTS FOR (n:Episode) ON (n.type)",
    # Search: org boundary, scope and importance floor
    "CREATE INDEX knowledge_org IF NOT EXISTS FOR (n:Knowledge) ON (n.org_id)",
    "CREATE INDEX knowledge_scope IF NOT EXISTS FOR (n:Knowledge) ON (n.scope)",
    "CREATE INDEX knowledge_created IF NOT EXISTS FOR (n:Knowledge) ON (n.created_at)",
]


def _vector_index_statement(dimensions: int) -> str:
    return (
        f"CREATE VECTOR INDEX {VECTOR_INDEX_NAME} IF NOT EXISTS "
        "FOR (n:Knowledge) ON (n.embedding) "
        "OPTIONS {indexConfig: {"
        f"`vector.dimensions`: {int(dimensions)}, "
        "`vector.similarity_function`: 'cosine'}}"
    )


async def init_schema(
    driver: AsyncDriver,
    *,
    dimensions: int = 1536,
    database: str | None = None,
) -> None:
    """Create all constraints and indexes (idempotent).

    Each statement runs in its own auto-commit transaction; Neo4j rejects
    schema commands batched with other work.
    """
    statements = _CONSTRAINTS + _NODE_INDEXES + [_vector_index_statement(dimensions)]
    async with driver.session(database=database) as session:
        for stmt in statements:
            result = await session.run(stmt)
            await result.consume()
        # Vector index must be ONLINE before the first queryNodes call
        result = await session.run("CALL db.awaitIndexes($timeout)", timeout=300)
        await result.consume()
