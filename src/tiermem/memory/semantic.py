"""Neo4j-backed semantic memory store.

Knowledge fragments are ``(:Knowledge)`` nodes carrying a fixed-dimension
``embedding`` covered by a cosine vector index.  Writes fail loudly when
no vector can be computed; searches degrade to recency when embedding or
the vector index is unavailable.  The index ranks globally, so an org whose
matches fall outside the candidate window is ranked by an exact scan.
"""

from __future__ import annotations

import logging

from neo4j import AsyncDriver
from neo4j.exceptions import DriverError
from neo4j.exceptions import Neo4jError

from tiermem.config import SemanticConfig
from tiermem.embedding import EmbeddingProvider
from tiermem.errors import DegradedSearchError
from tiermem.errors import EmbeddingError
from tiermem.errors import WriteFailureError
from tiermem.models.episodes import clamp_importance
from tiermem.models.semantic import KnowledgeScope
from tiermem.models.semantic import SemanticFragment
from tiermem.observability import timed
from tiermem.storage.codec import convert_props
from tiermem.storage.codec import to_props
from tiermem.storage.schema import VECTOR_INDEX_NAME

logger = logging.getLogger(__name__)

# Everything except the vector, which search results never carry
_PROJECTION = (
    "k {.id, .org_id, .agent_id, .content, .scope, .source_type, "
    ".importance, .created_at} AS props"
)

# The index ranks across every org; ``scanned`` tells the caller whether
# the candidate window was exhausted before the org filter ran.
_INDEX_QUERY = (
    "CALL db.index.vector.queryNodes($index, $candidates, $embedding) "
    "YIELD node, score "
    "WITH collect({node: node, score: score}) AS hits "
    "RETURN size(hits) AS scanned, "
    "[h IN hits WHERE h.node.org_id = $org_id "
    "AND h.node.importance >= $min_importance "
    "AND ($scope IS NULL OR h.node.scope = $scope) "
    "| {props: properties(h.node), score: h.score}][..$limit] AS matches"
)

_EXACT_QUERY = (
    "MATCH (k:Knowledge {org_id: $org_id}) "
    "WHERE k.importance >= $min_importance "
    "AND ($scope IS NULL OR k.scope = $scope) "
    "AND size(k.embedding) = size($embedding) "
    "WITH k, vector.similarity.cosine(k.embedding, $embedding) AS score "
    f"RETURN {_PROJECTION}, score "
    "ORDER BY score DESC LIMIT $limit"
)

_RECENCY_QUERY = (
    "MATCH (k:Knowledge {org_id: $org_id}) "
    "WHERE k.importance >= $min_importance "
    "AND ($scope IS NULL OR k.scope = $scope) "
    "AND ($agent_id IS NULL OR k.agent_id = $agent_id) "
    f"RETURN {_PROJECTION} "
    "ORDER BY k.created_at DESC LIMIT $limit"
)


class SemanticMemoryStore:
    """Organization knowledge queryable by embedding similarity."""

    def __init__(
        self,
        driver: AsyncDriver,
        embeddings: EmbeddingProvider,
        config: SemanticConfig | None = None,
        *,
        database: str | None = None,
        candidate_pool: int = 200,
    ) -> None:
        self._driver = driver
        self._embeddings = embeddings
        self._config = config or SemanticConfig()
        self._database = database
        self._candidate_pool = candidate_pool

    # ----- write -----

    async def save(
        self,
        org_id: str,
        agent_id: str | None,
        content: str,
        *,
        scope: KnowledgeScope = KnowledgeScope.organization,
        source_type: str = "task_output",
        importance: int = 5,
    ) -> str:
        """Embed *content* and persist it; return the fragment ID.

        ``EmbeddingError`` propagates: content without a vector would be
        unsearchable, so nothing is written in that case.
        """
        embedding = await self._embeddings.embed(content)
        fragment = SemanticFragment(
            org_id=org_id,
            agent_id=agent_id,
            content=content,
            embedding=embedding,
            scope=scope,
            source_type=source_type,
            importance=clamp_importance(importance),
        )
        props = to_props(fragment.model_dump())
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run("CREATE (k:Knowledge $props)", props=props)
                await result.consume()
        except (Neo4jError, DriverError) as exc:
            raise WriteFailureError(f"knowledge save failed for org {org_id}") from exc
        return fragment.id

    async def seed_onboarding(
        self, org_id: str, agent_id: str | None, facts: list[str]
    ) -> list[str]:
        """Save onboarding answers as high-importance organization knowledge."""
        ids: list[str] = []
        for fact in facts:
            ids.append(
                await self.save(
                    org_id,
                    agent_id,
                    fact,
                    scope=KnowledgeScope.organization,
                    source_type="onboarding",
                    importance=self._config.onboarding_importance,
                )
            )
        return ids

    # ----- read -----

    async def search(
        self,
        org_id: str,
        query: str,
        *,
        limit: int | None = None,
        scope: KnowledgeScope | None = None,
        min_importance: int | None = None,
    ) -> list[SemanticFragment]:
        """Return fragments most similar to *query*, annotated with ``similarity``.

        Falls back to the most recent matching fragments (``similarity`` left
        as ``None``) when embedding or vector search fails.  Raises
        ``DegradedSearchError`` only when the fallback fails too.
        """
        params = {
            "org_id": org_id,
            "limit": self._config.default_limit if limit is None else limit,
            "min_importance": (
                self._config.default_min_importance
                if min_importance is None
                else min_importance
            ),
            "scope": scope.value if scope else None,
        }
        if params["limit"] <= 0:
            return []

        with timed("semantic.search"):
            try:
                embedding = await self._embeddings.embed(query)
                return await self._vector_search(embedding, params)
            except (EmbeddingError, Neo4jError, DriverError) as exc:
                logger.warning(
                    "semantic search degraded to recency org=%s: %s", org_id, exc
                )
            return await self._recency_search(params)

    async def list_recent(
        self,
        org_id: str,
        *,
        agent_id: str | None = None,
        scope: KnowledgeScope | None = None,
        limit: int | None = None,
        min_importance: int = 1,
    ) -> list[SemanticFragment]:
        """Return the org's most recent fragments, newest first.

        *agent_id* narrows the listing to fragments that agent produced.
        Raises ``DegradedSearchError`` when the store is unreachable.
        """
        params = {
            "org_id": org_id,
            "limit": self._config.list_limit if limit is None else limit,
            "min_importance": min_importance,
            "scope": scope.value if scope else None,
        }
        if params["limit"] <= 0:
            return []
        return await self._recency_search(params, agent_id=agent_id)

    async def _vector_search(
        self, embedding: list[float], params: dict
    ) -> list[SemanticFragment]:
        candidates = max(self._candidate_pool, params["limit"])
        scanned, fragments = await self._index_search(embedding, params, candidates)
        if len(fragments) < params["limit"] and scanned >= candidates:
            # Window filled before the org filter; rank this org exactly
            logger.debug(
                "vector window saturated org=%s matched=%d, using exact scan",
                params["org_id"],
                len(fragments),
            )
            return await self._exact_search(embedding, params)
        return fragments

    async def _index_search(
        self, embedding: list[float], params: dict, candidates: int
    ) -> tuple[int, list[SemanticFragment]]:
        async with self._driver.session(database=self._database) as session:
            result = await session.run(
                _INDEX_QUERY,
                index=VECTOR_INDEX_NAME,
                candidates=candidates,
                embedding=embedding,
                **params,
            )
            record = await result.single()
        if record is None:
            return 0, []
        fragments = []
        for match in record["matches"]:
            props = convert_props(match["props"])
            props.pop("embedding", None)
            fragments.append(
                SemanticFragment.model_validate(
                    {**props, "similarity": float(match["score"])}
                )
            )
        return record["scanned"], fragments

    async def _exact_search(
        self, embedding: list[float], params: dict
    ) -> list[SemanticFragment]:
        async with self._driver.session(database=self._database) as session:
            result = await session.run(_EXACT_QUERY, embedding=embedding, **params)
            records = [record async for record in result]
        return [
            SemanticFragment.model_validate(
                {**convert_props(r["props"]), "similarity": float(r["score"])}
            )
            for r in records
        ]

    async def _recency_search(
        self, params: dict, *, agent_id: str | None = None
    ) -> list[SemanticFragment]:
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run(
                    _RECENCY_QUERY, agent_id=agent_id, **params
                )
                records = [record async for record in result]
        except (Neo4jError, DriverError) as exc:
            raise DegradedSearchError(
                f"semantic search unavailable for org {params['org_id']}"
            ) from exc
        return [
            SemanticFragment.model_validate(convert_props(r["props"]))
            for r in records
        ]
