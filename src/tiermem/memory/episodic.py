"""Neo4j-backed episodic memory store.

Episodes are append-only ``(:Episode)`` nodes ranked by importance first
and recency second.  Importance is clamped into ``[1, 10]`` here, at the
store boundary, for every write and boost, whatever the caller computed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from datetime import timezone

from neo4j import AsyncDriver
from neo4j.exceptions import DriverError
from neo4j.exceptions import Neo4jError

from tiermem.config import EpisodicConfig
from tiermem.engine.side_effects import SideEffectQueue
from tiermem.errors import DegradedSearchError
from tiermem.errors import WriteFailureError
from tiermem.models.episodes import clamp_importance
from tiermem.models.episodes import Episode
from tiermem.models.episodes import EpisodeOutcome
from tiermem.models.episodes import EpisodeType
from tiermem.storage.codec import from_props
from tiermem.storage.codec import to_props

logger = logging.getLogger(__name__)

_JSON_FIELDS = ("metadata",)


class EpisodicMemoryStore:
    """Ranked records of past task outcomes."""

    def __init__(
        self,
        driver: AsyncDriver,
        config: EpisodicConfig | None = None,
        *,
        side_effects: SideEffectQueue | None = None,
        database: str | None = None,
    ) -> None:
        self._driver = driver
        self._config = config or EpisodicConfig()
        self._side_effects = side_effects
        self._database = database

    # ----- write -----

    async def write(self, episode: Episode) -> str:
        """Persist *episode* and return its ID.

        Raises ``WriteFailureError`` when the store rejects the write.
        """
        stored = episode.model_copy(
            update={"importance": clamp_importance(episode.importance)}
        )
        props = to_props(stored.model_dump(), json_fields=_JSON_FIELDS)
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run("CREATE (e:Episode $props)", props=props)
                await result.consume()
        except (Neo4jError, DriverError) as exc:
            raise WriteFailureError(f"episode write failed for {episode.agent_id}") from exc
        if stored.importance != episode.importance:
            logger.info(
                "episode %s importance clamped %d -> %d",
                stored.id,
                episode.importance,
                stored.importance,
            )
        return stored.id

    async def record_correction(
        self,
        agent_id: str,
        org_id: str,
        task_id: str | None,
        what_happened: str,
        what_should_have_happened: str,
    ) -> str:
        """Write a correction episode at the fixed correction importance."""
        return await self.write(
            Episode(
                agent_id=agent_id,
                org_id=org_id,
                task_id=task_id,
                type=EpisodeType.correction,
                summary=(
                    f"CORRECTION: {what_happened}. "
                    f"Should have: {what_should_have_happened}"
                ),
                outcome=EpisodeOutcome.failure,
                importance=self._config.correction_importance,
                metadata={
                    "what_happened": what_happened,
                    "what_should_have_happened": what_should_have_happened,
                },
            )
        )

    async def boost(self, episode_id: str, new_importance: int) -> bool:
        """Set importance to ``min(new_importance, 10)``.

        Does not enforce non-decrease; callers only ever boost upward.
        Returns ``False`` when the episode does not exist.
        """
        query = (
            "MATCH (e:Episode {id: $id}) SET e.importance = $importance "
            "RETURN e.id AS id"
        )
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run(
                    query, id=episode_id, importance=clamp_importance(new_importance)
                )
                record = await result.single()
        except (Neo4jError, DriverError) as exc:
            raise WriteFailureError(f"episode boost failed for {episode_id}") from exc
        return record is not None

    # ----- read -----

    async def get(self, episode_id: str) -> Episode | None:
        """Retrieve an episode by ID, or ``None`` if not found."""
        query = "MATCH (e:Episode {id: $id}) RETURN properties(e) AS props"
        async with self._driver.session(database=self._database) as session:
            result = await session.run(query, id=episode_id)
            record = await result.single()
        if record is None:
            return None
        return Episode.model_validate(
            from_props(record["props"], json_fields=_JSON_FIELDS)
        )

    async def recall(
        self,
        agent_id: str,
        *,
        limit: int | None = None,
        min_importance: int | None = None,
        episode_type: EpisodeType | None = None,
    ) -> list[Episode]:
        """Return episodes ordered by importance desc, then recency desc.

        Episodes below *min_importance* stay stored but are invisible here.
        Raises ``DegradedSearchError`` when the store is unreachable.
        """
        limit = self._config.default_limit if limit is None else limit
        floor = (
            self._config.default_min_importance
            if min_importance is None
            else min_importance
        )
        if limit <= 0:
            return []
        query = (
            "MATCH (e:Episode {agent_id: $agent_id}) "
            "WHERE e.importance >= $min_importance "
            "AND ($type IS NULL OR e.type = $type) "
            "RETURN properties(e) AS props "
            "ORDER BY e.importance DESC, e.created_at DESC "
            "LIMIT $limit"
        )
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run(
                    query,
                    agent_id=agent_id,
                    min_importance=floor,
                    type=episode_type.value if episode_type else None,
                    limit=limit,
                )
                records = [record async for record in result]
        except (Neo4jError, DriverError) as exc:
            raise DegradedSearchError(f"episode recall failed for {agent_id}") from exc

        episodes = [
            Episode.model_validate(from_props(r["props"], json_fields=_JSON_FIELDS))
            for r in records
        ]
        if episodes and self._side_effects is not None:
            ids = [episode.id for episode in episodes]
            self._side_effects.submit(
                f"episode.access_bump[{len(ids)}]",
                lambda: self._bump_access(ids),
            )
        return episodes

    async def _bump_access(self, episode_ids: list[str]) -> None:
        # Advisory counter: concurrent bumps may interleave (last write wins)
        query = (
            "MATCH (e:Episode) WHERE e.id IN $ids "
            "SET e.access_count = coalesce(e.access_count, 0) + 1, "
            "e.accessed_at = $now"
        )
        async with self._driver.session(database=self._database) as session:
            result = await session.run(
                query, ids=episode_ids, now=datetime.now(timezone.utc)
            )
            await result.consume()
