"""Neo4j-backed core memory store.

One ``(:Agent)`` node per agent holds the flattened ``CoreMemory``
document.  Every update is a read-merge-write; merges for the same agent
are serialized by an in-process lock and guarded across processes by a
``version`` property that the write must still match.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from datetime import datetime
from datetime import timezone

from neo4j import AsyncDriver
from neo4j.exceptions import DriverError
from neo4j.exceptions import Neo4jError

from tiermem.config import CoreMemoryConfig
from tiermem.errors import AgentNotFoundError
from tiermem.errors import ConcurrentUpdateError
from tiermem.errors import WriteFailureError
from tiermem.models.core import apply_patch
from tiermem.models.core import CoreMemory
from tiermem.models.core import CoreMemoryPatch
from tiermem.models.core import Identity
from tiermem.models.core import Organization

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

_ORG_FIELDS = ("name", "description", "industry", "stage", "values")


def _flatten(core: CoreMemory) -> dict:
    props: dict = {
        "name": core.identity.name,
        "role": core.identity.role,
        "persona": core.identity.persona,
        "directives": list(core.directives),
        "pinned_facts": list(core.pinned_facts),
    }
    for field_name in _ORG_FIELDS:
        props[f"org_{field_name}"] = getattr(core.organization, field_name)
    return props


def _unflatten(props: dict) -> CoreMemory:
    organization = Organization(
        **{
            field_name: props[f"org_{field_name}"]
            for field_name in _ORG_FIELDS
            if props.get(f"org_{field_name}") is not None
        }
    )
    return CoreMemory(
        identity=Identity(
            name=props["name"],
            role=props["role"],
            persona=props.get("persona") or Identity.model_fields["persona"].default,
        ),
        organization=organization,
        directives=list(props.get("directives") or []),
        pinned_facts=list(props.get("pinned_facts") or []),
    )


# ---------------------------------------------------------------------------
# CoreMemoryStore
# ---------------------------------------------------------------------------


class CoreMemoryStore:
    """Durable identity, organization profile, directives and pinned facts."""

    def __init__(
        self,
        driver: AsyncDriver,
        config: CoreMemoryConfig | None = None,
        *,
        database: str | None = None,
    ) -> None:
        self._driver = driver
        self._config = config or CoreMemoryConfig()
        self._database = database
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # ----- read -----

    async def get(self, agent_id: str) -> CoreMemory:
        """Return the agent's core memory or raise ``AgentNotFoundError``."""
        core, _ = await self._load(agent_id)
        return core

    async def _load(self, agent_id: str) -> tuple[CoreMemory, int]:
        query = "MATCH (a:Agent {id: $id}) RETURN properties(a) AS props"
        async with self._driver.session(database=self._database) as session:
            result = await session.run(query, id=agent_id)
            record = await result.single()
        if record is None:
            raise AgentNotFoundError(agent_id)
        props = record["props"]
        return _unflatten(props), int(props.get("version", 0))

    # ----- write -----

    async def create(
        self,
        agent_id: str,
        core: CoreMemory,
        *,
        org_id: str | None = None,
    ) -> None:
        """Create (or fully replace) the core memory record for *agent_id*."""
        props = _flatten(core)
        props["updated_at"] = datetime.now(timezone.utc)
        if org_id is not None:
            props["org_id"] = org_id
        query = (
            "MERGE (a:Agent {id: $id}) "
            "SET a += $props, a.version = coalesce(a.version, 0) + 1"
        )
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run(query, id=agent_id, props=props)
                await result.consume()
        except (Neo4jError, DriverError) as exc:
            raise WriteFailureError(f"core memory init failed for {agent_id}") from exc

    async def merge(self, agent_id: str, patch: CoreMemoryPatch) -> CoreMemory:
        """Deep-merge *patch* into the agent's record and return the result.

        Never creates a record: an unknown agent raises ``AgentNotFoundError``.
        """
        return await self._update(agent_id, lambda _current: patch)

    async def add_directive(self, agent_id: str, text: str) -> CoreMemory:
        """Append a standing order, keeping only the most recent ones."""
        limit = self._config.max_directives
        return await self._update(
            agent_id,
            lambda current: CoreMemoryPatch(
                directives=[*current.directives, text][-limit:]
            ),
        )

    async def add_pin(self, agent_id: str, fact: str) -> CoreMemory:
        """Pin a fact to always-in-context memory, keeping the most recent ones."""
        limit = self._config.max_pinned_facts
        return await self._update(
            agent_id,
            lambda current: CoreMemoryPatch(
                pinned_facts=[*current.pinned_facts, fact][-limit:]
            ),
        )

    async def _update(
        self,
        agent_id: str,
        make_patch: Callable[[CoreMemory], CoreMemoryPatch],
    ) -> CoreMemory:
        lock = self._locks.get(agent_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[agent_id] = lock

        async with lock:
            for attempt in range(1, self._config.max_merge_retries + 1):
                current, version = await self._load(agent_id)
                updated = apply_patch(current, make_patch(current))
                if await self._write_if_version(agent_id, updated, version):
                    return updated
                logger.info(
                    "core memory version conflict agent=%s attempt=%d",
                    agent_id,
                    attempt,
                )
        raise ConcurrentUpdateError(
            f"core memory for {agent_id} changed concurrently "
            f"{self._config.max_merge_retries} times"
        )

    async def _write_if_version(
        self, agent_id: str, core: CoreMemory, version: int
    ) -> bool:
        props = _flatten(core)
        props["updated_at"] = datetime.now(timezone.utc)
        query = (
            "MATCH (a:Agent {id: $id}) "
            "WHERE coalesce(a.version, 0) = $version "
            "SET a += $props, a.version = $version + 1 "
            "RETURN a.version AS version"
        )
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run(
                    query, id=agent_id, version=version, props=props
                )
                record = await result.single()
        except (Neo4jError, DriverError) as exc:
            raise WriteFailureError(f"core memory merge failed for {agent_id}") from exc
        return record is not None
