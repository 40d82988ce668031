"""Context assembly under a token budget.

Loads all four tiers concurrently and renders them into one prompt block.
Core and working memory are load-bearing: their failures abort assembly
and they are never trimmed.  Episodic and semantic tiers are soft: a
degraded search empties the tier, and an over-budget render trims both
tiers once before re-rendering.
"""

from __future__ import annotations

import asyncio
import logging

from tiermem.audit import AuditEventType
from tiermem.audit import AuditLogger
from tiermem.config import ContextConfig
from tiermem.engine.render import estimate_tokens
from tiermem.engine.render import render_agent_memory
from tiermem.engine.render import render_context
from tiermem.errors import DegradedSearchError
from tiermem.memory.core import CoreMemoryStore
from tiermem.memory.episodic import EpisodicMemoryStore
from tiermem.memory.semantic import SemanticMemoryStore
from tiermem.memory.working import WorkingMemoryStore
from tiermem.models.context import AssembledContext
from tiermem.models.episodes import Episode
from tiermem.models.semantic import SemanticFragment
from tiermem.observability import timed

logger = logging.getLogger(__name__)


async def _empty() -> list:
    return []


class ContextAssembler:
    """Builds an ``AssembledContext`` for one task invocation."""

    def __init__(
        self,
        core_store: CoreMemoryStore,
        working_store: WorkingMemoryStore,
        episodic_store: EpisodicMemoryStore,
        semantic_store: SemanticMemoryStore,
        config: ContextConfig | None = None,
        *,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._core = core_store
        self._working = working_store
        self._episodic = episodic_store
        self._semantic = semantic_store
        self._config = config or ContextConfig()
        self._audit = audit_logger

    async def assemble(
        self,
        agent_id: str,
        org_id: str,
        task_goal: str,
        task_id: str,
        *,
        max_tokens: int | None = None,
        include_episodes: bool = True,
        include_semantic: bool = True,
    ) -> AssembledContext:
        """Load, render and budget the context for *task_id*.

        Raises ``AgentNotFoundError`` when the agent has no core memory.
        Working memory store errors propagate unchanged.
        """
        budget = self._config.max_tokens if max_tokens is None else max_tokens
        cfg = self._config

        with timed("context.assemble"):
            core, working, episodes, semantic = await asyncio.gather(
                self._core.get(agent_id),
                self._working.read(
                    agent_id, task_id, max_entries=cfg.working_max_entries
                ),
                (
                    self._episodic.recall(
                        agent_id,
                        limit=cfg.episode_limit,
                        min_importance=cfg.episode_min_importance,
                    )
                    if include_episodes
                    else _empty()
                ),
                (
                    self._semantic.search(
                        org_id, task_goal, limit=cfg.semantic_limit
                    )
                    if include_semantic
                    else _empty()
                ),
                return_exceptions=True,
            )

            # Identity first: an agent without core memory must not run
            for loaded in (core, working):
                if isinstance(loaded, BaseException):
                    raise loaded
            episodes = self._soft_tier("episodic", agent_id, episodes)
            semantic = self._soft_tier("semantic", agent_id, semantic)

            context = AssembledContext(
                core=core, working=working, episodes=episodes, semantic=semantic
            )
            self._fit(context, budget)

        logger.debug(
            "assembled context agent=%s task=%s tokens=%d trimmed=%s",
            agent_id,
            task_id,
            context.token_estimate,
            context.trimmed,
        )
        if self._audit is not None:
            await self._audit.record(
                AuditEventType.CONTEXT_ASSEMBLED,
                agent_id=agent_id,
                task_id=task_id,
                token_estimate=context.token_estimate,
                max_tokens=budget,
                trimmed=context.trimmed,
                working=len(context.working),
                episodes=len(context.episodes),
                semantic=len(context.semantic),
            )
        return context

    @staticmethod
    def _soft_tier(
        tier: str, agent_id: str, loaded: object
    ) -> list[Episode] | list[SemanticFragment]:
        if isinstance(loaded, DegradedSearchError):
            logger.warning(
                "%s tier degraded to empty for agent=%s: %s", tier, agent_id, loaded
            )
            return []
        if isinstance(loaded, BaseException):
            raise loaded
        return loaded  # type: ignore[return-value]

    def _fit(self, context: AssembledContext, budget: int) -> None:
        context.text = render_context(context)
        context.token_estimate = estimate_tokens(context.text)
        if context.token_estimate <= budget:
            return

        keep = self._config.trimmed_limit
        if len(context.episodes) <= keep and len(context.semantic) <= keep:
            return
        context.episodes = context.episodes[:keep]
        context.semantic = context.semantic[:keep]
        context.trimmed = True
        context.text = render_context(context)
        context.token_estimate = estimate_tokens(context.text)

    async def agent_memory_block(
        self, org_id: str, agent_id: str, *, limit: int | None = None
    ) -> str:
        """Return the agent's most recent notes as a prompt-ready block.

        Returns an empty string when the agent has no notes or the semantic
        store is unreachable.
        """
        try:
            fragments = await self._semantic.list_recent(
                org_id,
                agent_id=agent_id,
                limit=self._config.agent_memory_limit if limit is None else limit,
            )
        except DegradedSearchError as exc:
            logger.warning(
                "agent memory block unavailable for agent=%s: %s", agent_id, exc
            )
            return ""
        return render_agent_memory(fragments)
