"""Post-task consolidation: working memory into durable memory.

One finished task always produces one episode.  A substantial successful
result is also promoted to organization knowledge.  The two writes are
asymmetric: a failed episode write propagates and leaves working memory
intact, a failed promotion is logged and swallowed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from redis.exceptions import RedisError

from tiermem.audit import AuditEventType
from tiermem.audit import AuditLogger
from tiermem.config import ConsolidationConfig
from tiermem.memory.episodic import EpisodicMemoryStore
from tiermem.memory.semantic import SemanticMemoryStore
from tiermem.memory.working import WorkingMemoryStore
from tiermem.models.episodes import Episode
from tiermem.models.episodes import EpisodeOutcome
from tiermem.models.episodes import EpisodeType
from tiermem.models.semantic import KnowledgeScope
from tiermem.observability import timed

logger = logging.getLogger(__name__)


@dataclass
class ConsolidationResult:
    """Outcome of a single consolidation call."""

    episode_id: str
    promoted: bool = False
    promotion_error: str | None = None
    working_memory_cleared: bool = False


# ---------------------------------------------------------------------------
# ConsolidationEngine
# ---------------------------------------------------------------------------


class ConsolidationEngine:
    """Turns a finished task's outcome into episodic and semantic memory."""

    def __init__(
        self,
        episodic: EpisodicMemoryStore,
        semantic: SemanticMemoryStore,
        working: WorkingMemoryStore,
        config: ConsolidationConfig | None = None,
        *,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._episodic = episodic
        self._semantic = semantic
        self._working = working
        self._config = config or ConsolidationConfig()
        self._audit = audit_logger

    def build_episode(
        self,
        result_text: str,
        goal: str,
        success: bool,
        *,
        agent_id: str,
        org_id: str,
        task_id: str,
        importance: int,
    ) -> Episode:
        """Return the episode recording this task outcome (not yet persisted)."""
        label = "Completed" if success else "Failed"
        excerpt = result_text[: self._config.summary_max_chars]
        return Episode(
            agent_id=agent_id,
            org_id=org_id,
            task_id=task_id,
            type=EpisodeType.task_complete if success else EpisodeType.task_failed,
            summary=f'{label}: "{goal}". Result: {excerpt}',
            outcome=EpisodeOutcome.success if success else EpisodeOutcome.failure,
            # Store clamps to the importance ceiling
            importance=(
                importance
                if success
                else importance + self._config.failure_importance_bonus
            ),
            metadata={"goal": goal, "result_length": len(result_text)},
        )

    def should_promote(self, result_text: str, success: bool) -> bool:
        return success and len(result_text) > self._config.promotion_min_chars

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
        """Persist the task outcome, promote if worthwhile, clear working memory.

        Raises ``WriteFailureError`` when the episode cannot be written; in
        that case working memory is left untouched.
        """
        if importance is None:
            importance = self._config.default_importance
        episode = self.build_episode(
            result_text,
            goal,
            success,
            agent_id=agent_id,
            org_id=org_id,
            task_id=task_id,
            importance=importance,
        )

        with timed("consolidation.run"):
            writes = [self._episodic.write(episode)]
            if self.should_promote(result_text, success):
                writes.append(
                    self._promote(result_text, goal, agent_id, org_id, importance)
                )
            outcomes = await asyncio.gather(*writes, return_exceptions=True)

            episode_outcome = outcomes[0]
            if isinstance(episode_outcome, BaseException):
                logger.error(
                    "episode write failed agent=%s task=%s; working memory kept",
                    agent_id,
                    task_id,
                )
                raise episode_outcome

            result = ConsolidationResult(episode_id=episode_outcome)
            if len(outcomes) > 1:
                promotion = outcomes[1]
                if isinstance(promotion, BaseException):
                    logger.warning("knowledge promotion aborted: %s", promotion)
                    result.promotion_error = str(promotion)
                else:
                    result.promoted, result.promotion_error = promotion

            result.working_memory_cleared = await self._clear(agent_id, task_id)

        logger.info(
            "consolidated task=%s agent=%s episode=%s promoted=%s",
            task_id,
            agent_id,
            result.episode_id,
            result.promoted,
        )
        if self._audit is not None:
            await self._audit.record(
                AuditEventType.EPISODE_WRITTEN,
                agent_id=agent_id,
                task_id=task_id,
                episode_id=result.episode_id,
                success=success,
                importance=episode.importance,
            )
        return result

    async def _promote(
        self,
        result_text: str,
        goal: str,
        agent_id: str,
        org_id: str,
        importance: int,
    ) -> tuple[bool, str | None]:
        content = (
            f"Task completed: {goal}\n\n"
            f"Output: {result_text[: self._config.promotion_max_chars]}"
        )
        try:
            knowledge_id = await self._semantic.save(
                org_id,
                agent_id,
                content,
                scope=KnowledgeScope.organization,
                source_type="task_output",
                importance=importance,
            )
        except Exception as exc:
            # Promotion failures never fail consolidation
            logger.warning("knowledge promotion failed agent=%s: %s", agent_id, exc)
            if self._audit is not None:
                await self._audit.record(
                    AuditEventType.PROMOTION_FAILED,
                    agent_id=agent_id,
                    org_id=org_id,
                    error=repr(exc),
                )
            return False, str(exc)

        if self._audit is not None:
            await self._audit.record(
                AuditEventType.KNOWLEDGE_PROMOTED,
                agent_id=agent_id,
                org_id=org_id,
                knowledge_id=knowledge_id,
            )
        return True, None

    async def _clear(self, agent_id: str, task_id: str) -> bool:
        try:
            await self._working.clear(agent_id, task_id)
        except RedisError:
            logger.exception(
                "working memory clear failed agent=%s task=%s; left to TTL",
                agent_id,
                task_id,
            )
            return False
        return True
