"""Unit tests for post-task consolidation with mocked stores."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tiermem.audit import AuditEventType
from tiermem.engine.consolidation import ConsolidationEngine
from tiermem.errors import EmbeddingError
from tiermem.errors import WriteFailureError
from tiermem.models import EpisodeOutcome
from tiermem.models import EpisodeType
from tiermem.models import KnowledgeScope

LONG_RESULT = "Detailed market analysis. " * 30


@pytest.fixture()
def episodic():
    store = AsyncMock()
    store.write.return_value = "ep_1"
    return store


@pytest.fixture()
def semantic():
    store = AsyncMock()
    store.save.return_value = "kn_1"
    return store


@pytest.fixture()
def working():
    return AsyncMock()


@pytest.fixture()
def audit():
    return AsyncMock()


@pytest.fixture()
def engine(episodic, semantic, working, audit):
    return ConsolidationEngine(episodic, semantic, working, audit_logger=audit)


async def _run(engine, result_text, goal, success, **kwargs):
    return await engine.consolidate(
        result_text,
        goal,
        success,
        agent_id="agent-1",
        org_id="org-1",
        task_id="task-1",
        **kwargs,
    )


def _written_episode(episodic):
    return episodic.write.await_args.args[0]


class TestEpisode:
    async def test_short_success_writes_episode_without_promotion(
        self, engine, episodic, semantic, working
    ):
        result_text = "Draft sent to the customer"  # 26 chars

        result = await _run(engine, result_text, "Send draft", True)

        episode = _written_episode(episodic)
        assert episode.type is EpisodeType.task_complete
        assert episode.outcome is EpisodeOutcome.success
        assert episode.importance == 5
        assert episode.summary == (
            'Completed: "Send draft". Result: Draft sent to the customer'
        )
        assert episode.metadata == {"goal": "Send draft", "result_length": 26}
        semantic.save.assert_not_awaited()
        working.clear.assert_awaited_once_with("agent-1", "task-1")
        assert result.episode_id == "ep_1"
        assert result.promoted is False
        assert result.working_memory_cleared is True

    async def test_failure_gets_importance_bonus(self, engine, episodic, semantic):
        await _run(engine, "timeout", "Fetch data", False, importance=9)

        episode = _written_episode(episodic)
        assert episode.type is EpisodeType.task_failed
        assert episode.outcome is EpisodeOutcome.failure
        # 11 here; the episodic store clamps it to 10 on write
        assert episode.importance == 11
        assert episode.summary.startswith('Failed: "Fetch data"')
        semantic.save.assert_not_awaited()

    async def test_long_failure_is_not_promoted(self, engine, semantic):
        await _run(engine, LONG_RESULT, "Analyse market", False)
        semantic.save.assert_not_awaited()

    async def test_summary_excerpt_is_truncated(self, engine, episodic):
        await _run(engine, "x" * 1000, "Big", True)
        assert _written_episode(episodic).summary.endswith("x" * 300)
        assert len(_written_episode(episodic).summary) == len(
            'Completed: "Big". Result: '
        ) + 300


class TestPromotion:
    async def test_long_success_is_promoted(self, engine, semantic, audit):
        result = await _run(engine, LONG_RESULT, "Analyse market", True, importance=7)

        args, kwargs = semantic.save.await_args
        assert args[:2] == ("org-1", "agent-1")
        assert args[2] == (
            f"Task completed: Analyse market\n\nOutput: {LONG_RESULT[:500]}"
        )
        assert kwargs == {
            "scope": KnowledgeScope.organization,
            "source_type": "task_output",
            "importance": 7,
        }
        assert result.promoted is True
        assert result.promotion_error is None
        event_types = [c.args[0] for c in audit.record.await_args_list]
        assert AuditEventType.KNOWLEDGE_PROMOTED in event_types
        assert AuditEventType.EPISODE_WRITTEN in event_types

    async def test_exactly_minimum_length_is_not_promoted(self, engine, semantic):
        await _run(engine, "y" * 100, "Edge", True)
        semantic.save.assert_not_awaited()

    async def test_promotion_failure_is_swallowed(
        self, engine, semantic, working, audit
    ):
        semantic.save.side_effect = EmbeddingError("service down")

        result = await _run(engine, LONG_RESULT, "Analyse market", True)

        assert result.episode_id == "ep_1"
        assert result.promoted is False
        assert result.promotion_error == "service down"
        working.clear.assert_awaited_once()
        event_types = [c.args[0] for c in audit.record.await_args_list]
        assert AuditEventType.PROMOTION_FAILED in event_types

    async def test_unexpected_promotion_error_is_swallowed(
        self, engine, semantic, working, audit
    ):
        semantic.save.side_effect = RuntimeError("sdk blew up")

        result = await _run(engine, "x" * 200, "goal", True)

        assert result.episode_id == "ep_1"
        assert result.promoted is False
        assert result.promotion_error == "sdk blew up"
        assert result.working_memory_cleared is True
        working.clear.assert_awaited_once_with("agent-1", "task-1")
        failed = [
            c
            for c in audit.record.await_args_list
            if c.args[0] is AuditEventType.PROMOTION_FAILED
        ]
        assert failed[0].kwargs["error"] == "RuntimeError('sdk blew up')"


class TestFailureHandling:
    async def test_episode_failure_propagates_and_keeps_working_memory(
        self, engine, episodic, working
    ):
        episodic.write.side_effect = WriteFailureError("neo4j rejected")

        with pytest.raises(WriteFailureError):
            await _run(engine, "done", "Goal", True)

        working.clear.assert_not_awaited()

    async def test_clear_failure_is_left_to_ttl(self, engine, working):
        working.clear.side_effect = RedisConnectionError("redis down")

        result = await _run(engine, "done", "Goal", True)

        assert result.episode_id == "ep_1"
        assert result.working_memory_cleared is False

    async def test_no_audit_logger_is_fine(self, episodic, semantic, working):
        engine = ConsolidationEngine(episodic, semantic, working)
        result = await _run(engine, LONG_RESULT, "Goal", True)
        assert result.promoted is True
