"""Unit test fixtures — sample records and AsyncMock-backed stores."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from tiermem.models import CoreMemory
from tiermem.models import Episode
from tiermem.models import EpisodeOutcome
from tiermem.models import EpisodeType
from tiermem.models import Identity
from tiermem.models import KnowledgeScope
from tiermem.models import Organization
from tiermem.models import SemanticFragment


def make_episode(summary: str, importance: int = 5, **kwargs) -> Episode:
    return Episode(
        agent_id="agent-1",
        org_id="org-1",
        task_id="task-0",
        type=EpisodeType.task_complete,
        summary=summary,
        outcome=kwargs.pop("outcome", EpisodeOutcome.success),
        importance=importance,
        **kwargs,
    )


def make_fragment(content: str, similarity: float | None = 0.9) -> SemanticFragment:
    fragment = SemanticFragment(
        org_id="org-1", content=content, scope=KnowledgeScope.organization
    )
    fragment.similarity = similarity
    return fragment


@pytest.fixture()
def core_memory() -> CoreMemory:
    return CoreMemory(
        identity=Identity(name="Ada", role="Growth lead"),
        organization=Organization(
            name="Acme",
            description="Reusable rockets",
            industry="aerospace",
            stage="growth",
            values=["safety", "speed"],
        ),
        directives=["Report weekly"],
        pinned_facts=["Launch is in May"],
    )


@pytest.fixture()
def stores(core_memory):
    """Four AsyncMock stores with empty tiers and a valid core record."""
    core = AsyncMock()
    core.get.return_value = core_memory
    working = AsyncMock()
    working.read.return_value = []
    episodic = AsyncMock()
    episodic.recall.return_value = []
    semantic = AsyncMock()
    semantic.search.return_value = []
    return core, working, episodic, semantic


@pytest.fixture()
def episode_factory():
    return make_episode


@pytest.fixture()
def fragment_factory():
    return make_fragment
