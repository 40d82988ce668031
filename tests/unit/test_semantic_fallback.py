"""Unit tests for semantic search degradation paths."""

from __future__ import annotations

from unittest.mock import AsyncMock
from unittest.mock import MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable

from tiermem.errors import DegradedSearchError
from tiermem.errors import EmbeddingError
from tiermem.memory.semantic import SemanticMemoryStore
from tiermem.models import KnowledgeScope


@pytest.fixture()
def embeddings():
    provider = AsyncMock()
    provider.embed.return_value = [0.1, 0.2]
    return provider


@pytest.fixture()
def store(embeddings, fragment_factory):
    store = SemanticMemoryStore(MagicMock(), embeddings)
    store._vector_search = AsyncMock(return_value=[fragment_factory("vector hit")])
    store._recency_search = AsyncMock(
        return_value=[fragment_factory("recent", similarity=None)]
    )
    return store


class TestSearchParameters:
    async def test_defaults(self, store):
        await store.search("org-1", "query")

        embedding, params = store._vector_search.await_args.args
        assert embedding == [0.1, 0.2]
        assert params == {
            "org_id": "org-1",
            "limit": 8,
            "min_importance": 3,
            "scope": None,
        }

    async def test_scope_is_passed_by_value(self, store):
        await store.search("org-1", "q", scope=KnowledgeScope.domain, limit=2)
        params = store._vector_search.await_args.args[1]
        assert params["scope"] == "domain"
        assert params["limit"] == 2

    async def test_zero_limit_short_circuits(self, store, embeddings):
        assert await store.search("org-1", "q", limit=0) == []
        embeddings.embed.assert_not_awaited()


class TestDegradation:
    async def test_vector_results_when_healthy(self, store):
        results = await store.search("org-1", "q")
        assert [r.content for r in results] == ["vector hit"]
        store._recency_search.assert_not_awaited()

    async def test_embedding_failure_falls_back_to_recency(self, store, embeddings):
        embeddings.embed.side_effect = EmbeddingError("down")

        results = await store.search("org-1", "q")

        assert [r.content for r in results] == ["recent"]
        store._vector_search.assert_not_awaited()

    async def test_vector_index_failure_falls_back_to_recency(self, store):
        store._vector_search.side_effect = ServiceUnavailable("index offline")

        results = await store.search("org-1", "q")

        assert results[0].similarity is None

    async def test_fallback_failure_raises_degraded(self, store, embeddings):
        embeddings.embed.side_effect = EmbeddingError("down")
        store._recency_search.side_effect = DegradedSearchError("store down")

        with pytest.raises(DegradedSearchError):
            await store.search("org-1", "q")


class TestSave:
    async def test_embedding_failure_propagates_before_write(self, embeddings):
        driver = MagicMock()
        embeddings.embed.side_effect = EmbeddingError("down")
        store = SemanticMemoryStore(driver, embeddings)

        with pytest.raises(EmbeddingError):
            await store.save("org-1", None, "content")

        driver.session.assert_not_called()


class TestCandidateWindow:
    @pytest.fixture()
    def windowed(self, embeddings, fragment_factory):
        store = SemanticMemoryStore(MagicMock(), embeddings, candidate_pool=200)
        store._exact_search = AsyncMock(return_value=[fragment_factory("exact hit")])
        return store

    async def test_saturated_window_ranks_org_exactly(self, windowed):
        # Other orgs filled all 200 candidates, none belonged to org-1
        windowed._index_search = AsyncMock(return_value=(200, []))

        results = await windowed.search("org-1", "launch window")

        assert [r.content for r in results] == ["exact hit"]
        embedding, params = windowed._exact_search.await_args.args
        assert params["org_id"] == "org-1"

    async def test_partial_window_match_still_ranks_exactly(
        self, windowed, fragment_factory
    ):
        windowed._index_search = AsyncMock(
            return_value=(200, [fragment_factory("one of eight")])
        )

        await windowed.search("org-1", "q")

        windowed._exact_search.assert_awaited_once()

    async def test_exhausted_index_is_final(self, windowed):
        windowed._index_search = AsyncMock(return_value=(12, []))

        assert await windowed.search("org-1", "q") == []
        windowed._exact_search.assert_not_awaited()

    async def test_full_page_from_index_skips_exact_scan(
        self, windowed, fragment_factory
    ):
        page = [fragment_factory(f"hit {i}") for i in range(2)]
        windowed._index_search = AsyncMock(return_value=(200, page))

        results = await windowed.search("org-1", "q", limit=2)

        assert results == page
        windowed._exact_search.assert_not_awaited()

    async def test_window_grows_with_limit(self, windowed):
        windowed._index_search = AsyncMock(return_value=(0, []))

        await windowed.search("org-1", "q", limit=500)

        assert windowed._index_search.await_args.args[2] == 500


class TestListRecent:
    async def test_filters_by_agent(self, store, embeddings):
        await store.list_recent("org-1", agent_id="agent-1")

        params = store._recency_search.await_args.args[0]
        assert params == {
            "org_id": "org-1",
            "limit": 20,
            "min_importance": 1,
            "scope": None,
        }
        assert store._recency_search.await_args.kwargs == {"agent_id": "agent-1"}
        embeddings.embed.assert_not_awaited()

    async def test_scope_and_limit(self, store):
        await store.list_recent("org-1", scope=KnowledgeScope.agent, limit=5)

        params = store._recency_search.await_args.args[0]
        assert params["scope"] == "agent"
        assert params["limit"] == 5

    async def test_zero_limit_short_circuits(self, store):
        assert await store.list_recent("org-1", limit=0) == []
        store._recency_search.assert_not_awaited()

    async def test_store_outage_raises_degraded(self, store):
        store._recency_search.side_effect = DegradedSearchError("down")

        with pytest.raises(DegradedSearchError):
            await store.list_recent("org-1", agent_id="agent-1")
