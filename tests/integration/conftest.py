"""Integration fixtures — session-scoped testcontainers for Neo4j and Redis.

Neo4j Community Edition and Redis 7 containers are shared across the
integration session.  Each test starts from empty databases.
"""

from __future__ import annotations

import asyncio
import logging
import time

import pytest
import redis as sync_redis
from neo4j import AsyncGraphDatabase
from redis.asyncio import Redis
from testcontainers.core.container import DockerContainer

from tiermem.config import EmbeddingConfig
from tiermem.embedding import EmbeddingProvider
from tiermem.embedding import HashEmbeddingAdapter
from tiermem.embedding import NullEmbeddingCache
from tiermem.engine.side_effects import SideEffectQueue
from tiermem.memory import CoreMemoryStore
from tiermem.memory import EpisodicMemoryStore
from tiermem.memory import SemanticMemoryStore
from tiermem.memory import WorkingMemoryStore
from tiermem.storage import init_schema

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = 64

# ---------------------------------------------------------------------------
# Neo4j
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def neo4j_container():
    """Spin up a Neo4j Community container and yield its bolt URI.

    The schema (constraints, indexes, vector index) is created once.
    """
    container = (
        DockerContainer("neo4j:5-community")
        .with_exposed_ports(7687)
        .with_env("NEO4J_AUTH", "none")
    )
    with container as c:
        host = c.get_container_host_ip()
        port = c.get_exposed_port(7687)
        uri = f"bolt://{host}:{port}"

        async def wait_and_init():
            driver = AsyncGraphDatabase.driver(uri)
            max_attempts = 60
            try:
                for attempt in range(max_attempts):
                    try:
                        await driver.verify_connectivity()
                        break
                    except Exception as exc:
                        if attempt == max_attempts - 1:
                            raise
                        logger.debug(
                            "Neo4j not ready (attempt %d/%d): %s",
                            attempt + 1,
                            max_attempts,
                            exc,
                        )
                        await asyncio.sleep(1)
                await init_schema(driver, dimensions=EMBEDDING_DIMENSIONS)
            finally:
                await driver.close()

        asyncio.run(wait_and_init())
        yield uri


@pytest.fixture()
async def neo4j_driver(neo4j_container):
    """Yield an async Neo4j driver on a freshly wiped database."""
    driver = AsyncGraphDatabase.driver(neo4j_container)
    async with driver.session() as session:
        result = await session.run("MATCH (n) DETACH DELETE n")
        await result.consume()
    yield driver
    await driver.close()


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def redis_container():
    """Spin up a Redis 7 container and yield its URL."""
    container = DockerContainer("redis:7-alpine").with_exposed_ports(6379)
    with container as c:
        host = c.get_container_host_ip()
        port = c.get_exposed_port(6379)
        url = f"redis://{host}:{port}"

        r = sync_redis.Redis(host=host, port=int(port))
        max_attempts = 30
        for attempt in range(max_attempts):
            try:
                r.ping()
                r.close()
                break
            except Exception as exc:
                if attempt == max_attempts - 1:
                    r.close()
                    raise
                logger.debug(
                    "Redis not ready (attempt %d/%d): %s",
                    attempt + 1,
                    max_attempts,
                    exc,
                )
                time.sleep(1)

        yield url


@pytest.fixture()
async def redis_client(redis_container):
    """Yield an async Redis client on a flushed database."""
    client = Redis.from_url(redis_container)
    await client.flushdb()
    yield client
    await client.flushdb()
    await client.aclose()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture()
def embeddings():
    """Offline embeddings sized to the test vector index."""
    return EmbeddingProvider(
        HashEmbeddingAdapter(EMBEDDING_DIMENSIONS),
        cache=NullEmbeddingCache(),
        config=EmbeddingConfig(provider="hash", dimensions=EMBEDDING_DIMENSIONS),
    )


@pytest.fixture()
async def side_effects():
    queue = SideEffectQueue()
    yield queue
    await queue.close()


@pytest.fixture()
def working_store(redis_client):
    return WorkingMemoryStore(redis_client)


@pytest.fixture()
def core_store(neo4j_driver):
    return CoreMemoryStore(neo4j_driver)


@pytest.fixture()
def episodic_store(neo4j_driver, side_effects):
    return EpisodicMemoryStore(neo4j_driver, side_effects=side_effects)


@pytest.fixture()
def semantic_store(neo4j_driver, embeddings):
    return SemanticMemoryStore(neo4j_driver, embeddings)
