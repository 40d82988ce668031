"""Storage domain — Neo4j schema and property codecs for the durable tiers."""

from tiermem.storage.schema import init_schema
from tiermem.storage.schema import VECTOR_INDEX_NAME

__all__ = ["VECTOR_INDEX_NAME", "init_schema"]
