"""Conversions between pydantic records and Neo4j property maps."""

from __future__ import annotations

import json
from enum import Enum

from neo4j import time as neo4j_time


def neo4j_to_python(value: object) -> object:
    """Convert Neo4j temporal types to Python stdlib equivalents."""
    if isinstance(value, (neo4j_time.DateTime, neo4j_time.Date)):
        return value.to_native()
    return value


def convert_props(props: dict) -> dict:
    """Convert every Neo4j value in a property map."""
    return {key: neo4j_to_python(value) for key, value in props.items()}


def to_props(data: dict, *, json_fields: tuple[str, ...] = ()) -> dict:
    """Prepare a ``model_dump()`` result for ``SET n = $props``.

    - Drops ``None`` values (Neo4j doesn't store nulls).
    - Converts enums to their ``.value``.
    - JSON-encodes *json_fields* (nested maps are not valid properties).
    """
    result: dict = {}
    for key, value in data.items():
        if value is None:
            continue
        if key in json_fields:
            result[key] = json.dumps(value, default=str, sort_keys=True)
        elif isinstance(value, Enum):
            result[key] = value.value
        else:
            result[key] = value
    return result


def from_props(props: dict, *, json_fields: tuple[str, ...] = ()) -> dict:
    """Inverse of ``to_props`` for fields read back from Neo4j."""
    data = convert_props(props)
    for key in json_fields:
        raw = data.get(key)
        if isinstance(raw, str):
            data[key] = json.loads(raw)
    return data
