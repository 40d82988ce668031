"""Semantic memory fragments."""

from __future__ import annotations

import uuid
from datetime import datetime
from datetime import timezone
from enum import Enum

from pydantic import BaseModel
from pydantic import Field


class KnowledgeScope(str, Enum):
    """Visibility boundary of a knowledge fragment."""

    organization = "organization"
    agent = "agent"
    domain = "domain"


class SemanticFragment(BaseModel):
    """An organization-scoped piece of searchable knowledge.

    ``embedding`` is populated on write and left empty on search results;
    ``similarity`` is only populated on search results and never persisted.
    """

    id: str = Field(default_factory=lambda: f"kn_{uuid.uuid4().hex}")
    org_id: str
    agent_id: str | None = None
    content: str
    embedding: list[float] = Field(default_factory=list)
    scope: KnowledgeScope = KnowledgeScope.organization
    source_type: str = "task_output"
    importance: int = 5
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    similarity: float | None = Field(default=None, exclude=True)
