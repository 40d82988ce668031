"""Episodic memory records."""

from __future__ import annotations

import uuid
from datetime import datetime
from datetime import timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10


def clamp_importance(value: int) -> int:
    """Clamp *value* into the ``[1, 10]`` importance scale."""
    return max(MIN_IMPORTANCE, min(int(value), MAX_IMPORTANCE))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EpisodeType(str, Enum):
    """What kind of event an episode records."""

    task_complete = "task_complete"
    task_failed = "task_failed"
    decision = "decision"
    correction = "correction"
    learning = "learning"


class EpisodeOutcome(str, Enum):
    """How the recorded event turned out."""

    success = "success"
    failure = "failure"
    partial = "partial"


class Episode(BaseModel):
    """Ranked record of a past task outcome.

    Append-only.  Only ``importance`` may change after creation, and only
    through an explicit boost.
    """

    id: str = Field(default_factory=lambda: f"ep_{uuid.uuid4().hex}")
    agent_id: str
    org_id: str
    task_id: str | None = None
    type: EpisodeType
    summary: str
    outcome: EpisodeOutcome | None = None
    importance: int = Field(default=5, description="1-10, higher recalls first.")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    access_count: int = 0
    accessed_at: datetime | None = None
