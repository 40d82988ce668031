"""Audit event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditEventType(str, Enum):
    """Categories of auditable memory events."""

    CONTEXT_ASSEMBLED = "CONTEXT_ASSEMBLED"
    EPISODE_WRITTEN = "EPISODE_WRITTEN"
    KNOWLEDGE_PROMOTED = "KNOWLEDGE_PROMOTED"
    PROMOTION_FAILED = "PROMOTION_FAILED"
    CORRECTION_RECORDED = "CORRECTION_RECORDED"
    SIDE_EFFECT_FAILED = "SIDE_EFFECT_FAILED"


class AuditEvent(BaseModel):
    """A single immutable audit log entry."""

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the event occurred.",
    )
    event_type: AuditEventType = Field(
        description="Category of the audited action.",
    )
    agent_id: str | None = Field(
        default=None,
        description="Agent the event concerns, when there is one.",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific data.",
    )
