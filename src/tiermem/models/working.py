"""Working memory entry model."""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel
from pydantic import Field


class EntryRole(str, Enum):
    """Speaker of a working memory turn."""

    user = "user"
    assistant = "assistant"
    system = "system"
    tool_result = "tool_result"


class WorkingMemoryEntry(BaseModel):
    """One turn of an in-flight task transcript."""

    role: EntryRole
    content: str
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the entry was appended.",
    )
