"""Pydantic result models for the MCP tool surface.

Every result carries ``status`` plus an optional ``error_code`` and
``message``.  Tools report store failures through these fields instead
of raising, so MCP clients always receive a well-formed payload.
FastMCP v2 serializes these models automatically.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

from tiermem.models.core import CoreMemory

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ToolResult(BaseModel):
    """Fields common to every tool response."""

    status: str = Field(
        default="ok",
        description="Outcome of the call (ok, error).",
    )
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error identifier when status is error.",
    )
    message: str | None = Field(
        default=None,
        description="Human-readable explanation when status is error.",
    )


# ---------------------------------------------------------------------------
# Context and working memory
# ---------------------------------------------------------------------------


class AssembleContextResult(ToolResult):
    """Response from assemble_context."""

    text: str = Field(default="", description="Rendered context block.")
    system_prompt: str | None = Field(
        default=None,
        description="Context plus task section, when a task instruction was given.",
    )
    token_estimate: int = 0
    trimmed: bool = False
    working_entries: int = 0
    episodes: int = 0
    knowledge: int = 0


class RecordMessageResult(ToolResult):
    """Response from record_message."""

    entries: int = Field(
        default=0,
        description="Live working-memory entries for the task after the append.",
    )


class ConsolidateTaskResult(ToolResult):
    """Response from consolidate_task."""

    episode_id: str = ""
    promoted: bool = False
    promotion_error: str | None = None
    working_memory_cleared: bool = False


# ---------------------------------------------------------------------------
# Semantic memory
# ---------------------------------------------------------------------------


class KnowledgeEntry(BaseModel):
    """One knowledge fragment returned by memory_query."""

    id: str
    content: str
    scope: str
    source_type: str
    importance: int
    similarity: float | None = Field(
        default=None,
        description="Cosine similarity to the query; null for recency fallback.",
    )


class MemoryQueryResult(ToolResult):
    """Response from memory_query and memory_list."""

    results: list[KnowledgeEntry] = Field(default_factory=list)


class MemorySaveResult(ToolResult):
    """Response from memory_save."""

    knowledge_id: str = ""


class SeedOnboardingResult(ToolResult):
    """Response from seed_onboarding."""

    knowledge_ids: list[str] = Field(default_factory=list)


class AgentMemoryBlockResult(ToolResult):
    """Response from agent_memory_block."""

    text: str = Field(
        default="",
        description="The agent's recent notes, one per line; empty when none.",
    )


# ---------------------------------------------------------------------------
# Episodic and core memory
# ---------------------------------------------------------------------------


class EpisodeResult(ToolResult):
    """Response from record_correction and boost_episode."""

    episode_id: str = ""


class CoreMemoryResult(ToolResult):
    """Response from the core memory tools."""

    core: CoreMemory | None = None
