"""Assembled context value object."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

from tiermem.models.core import CoreMemory
from tiermem.models.episodes import Episode
from tiermem.models.semantic import SemanticFragment
from tiermem.models.working import WorkingMemoryEntry


class AssembledContext(BaseModel):
    """All four tiers merged for one task invocation.

    Derived and never stored: rebuilt on every call because working memory
    and episodic rankings change between calls.
    """

    core: CoreMemory
    working: list[WorkingMemoryEntry] = Field(default_factory=list)
    episodes: list[Episode] = Field(default_factory=list)
    semantic: list[SemanticFragment] = Field(default_factory=list)
    text: str = Field(default="", description="Rendered prompt block.")
    token_estimate: int = 0
    trimmed: bool = Field(
        default=False,
        description="True when episodes/semantic were cut to fit the budget.",
    )

    def render(self) -> str:
        """Return the rendered prompt block, rendering on demand if empty."""
        if self.text:
            return self.text
        from tiermem.engine.render import render_context

        return render_context(self)
