"""Error taxonomy shared by every memory tier."""

from __future__ import annotations


class TierMemError(Exception):
    """Base class for all memory-system errors."""


class AgentNotFoundError(TierMemError):
    """Core memory is missing for an agent.

    Fatal to context assembly: an agent without identity cannot act.
    """

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent {agent_id!r} is not initialized (no core memory)")


class DegradedSearchError(TierMemError):
    """A read tier (episodic recall, semantic search) is unavailable."""


class WriteFailureError(TierMemError):
    """The durable store rejected a write."""


class EmbeddingError(TierMemError):
    """Raised by embedding adapters when a call fails."""


class ConcurrentUpdateError(TierMemError):
    """A core memory merge lost its optimistic version check too many times."""
