"""Models domain — typed records for every memory tier."""

from __future__ import annotations

from tiermem.models.context import AssembledContext
from tiermem.models.core import apply_patch
from tiermem.models.core import CoreMemory
from tiermem.models.core import CoreMemoryPatch
from tiermem.models.core import Identity
from tiermem.models.core import IdentityPatch
from tiermem.models.core import Organization
from tiermem.models.core import OrganizationPatch
from tiermem.models.episodes import clamp_importance
from tiermem.models.episodes import Episode
from tiermem.models.episodes import EpisodeOutcome
from tiermem.models.episodes import EpisodeType
from tiermem.models.episodes import MAX_IMPORTANCE
from tiermem.models.episodes import MIN_IMPORTANCE
from tiermem.models.semantic import KnowledgeScope
from tiermem.models.semantic import SemanticFragment
from tiermem.models.working import EntryRole
from tiermem.models.working import WorkingMemoryEntry

__all__ = [
    "AssembledContext",
    "CoreMemory",
    "CoreMemoryPatch",
    "EntryRole",
    "Episode",
    "EpisodeOutcome",
    "EpisodeType",
    "Identity",
    "IdentityPatch",
    "KnowledgeScope",
    "MAX_IMPORTANCE",
    "MIN_IMPORTANCE",
    "Organization",
    "OrganizationPatch",
    "SemanticFragment",
    "WorkingMemoryEntry",
    "apply_patch",
    "clamp_importance",
]
