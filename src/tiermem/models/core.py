"""Core memory record and its typed partial updates.

A ``CoreMemory`` is the durable identity document of one agent.  Updates
are expressed as ``CoreMemoryPatch`` objects whose nested patches only
carry the fields the caller explicitly set; ``apply_patch`` deep-merges
them so one nested field never clobbers its siblings.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    """Who the agent is."""

    name: str
    role: str
    persona: str = "Professional and efficient."


class Organization(BaseModel):
    """Profile of the organization that owns the agent."""

    name: str = "Unknown"
    description: str = ""
    industry: str = ""
    stage: str = "idea"
    values: list[str] = Field(default_factory=list)


class CoreMemory(BaseModel):
    """Durable, always-in-context memory for one agent."""

    identity: Identity
    organization: Organization = Field(default_factory=Organization)
    directives: list[str] = Field(
        default_factory=list,
        description="Active standing orders, oldest first.",
    )
    pinned_facts: list[str] = Field(
        default_factory=list,
        description="Facts that must always be in context, oldest first.",
    )


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


class IdentityPatch(BaseModel):
    """Partial update to ``Identity``; unset fields are left untouched."""

    name: str | None = None
    role: str | None = None
    persona: str | None = None


class OrganizationPatch(BaseModel):
    """Partial update to ``Organization``; unset fields are left untouched."""

    name: str | None = None
    description: str | None = None
    industry: str | None = None
    stage: str | None = None
    values: list[str] | None = None


class CoreMemoryPatch(BaseModel):
    """Partial update to ``CoreMemory``.

    Lists (``directives``, ``pinned_facts``, ``organization.values``) are
    replaced wholesale when present.
    """

    identity: IdentityPatch | None = None
    organization: OrganizationPatch | None = None
    directives: list[str] | None = None
    pinned_facts: list[str] | None = None


def _deep_merge(current: dict, patch: dict) -> dict:
    merged = dict(current)
    for key, value in patch.items():
        existing = merged.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            merged[key] = _deep_merge(existing, value)
        else:
            merged[key] = value
    return merged


def apply_patch(core: CoreMemory, patch: CoreMemoryPatch) -> CoreMemory:
    """Return a new ``CoreMemory`` with *patch* deep-merged onto *core*."""
    delta = patch.model_dump(exclude_unset=True, exclude_none=True)
    merged = _deep_merge(core.model_dump(), delta)
    return CoreMemory.model_validate(merged)
