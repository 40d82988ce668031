"""Prompt rendering for assembled context.

Tiers are rendered in a fixed order: identity, organization, directives,
pinned facts, past experience, organization knowledge, then the working
transcript last so it sits right before the task instruction.
"""

from __future__ import annotations

import math

from tiermem.models.context import AssembledContext
from tiermem.models.episodes import Episode
from tiermem.models.semantic import SemanticFragment
from tiermem.models.working import WorkingMemoryEntry


def estimate_tokens(text: str) -> int:
    """Cheap length-based token estimate (characters / 4, rounded up)."""
    return math.ceil(len(text) / 4)


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _format_episode(episode: Episode) -> str:
    outcome = episode.outcome.value if episode.outcome else "unknown"
    return f"[{outcome} | importance:{episode.importance}] {episode.summary}"


def _format_fragment(fragment: SemanticFragment) -> str:
    relevance = (
        f"{fragment.similarity:.2f}" if fragment.similarity is not None else "?"
    )
    return f"[{fragment.scope.value} | relevance:{relevance}] {fragment.content}"


def _format_entry(entry: WorkingMemoryEntry) -> str:
    return f"[{entry.role.value}]: {entry.content}"


def render_context(context: AssembledContext) -> str:
    """Render all tiers of *context* into one text block."""
    episodes = context.episodes
    semantic = context.semantic
    core = context.core
    sections: list[str] = [
        "## WHO YOU ARE\n"
        f"Name: {core.identity.name}\n"
        f"Role: {core.identity.role}\n"
        f"Persona: {core.identity.persona}",
        "## YOUR ORGANIZATION\n"
        f"Name: {core.organization.name}\n"
        f"What we do: {core.organization.description}\n"
        f"Industry: {core.organization.industry}\n"
        f"Stage: {core.organization.stage}\n"
        f"Core values: {', '.join(core.organization.values)}",
    ]

    if core.directives:
        sections.append(f"## STANDING ORDERS\n{_bullets(core.directives)}")
    if core.pinned_facts:
        sections.append(f"## ALWAYS REMEMBER\n{_bullets(core.pinned_facts)}")
    if episodes:
        lines = "\n".join(_format_episode(e) for e in episodes)
        sections.append(f"## RELEVANT PAST EXPERIENCE\n{lines}")
    if semantic:
        lines = "\n".join(_format_fragment(f) for f in semantic)
        sections.append(f"## RELEVANT ORGANIZATION KNOWLEDGE\n{lines}")
    if context.working:
        lines = "\n".join(_format_entry(w) for w in context.working)
        sections.append(f"## RECENT CONTEXT (THIS TASK)\n{lines}")

    return "\n\n".join(sections)


def render_agent_memory(fragments: list[SemanticFragment]) -> str:
    """Render an agent's own notes as one line each, newest first."""
    return "\n".join(
        f"[{f.scope.value} | importance:{f.importance}] {f.content}" for f in fragments
    )


def build_system_prompt(context: AssembledContext, task_instruction: str) -> str:
    """Return the full system prompt: rendered context, then the task."""
    return f"{context.render()}\n\n---\n\n## YOUR TASK\n{task_instruction}"
