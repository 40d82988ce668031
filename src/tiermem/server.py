"""TierMem — FastMCP v2 server exposing the memory tiers as MCP tools.

Tools delegate to a ``MemorySystem``.  Call ``configure()`` (or pass a
prebuilt system) before using the server.
"""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter

from fastmcp import FastMCP

from tiermem.audit import AuditEventType
from tiermem.config import MemoryConfig
from tiermem.embedding import EmbeddingAdapter
from tiermem.engine.render import build_system_prompt
from tiermem.errors import AgentNotFoundError
from tiermem.errors import ConcurrentUpdateError
from tiermem.errors import DegradedSearchError
from tiermem.errors import EmbeddingError
from tiermem.errors import TierMemError
from tiermem.errors import WriteFailureError
from tiermem.models.core import CoreMemory
from tiermem.models.core import CoreMemoryPatch
from tiermem.models.schemas import AgentMemoryBlockResult
from tiermem.models.schemas import AssembleContextResult
from tiermem.models.schemas import ConsolidateTaskResult
from tiermem.models.schemas import CoreMemoryResult
from tiermem.models.schemas import EpisodeResult
from tiermem.models.schemas import KnowledgeEntry
from tiermem.models.schemas import MemoryQueryResult
from tiermem.models.schemas import MemorySaveResult
from tiermem.models.schemas import RecordMessageResult
from tiermem.models.schemas import SeedOnboardingResult
from tiermem.models.schemas import ToolResult
from tiermem.models.semantic import KnowledgeScope
from tiermem.models.semantic import SemanticFragment
from tiermem.models.working import EntryRole
from tiermem.observability import record_latency
from tiermem.system import MemorySystem

logger = logging.getLogger(__name__)

mcp = FastMCP("TierMem")

# ---------------------------------------------------------------------------
# Memory system instance (set via configure())
# ---------------------------------------------------------------------------

_system: MemorySystem | None = None


async def configure(
    config: MemoryConfig | None = None,
    *,
    system: MemorySystem | None = None,
    embedding_adapter: EmbeddingAdapter | None = None,
) -> None:
    """Initialize the memory backend.

    Must be called before the MCP tools can function.  Passing *system*
    installs a prebuilt (possibly test-double) system instead of connecting.
    """
    global _system
    if _system is not None:
        try:
            await _system.close()
        except RuntimeError:
            # Tests may reconfigure across event loops.
            pass
    if system is not None:
        _system = system
        return
    _system = await MemorySystem.connect(
        config or MemoryConfig.from_env(), embedding_adapter=embedding_adapter
    )


async def shutdown() -> None:
    """Close backend clients and release server resources."""
    global _system
    if _system is not None:
        await _system.close()
        _system = None


def _get_system() -> MemorySystem:
    """Return the memory system or raise."""
    if _system is None:
        raise RuntimeError("Memory system not configured. Call configure() first.")
    return _system


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

_ERROR_CODES: dict[type[TierMemError], str] = {
    AgentNotFoundError: "agent_not_initialized",
    ConcurrentUpdateError: "concurrent_update",
    DegradedSearchError: "search_unavailable",
    EmbeddingError: "embedding_unavailable",
    WriteFailureError: "write_failed",
}


def _error_code(exc: TierMemError) -> str:
    for exc_type, code in _ERROR_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return "memory_error"


def _failed(result_cls: type[ToolResult], exc: TierMemError) -> ToolResult:
    logger.warning("%s failed: %s", result_cls.__name__, exc)
    return result_cls(status="error", error_code=_error_code(exc), message=str(exc))


def _rejected(result_cls: type[ToolResult], message: str) -> ToolResult:
    return result_cls(status="error", error_code="validation_error", message=message)


def _record(operation: str, start: float, result: ToolResult) -> None:
    record_latency(
        operation=f"mcp.{operation}",
        duration_ms=(perf_counter() - start) * 1000,
        ok=result.status == "ok",
    )


# ---------------------------------------------------------------------------
# Tools: context and working memory
# ---------------------------------------------------------------------------


@mcp.tool
async def assemble_context(
    agent_id: str,
    org_id: str,
    task_goal: str,
    task_id: str,
    max_tokens: int | None = None,
    include_episodes: bool = True,
    include_semantic: bool = True,
    task_instruction: str | None = None,
) -> AssembleContextResult:
    """Build the prompt context for a task from all memory tiers.

    Args:
        agent_id: Agent whose identity and history are loaded.
        org_id: Organization whose knowledge is searched.
        task_goal: Goal text used as the knowledge search query.
        task_id: Task whose working memory is included in full.
        max_tokens: Token budget; only history and knowledge are trimmed.
        include_episodes: Load ranked past experience.
        include_semantic: Search organization knowledge.
        task_instruction: If given, also return a full system prompt.
    """
    start = perf_counter()
    system = _get_system()
    try:
        context = await system.assemble(
            agent_id,
            org_id,
            task_goal,
            task_id,
            max_tokens=max_tokens,
            include_episodes=include_episodes,
            include_semantic=include_semantic,
        )
    except TierMemError as exc:
        result = _failed(AssembleContextResult, exc)
    else:
        result = AssembleContextResult(
            text=context.text,
            system_prompt=(
                build_system_prompt(context, task_instruction)
                if task_instruction
                else None
            ),
            token_estimate=context.token_estimate,
            trimmed=context.trimmed,
            working_entries=len(context.working),
            episodes=len(context.episodes),
            knowledge=len(context.semantic),
        )
    _record("assemble_context", start, result)
    return result


@mcp.tool
async def record_message(
    agent_id: str,
    task_id: str,
    role: str,
    content: str,
) -> RecordMessageResult:
    """Append one turn to the task's working memory.

    Args:
        agent_id: Agent executing the task.
        task_id: Task the turn belongs to.
        role: One of user, assistant, system, tool_result.
        content: Turn text.
    """
    start = perf_counter()
    system = _get_system()
    try:
        entry_role = EntryRole(role)
    except ValueError:
        allowed = ", ".join(r.value for r in EntryRole)
        result = _rejected(RecordMessageResult, f"role must be one of: {allowed}.")
    else:
        await system.record_message(agent_id, task_id, entry_role, content)
        result = RecordMessageResult(
            entries=await system.working.count(agent_id, task_id)
        )
    _record("record_message", start, result)
    return result


@mcp.tool
async def consolidate_task(
    agent_id: str,
    org_id: str,
    task_id: str,
    goal: str,
    result_text: str,
    success: bool,
    importance: int | None = None,
) -> ConsolidateTaskResult:
    """Record a finished task as an episode and clear its working memory.

    Args:
        agent_id: Agent that ran the task.
        org_id: Organization the task belongs to.
        task_id: Finished task.
        goal: Task goal text.
        result_text: Final output or failure description.
        success: Whether the task succeeded.
        importance: Base importance 1-10 (failures get a bonus).
    """
    start = perf_counter()
    system = _get_system()
    try:
        outcome = await system.consolidate(
            result_text,
            goal,
            success,
            agent_id=agent_id,
            org_id=org_id,
            task_id=task_id,
            importance=importance,
        )
    except TierMemError as exc:
        result = _failed(ConsolidateTaskResult, exc)
    else:
        result = ConsolidateTaskResult(
            episode_id=outcome.episode_id,
            promoted=outcome.promoted,
            promotion_error=outcome.promotion_error,
            working_memory_cleared=outcome.working_memory_cleared,
        )
    _record("consolidate_task", start, result)
    return result


# ---------------------------------------------------------------------------
# Tools: semantic memory
# ---------------------------------------------------------------------------


def _parse_scope(scope: str | None) -> KnowledgeScope | None:
    return KnowledgeScope(scope) if scope is not None else None


def _entries(fragments: list[SemanticFragment]) -> list[KnowledgeEntry]:
    return [
        KnowledgeEntry(
            id=f.id,
            content=f.content,
            scope=f.scope.value,
            source_type=f.source_type,
            importance=f.importance,
            similarity=f.similarity,
        )
        for f in fragments
    ]


@mcp.tool
async def memory_query(
    org_id: str,
    query: str,
    limit: int = 8,
    scope: str | None = None,
    min_importance: int | None = None,
) -> MemoryQueryResult:
    """Search organization knowledge by meaning.

    Args:
        org_id: Organization to search.
        query: Natural language query.
        limit: Max fragments returned.
        scope: Optional filter (organization, agent, domain).
        min_importance: Importance floor (default 3).
    """
    start = perf_counter()
    system = _get_system()
    try:
        knowledge_scope = _parse_scope(scope)
    except ValueError:
        result = _rejected(
            MemoryQueryResult, "scope must be one of: organization, agent, domain."
        )
    else:
        try:
            fragments = await system.semantic.search(
                org_id,
                query,
                limit=limit,
                scope=knowledge_scope,
                min_importance=min_importance,
            )
        except TierMemError as exc:
            result = _failed(MemoryQueryResult, exc)
        else:
            result = MemoryQueryResult(results=_entries(fragments))
    _record("memory_query", start, result)
    return result


@mcp.tool
async def memory_list(
    org_id: str,
    agent_id: str | None = None,
    scope: str | None = None,
    limit: int = 20,
) -> MemoryQueryResult:
    """List the most recent knowledge, newest first.

    Args:
        org_id: Organization whose knowledge is listed.
        agent_id: Only fragments this agent produced.
        scope: Optional filter (organization, agent, domain).
        limit: Max fragments returned.
    """
    start = perf_counter()
    system = _get_system()
    try:
        knowledge_scope = _parse_scope(scope)
    except ValueError:
        result = _rejected(
            MemoryQueryResult, "scope must be one of: organization, agent, domain."
        )
    else:
        try:
            fragments = await system.semantic.list_recent(
                org_id, agent_id=agent_id, scope=knowledge_scope, limit=limit
            )
        except TierMemError as exc:
            result = _failed(MemoryQueryResult, exc)
        else:
            result = MemoryQueryResult(results=_entries(fragments))
    _record("memory_list", start, result)
    return result


@mcp.tool
async def memory_save(
    org_id: str,
    content: str,
    agent_id: str | None = None,
    scope: str = "organization",
    source_type: str = "agent_note",
    importance: int = 5,
) -> MemorySaveResult:
    """Store a piece of knowledge for later semantic search.

    Args:
        org_id: Organization that owns the knowledge.
        content: Knowledge text.
        agent_id: Agent that produced it.
        scope: organization, agent or domain.
        source_type: Provenance label.
        importance: 1-10.
    """
    start = perf_counter()
    system = _get_system()
    try:
        knowledge_scope = KnowledgeScope(scope)
    except ValueError:
        result = _rejected(
            MemorySaveResult, "scope must be one of: organization, agent, domain."
        )
    else:
        try:
            knowledge_id = await system.semantic.save(
                org_id,
                agent_id,
                content,
                scope=knowledge_scope,
                source_type=source_type,
                importance=importance,
            )
        except TierMemError as exc:
            result = _failed(MemorySaveResult, exc)
        else:
            result = MemorySaveResult(knowledge_id=knowledge_id)
    _record("memory_save", start, result)
    return result


@mcp.tool
async def seed_onboarding(
    org_id: str,
    facts: list[str],
    agent_id: str | None = None,
) -> SeedOnboardingResult:
    """Save onboarding answers as high-importance organization knowledge.

    Args:
        org_id: Organization being onboarded.
        facts: One fact per entry.
        agent_id: Agent that collected the answers.
    """
    start = perf_counter()
    system = _get_system()
    try:
        ids = await system.semantic.seed_onboarding(org_id, agent_id, facts)
    except TierMemError as exc:
        result = _failed(SeedOnboardingResult, exc)
    else:
        result = SeedOnboardingResult(knowledge_ids=ids)
    _record("seed_onboarding", start, result)
    return result


@mcp.tool
async def agent_memory_block(
    org_id: str,
    agent_id: str,
    limit: int | None = None,
) -> AgentMemoryBlockResult:
    """Render the agent's recent notes as a block for a system prompt.

    Args:
        org_id: Organization of the agent.
        agent_id: Agent whose notes are rendered.
        limit: Max notes included (default 15).
    """
    start = perf_counter()
    system = _get_system()
    text = await system.assembler.agent_memory_block(org_id, agent_id, limit=limit)
    result = AgentMemoryBlockResult(text=text)
    _record("agent_memory_block", start, result)
    return result


# ---------------------------------------------------------------------------
# Tools: episodic memory
# ---------------------------------------------------------------------------


@mcp.tool
async def record_correction(
    agent_id: str,
    org_id: str,
    what_happened: str,
    what_should_have_happened: str,
    task_id: str | None = None,
) -> EpisodeResult:
    """Record a human correction as a high-importance episode.

    Args:
        agent_id: Agent being corrected.
        org_id: Organization of the agent.
        what_happened: What the agent did.
        what_should_have_happened: What it should have done.
        task_id: Task the correction refers to, if any.
    """
    start = perf_counter()
    system = _get_system()
    try:
        episode_id = await system.episodic.record_correction(
            agent_id, org_id, task_id, what_happened, what_should_have_happened
        )
    except TierMemError as exc:
        result = _failed(EpisodeResult, exc)
    else:
        await system.audit.record(
            AuditEventType.CORRECTION_RECORDED,
            agent_id=agent_id,
            episode_id=episode_id,
            task_id=task_id,
        )
        result = EpisodeResult(episode_id=episode_id)
    _record("record_correction", start, result)
    return result


@mcp.tool
async def boost_episode(episode_id: str, importance: int) -> EpisodeResult:
    """Raise an episode's importance (capped at 10).

    Args:
        episode_id: Episode to boost.
        importance: New importance; callers only ever boost upward.
    """
    start = perf_counter()
    system = _get_system()
    try:
        found = await system.episodic.boost(episode_id, importance)
    except TierMemError as exc:
        result = _failed(EpisodeResult, exc)
    else:
        if found:
            result = EpisodeResult(episode_id=episode_id)
        else:
            result = EpisodeResult(
                episode_id=episode_id,
                status="error",
                error_code="episode_not_found",
                message=f"Episode {episode_id!r} does not exist.",
            )
    _record("boost_episode", start, result)
    return result


# ---------------------------------------------------------------------------
# Tools: core memory
# ---------------------------------------------------------------------------


@mcp.tool
async def init_agent(
    agent_id: str,
    core: CoreMemory,
    org_id: str | None = None,
) -> CoreMemoryResult:
    """Create or fully replace an agent's core memory.

    Args:
        agent_id: Agent being initialized.
        core: Identity, organization profile, directives and pinned facts.
        org_id: Organization the agent belongs to.
    """
    start = perf_counter()
    system = _get_system()
    try:
        await system.core.create(agent_id, core, org_id=org_id)
    except TierMemError as exc:
        result = _failed(CoreMemoryResult, exc)
    else:
        result = CoreMemoryResult(core=core)
    _record("init_agent", start, result)
    return result


@mcp.tool
async def update_core_memory(
    agent_id: str, patch: CoreMemoryPatch
) -> CoreMemoryResult:
    """Deep-merge a partial update into an existing agent's core memory.

    Args:
        agent_id: Agent to update; it must already be initialized.
        patch: Fields to change; unset fields are left untouched.
    """
    start = perf_counter()
    system = _get_system()
    try:
        core = await system.core.merge(agent_id, patch)
    except TierMemError as exc:
        result = _failed(CoreMemoryResult, exc)
    else:
        result = CoreMemoryResult(core=core)
    _record("update_core_memory", start, result)
    return result


@mcp.tool
async def add_directive(agent_id: str, text: str) -> CoreMemoryResult:
    """Add a standing order to the agent's core memory.

    Args:
        agent_id: Agent receiving the directive.
        text: Directive text.
    """
    start = perf_counter()
    system = _get_system()
    try:
        core = await system.core.add_directive(agent_id, text)
    except TierMemError as exc:
        result = _failed(CoreMemoryResult, exc)
    else:
        result = CoreMemoryResult(core=core)
    _record("add_directive", start, result)
    return result


@mcp.tool
async def add_pinned_fact(agent_id: str, fact: str) -> CoreMemoryResult:
    """Pin a fact so it is always in the agent's context.

    Args:
        agent_id: Agent receiving the fact.
        fact: Fact text.
    """
    start = perf_counter()
    system = _get_system()
    try:
        core = await system.core.add_pin(agent_id, fact)
    except TierMemError as exc:
        result = _failed(CoreMemoryResult, exc)
    else:
        result = CoreMemoryResult(core=core)
    _record("add_pinned_fact", start, result)
    return result


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run the MCP server over stdio, configured from the environment."""
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_serve(MemoryConfig.from_env()))


async def _serve(config: MemoryConfig) -> None:
    await configure(config)
    try:
        await mcp.run_async()
    finally:
        await shutdown()
