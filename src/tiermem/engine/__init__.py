"""Engine domain — context assembly, consolidation and side effects.

Exports are loaded lazily: the memory stores import the side-effect queue
from this package, and the engines import the memory stores.
"""

from __future__ import annotations

from importlib import import_module

__all__ = [
    "ConsolidationEngine",
    "ConsolidationResult",
    "ContextAssembler",
    "SideEffectQueue",
    "build_system_prompt",
    "estimate_tokens",
    "render_agent_memory",
    "render_context",
]


_EXPORT_TO_MODULE = {
    "ConsolidationEngine": "tiermem.engine.consolidation",
    "ConsolidationResult": "tiermem.engine.consolidation",
    "ContextAssembler": "tiermem.engine.context",
    "SideEffectQueue": "tiermem.engine.side_effects",
    "build_system_prompt": "tiermem.engine.render",
    "estimate_tokens": "tiermem.engine.render",
    "render_agent_memory": "tiermem.engine.render",
    "render_context": "tiermem.engine.render",
}


def __getattr__(name: str):
    module_name = _EXPORT_TO_MODULE.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(module_name)
    return getattr(module, name)
