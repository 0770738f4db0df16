"""Agents - grounding, verification, sufficiency gate, and the reasoning orchestrator."""

# Lazy imports to avoid circular import issues
# (core.context imports agents.prompts; the orchestrator imports core.context)
__all__ = [
    "LegalSide",
    "Citation",
    "GroundingResult",
    "SufficiencyVerdict",
    "ReasoningResult",
    "ChatRequest",
    "merge_citations",
    "GroundingAgent",
    "VerificationAgent",
    "SufficiencyGatekeeper",
    "ReasoningOrchestrator",
    "KnowledgeGraphBuilder",
]

from .state import (
    LegalSide,
    Citation,
    GroundingResult,
    SufficiencyVerdict,
    ReasoningResult,
    ChatRequest,
    merge_citations,
)

_LAZY = {
    "GroundingAgent": ".researcher",
    "VerificationAgent": ".verifier",
    "SufficiencyGatekeeper": ".gatekeeper",
    "ReasoningOrchestrator": ".orchestrator",
    "KnowledgeGraphBuilder": ".graph",
}


def __getattr__(name):
    """Lazy load agent modules."""
    if name in _LAZY:
        import importlib
        module = importlib.import_module(_LAZY[name], __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
