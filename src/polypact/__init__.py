"""PolyPact - legal reasoning and grounding core for Indian litigation.

PolyPact answers Counsel's questions with side-aware strategy, grounds
legal claims in primary sources (Indian Kanoon), audits grounded answers
into a structured headnote, and blocks drafting when case facts are missing.

Basic Usage:
    from polypact import PolyPact
    from polypact.service import ServiceConfig

    polypact = PolyPact(ServiceConfig.from_env())

    result = await polypact.chat(
        prompt="What is the punishment under Section 302?",
        requester_id="uid_123",
        case_id="case_abc",
        legal_side="DEFENSE",
    )
    print(result.content)
    for citation in result.citations:
        print(citation.title, citation.url)

Grounded research:
    grounding = await polypact.research("anticipatory bail for economic offences", "uid_123")
    print(grounding.answer)

Synchronous Usage:
    from polypact import chat_sync

    result = chat_sync("Explain Section 438 CrPC", "uid_123")
"""

__version__ = "0.1.0"

# Main API
from .api import (
    PolyPact,
    build_gateway,
    build_routes,
    chat_sync,
    get_version,
)

# Data types (for advanced usage)
from .agents.state import (
    LegalSide,
    Jurisdiction,
    Citation,
    GroundingResult,
    SufficiencyStatus,
    SufficiencyVerdict,
    ReasoningResult,
    ChatRequest,
    ChatMessage,
)
from .core.models import ModelKey, ModelGateway
from .core.store import InMemoryCaseStore
from .core.utils import FailureKind, Result

__all__ = [
    # Version
    "__version__",
    # Main API
    "PolyPact",
    "build_gateway",
    "build_routes",
    "chat_sync",
    "get_version",
    # Data types
    "LegalSide",
    "Jurisdiction",
    "Citation",
    "GroundingResult",
    "SufficiencyStatus",
    "SufficiencyVerdict",
    "ReasoningResult",
    "ChatRequest",
    "ChatMessage",
    # Core
    "ModelKey",
    "ModelGateway",
    "InMemoryCaseStore",
    "FailureKind",
    "Result",
]
