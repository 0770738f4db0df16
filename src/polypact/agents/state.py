"""Request-scoped values passed between pipeline stages.

Citations, grounding results, sufficiency verdicts, reasoning results and the
chat message records handed to persistence.
"""

from dataclasses import dataclass, field
from typing import Optional, Any
from enum import Enum
import uuid

from ..core.utils import utc_now_iso


EPHEMERAL_PREFIX = "temp_"


def is_ephemeral(case_id: Optional[str]) -> bool:
    """Guest sessions use ids starting with ``temp_`` and have no stored case."""
    return bool(case_id) and case_id.startswith(EPHEMERAL_PREFIX)


class LegalSide(Enum):
    """Which side Counsel represents. Selects the strategic directive text."""
    PROSECUTION = "PROSECUTION"
    DEFENSE = "DEFENSE"
    CORPORATE = "CORPORATE"
    FINANCIAL = "FINANCIAL"
    CIVIL = "CIVIL"
    GENERAL = "GENERAL"

    @classmethod
    def parse(cls, value: Any) -> "LegalSide":
        """Case-insensitive lookup. Missing or unknown values become PROSECUTION."""
        if isinstance(value, LegalSide):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.PROSECUTION


@dataclass
class Jurisdiction:
    """Where the matter is being litigated."""
    state: str
    city: Optional[str] = None
    country: str = "IN"

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Jurisdiction"]:
        if isinstance(data, Jurisdiction):
            return data
        if not isinstance(data, dict) or not data.get("state"):
            return None
        return cls(
            state=str(data["state"]),
            city=data.get("city"),
            country=data.get("country") or "IN",
        )

    def to_dict(self) -> dict:
        result = {"state": self.state, "country": self.country}
        if self.city:
            result["city"] = self.city
        return result


# =============================================================================
# Grounding
# =============================================================================

@dataclass
class Citation:
    """A legal authority cited in a grounded answer."""
    title: str
    citation_ref: Optional[str] = None
    court: Optional[str] = None
    url: Optional[str] = None
    snippet: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"title": self.title}
        for name in ("citation_ref", "court", "url", "snippet"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Citation":
        return cls(
            title=str(data.get("title", "")),
            citation_ref=data.get("citation_ref"),
            court=data.get("court"),
            url=data.get("url"),
            snippet=data.get("snippet"),
        )


def merge_citations(*groups: list[Citation]) -> list[Citation]:
    """Concatenate citation lists, keeping the first citation seen for each title."""
    seen: set[str] = set()
    merged: list[Citation] = []
    for group in groups:
        for citation in group or []:
            if citation.title in seen:
                continue
            seen.add(citation.title)
            merged.append(citation)
    return merged


@dataclass
class GroundingResult:
    """Answer from the grounding agent plus the authorities behind it."""
    answer: str
    citations: list[Citation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "citations": [c.to_dict() for c in self.citations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GroundingResult":
        return cls(
            answer=data.get("answer", ""),
            citations=[Citation.from_dict(c) for c in data.get("citations", [])],
        )


# =============================================================================
# Sufficiency
# =============================================================================

class SufficiencyStatus(Enum):
    SUFFICIENT = "SUFFICIENT"
    NEEDS_INFO = "NEEDS_INFO"


@dataclass
class SufficiencyVerdict:
    """Gatekeeper decision. Computed per request, never stored."""
    status: SufficiencyStatus
    sufficiency_score: int = 100
    missing_fields: Optional[list[str]] = None
    clarification_prompt: Optional[str] = None

    @classmethod
    def sufficient(cls) -> "SufficiencyVerdict":
        return cls(status=SufficiencyStatus.SUFFICIENT, sufficiency_score=100)

    @property
    def needs_info(self) -> bool:
        return self.status == SufficiencyStatus.NEEDS_INFO

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"status": self.status.value}
        if self.missing_fields is not None:
            result["missing_fields"] = list(self.missing_fields)
        if self.clarification_prompt is not None:
            result["clarification_prompt"] = self.clarification_prompt
        result["sufficiency_score"] = self.sufficiency_score
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "SufficiencyVerdict":
        return cls(
            status=SufficiencyStatus(data["status"]),
            sufficiency_score=data.get("sufficiency_score", 100),
            missing_fields=data.get("missing_fields"),
            clarification_prompt=data.get("clarification_prompt"),
        )


# =============================================================================
# Reasoning
# =============================================================================

@dataclass
class ReasoningResult:
    """One assistant turn returned to the caller."""
    content: str
    role: str = "assistant"
    metadata: Optional[dict] = None
    citations: list[Citation] = field(default_factory=list)

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"content": self.content, "role": self.role}
        if self.metadata is not None:
            result["metadata"] = self.metadata
        result["citations"] = [c.to_dict() for c in self.citations]
        return result


@dataclass
class ChatMessage:
    """A persisted chat history record."""
    id: str
    role: str
    content: str
    timestamp: str
    citations: Optional[list[Citation]] = None
    metadata: Optional[dict] = None

    @classmethod
    def create(
        cls,
        role: str,
        content: str,
        citations: Optional[list[Citation]] = None,
        metadata: Optional[dict] = None,
    ) -> "ChatMessage":
        return cls(
            id=str(uuid.uuid4()),
            role=role,
            content=content,
            timestamp=utc_now_iso(),
            citations=citations or None,
            metadata=metadata,
        )

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.citations:
            result["citations"] = [c.to_dict() for c in self.citations]
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass
class ChatRequest:
    """Input to one orchestrated chat turn."""
    prompt: str
    requester_id: str
    case_id: Optional[str] = None
    session_id: Optional[str] = None
    legal_side: LegalSide = LegalSide.PROSECUTION
    history: list[dict] = field(default_factory=list)

    @property
    def case_attached(self) -> bool:
        """True when the turn belongs to a stored (non-guest) case."""
        return bool(self.case_id) and not is_ephemeral(self.case_id)


# =============================================================================
# Grounding decision
# =============================================================================

GROUNDING_KEYWORDS = [
    "punishment", "case law", "precedent", "judgment", "rule", "section",
    "article", "law", "supreme court", "high court", "ipc", "crpc", "bns",
    "bnss", "bsa",
]


def needs_grounding(prompt: str) -> bool:
    """Keyword trigger for live legal-source grounding."""
    prompt_lower = prompt.lower()
    return len(prompt) > 10 and any(kw in prompt_lower for kw in GROUNDING_KEYWORDS)
