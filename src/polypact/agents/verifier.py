"""Verification agent - re-derives a grounded answer's headnote from primary sources.

The audit model may label sections however it likes ("ratio_decidendi",
"Reasoning", "Holdings"...). Each logical section has an ordered synonym list
and ``find_section`` resolves it: exact key, then singular/plural, then substring.
Missing sections get placeholders so the four headers are always present.
"""

import logging
from typing import Any, Optional

from ..core.models import ModelGateway, ModelKey
from . import prompts
from .decisions import invoke_json

logger = logging.getLogger(__name__)


SECTION_SYNONYMS: dict[str, list[str]] = {
    "facts": ["facts", "fact", "background"],
    "held": ["held", "holding", "holdings", "decision"],
    "ratio": ["ratio decidendi", "ratio", "rationale", "reasoning"],
    "judgment": ["judgment", "judgement", "order", "conclusion", "disposition"],
}

# (field, Markdown header) in output order
SECTION_HEADERS: list[tuple[str, str]] = [
    ("facts", "Facts"),
    ("held", "Held"),
    ("ratio", "Ratio Decidendi"),
    ("judgment", "Judgment"),
]

SECTION_PLACEHOLDERS: dict[str, str] = {
    "facts": "Finding details in official records...",
    "held": "Pending judicial verification...",
    "ratio": "Analyzing legal principle...",
    "judgment": "Conclusive finding pending...",
}

SUMMARY_KEYS = ("answer", "content", "summary")


def _normalize_key(key: Any) -> str:
    return " ".join(str(key).lower().replace("_", " ").replace("-", " ").split())


def find_section(payload: dict, field: str) -> Optional[Any]:
    """Locate a logical section in an arbitrarily-keyed model payload."""
    synonyms = SECTION_SYNONYMS[field]
    keys: dict[str, Any] = {}
    for key in payload:
        keys.setdefault(_normalize_key(key), key)

    # Exact
    for synonym in synonyms:
        if synonym in keys:
            return payload[keys[synonym]]

    # Singular/plural
    for synonym in synonyms:
        stem = synonym.rstrip("s")
        for normalized, key in keys.items():
            if normalized.rstrip("s") == stem:
                return payload[key]

    # Substring
    for synonym in synonyms:
        for normalized, key in keys.items():
            if synonym in normalized:
                return payload[key]

    return None


def flatten_value(value: Any) -> str:
    """Render a string, list or nested dict as Markdown text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        items = [flatten_value(item) for item in value]
        return "\n\n".join(item for item in items if item)
    if isinstance(value, dict):
        entries = []
        for key, item in value.items():
            text = flatten_value(item)
            if text:
                entries.append(f"**{key}**: {text}")
        return "\n\n".join(entries)
    return str(value).strip()


def render_headnote(payload: dict) -> str:
    """Four fixed sections plus the verification footer."""
    sections = []
    resolved_any = False
    for field, header in SECTION_HEADERS:
        text = flatten_value(find_section(payload, field))
        if text:
            resolved_any = True
        sections.append(f"### {header}\n{text or SECTION_PLACEHOLDERS[field]}")

    body = "\n\n".join(sections)

    if not resolved_any:
        for key in SUMMARY_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                body += f"\n\n### Summary\n{value.strip()}"
                break

    return f"{body}\n\n{prompts.VERIFIED_FOOTER}"


class VerificationAgent:
    """Second, independent model pass over a grounded draft."""

    def __init__(self, gateway: ModelGateway):
        self.gateway = gateway

    async def audit(self, grounding_raw_text: str, draft_answer: str) -> str:
        """Audit ``draft_answer`` against ``grounding_raw_text``.

        Model failure returns the draft unchanged. Unparseable output returns
        the raw audit text with the degraded footer.
        """
        prompt = prompts.P_AUDIT_HEADNOTE.format(
            grounding=grounding_raw_text,
            draft=draft_answer,
        )
        parsed, raw = await invoke_json(
            self.gateway,
            "audit_headnote",
            ModelKey.RESEARCH,
            [{"role": "user", "content": prompt}],
        )

        if raw is None:
            logger.warning(f"Audit call failed ({parsed.kind.value}), keeping unverified draft")
            return draft_answer

        if not parsed.ok:
            logger.warning("Audit JSON parsing failed, using raw audit text")
            return f"{raw.strip()}\n\n{prompts.DEGRADED_FOOTER}"

        return render_headnote(parsed.value)
