"""Grounding agent - primary-source lookup plus model synthesis.

1. If a search credential is configured, search the case-law index and fetch
   the full text of the top hit. Any failure here means "no primary context".
2. Ask the RESEARCH model for ``{answer, citations[]}`` in four fixed sections.
3. If primary context was used, run the draft through the verification agent.
"""

import logging
import time
from typing import Optional

from ..core.external_search import IndianKanoonClient, LegalAuthority
from ..core.models import ModelGateway, ModelKey
from . import prompts
from .decisions import _log_llm_result, invoke_json
from .state import Citation, GroundingResult, Jurisdiction, merge_citations
from .verifier import SECTION_HEADERS, SECTION_PLACEHOLDERS, VerificationAgent

logger = logging.getLogger(__name__)


class GroundingAgent:
    """Produces a ``GroundingResult`` for a legal query. Never raises for transport/parse failures."""

    MAX_AUTHORITIES = 5

    def __init__(
        self,
        gateway: ModelGateway,
        search_client: Optional[IndianKanoonClient] = None,
        verifier: Optional[VerificationAgent] = None,
    ):
        self.gateway = gateway
        self.search_client = search_client
        self.verifier = verifier or VerificationAgent(gateway)

    # === PRIMARY SOURCE ===

    async def _primary_sources(
        self,
        query: str,
        jurisdiction: Optional[Jurisdiction],
    ) -> tuple[list[LegalAuthority], str]:
        """Top authorities and the formatted primary-source context ("" when none)."""
        if self.search_client is None or not self.search_client.configured:
            logger.info("No primary-source credential configured, skipping live legal search")
            return [], ""

        search_query = f"{query} {jurisdiction.state if jurisdiction else ''}".strip()
        try:
            found = await self.search_client.search(search_query, max_results=self.MAX_AUTHORITIES)
        except Exception as e:
            logger.warning(f"Primary-source search raised: {e}")
            return [], ""

        if not found.ok:
            logger.warning(f"Primary-source search failed ({found.kind.value}): {found.detail}")
            return [], ""

        authorities = found.value[:self.MAX_AUTHORITIES]
        if not authorities:
            logger.info("Primary-source search returned 0 results")
            return [], ""

        lines = [
            prompts.P_KANOON_RESULT_LINE.format(
                index=i,
                title=a.title,
                court=a.court,
                snippet=a.snippet or "",
                url=a.url,
            )
            for i, a in enumerate(authorities, 1)
        ]
        context = prompts.P_KANOON_RESULTS_HEADER + "\n".join(lines)

        top = authorities[0]
        try:
            full_text = await self.search_client.fetch_full_text(top.external_id)
        except Exception as e:
            logger.warning(f"Full-text fetch raised for {top.external_id}: {e}")
            full_text = None

        if full_text is not None and full_text.ok and full_text.value:
            context += prompts.P_KANOON_FULL_TEXT.format(title=top.title, text=full_text.value)
        else:
            logger.info(f"Continuing without full text for {top.external_id}")

        return authorities, context

    # === SYNTHESIS ===

    def _build_prompt(self, query: str, jurisdiction: Optional[Jurisdiction], primary_context: str) -> str:
        if jurisdiction:
            jurisdiction_context = prompts.P_JURISDICTION_STATE.format(state=jurisdiction.state)
        else:
            jurisdiction_context = prompts.P_JURISDICTION_CENTRAL

        return prompts.P_GROUNDED_RESEARCH.format(
            query=query,
            jurisdiction_context=jurisdiction_context,
            source_instruction=prompts.P_PRIMARY_SOURCE_INSTRUCTION if primary_context else prompts.P_NO_PRIMARY_SOURCE,
            primary_context=primary_context,
            state=jurisdiction.state if jurisdiction else "India",
        )

    @staticmethod
    def _parse_citations(raw_citations) -> list[Citation]:
        citations = []
        for item in raw_citations or []:
            if isinstance(item, dict) and item.get("title"):
                citations.append(Citation.from_dict(item))
            elif isinstance(item, str) and item.strip():
                citations.append(Citation(title=item.strip()))
        return citations

    @staticmethod
    def fallback_answer(authorities: list[LegalAuthority]) -> str:
        """Four-section answer used when synthesis is unavailable."""
        sections = []
        for field, header in SECTION_HEADERS:
            text = SECTION_PLACEHOLDERS[field]
            if field == "facts" and authorities:
                snippets = [f"- {a.title} ({a.court}): {a.snippet}" for a in authorities if a.snippet]
                if snippets:
                    text = "Primary-source extracts:\n" + "\n".join(snippets)
            sections.append(f"### {header}\n{text}")
        sections.append("*(Research model unavailable; answer could not be synthesized.)*")
        return "\n\n".join(sections)

    async def research(self, query: str, jurisdiction: Optional[Jurisdiction] = None) -> GroundingResult:
        """Grounded legal research for ``query``."""
        start_time = time.time()
        logger.info(f"📚 research: {query[:80]}")

        authorities, primary_context = await self._primary_sources(query, jurisdiction)
        primary_citations = [
            Citation(
                title=a.title,
                citation_ref=a.citation_ref,
                court=a.court,
                url=a.url,
                snippet=a.snippet,
            )
            for a in authorities
        ]

        prompt = self._build_prompt(query, jurisdiction, primary_context)
        parsed, raw = await invoke_json(
            self.gateway,
            "grounded_research",
            ModelKey.RESEARCH,
            [{"role": "user", "content": prompt}],
        )

        if raw is None:
            logger.warning(f"Research synthesis failed ({parsed.kind.value}), using fallback answer")
            result = GroundingResult(answer=self.fallback_answer(authorities), citations=primary_citations)
            _log_llm_result("research", result.answer, time.time() - start_time)
            return result

        if not parsed.ok:
            logger.warning("Failed to parse research JSON, returning raw text")
            result = GroundingResult(answer=raw.strip(), citations=primary_citations)
            _log_llm_result("research", result.answer, time.time() - start_time)
            return result

        payload = parsed.value
        answer = payload.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            answer = raw.strip()

        citations = merge_citations(primary_citations, self._parse_citations(payload.get("citations")))

        if primary_context:
            logger.info("Auditing grounded answer against primary sources")
            answer = await self.verifier.audit(primary_context, answer)

        result = GroundingResult(answer=answer, citations=citations)
        _log_llm_result("research", result.answer, time.time() - start_time)
        return result
