"""Reasoning orchestrator - one chat turn, end to end.

State machine per request:

    Start -> ContextBuilt -> GroundingDecision -> [Grounding] -> [SufficiencyGate]
          -> Reasoning -> Terminal (persist user + assistant messages)

Every stage before Terminal degrades instead of failing: missing context,
failed grounding, a failed gate or a failed main call still yield an assistant
turn. Only ownership and not-found conditions reach the caller.

Also hosts the other orchestrated flows the HTTP layer exposes: research,
drafting, tactical analysis, redraft and comparison.
"""

import json
import logging
import time
import uuid
from typing import Callable, Optional

from ..core.context import ContextAggregator
from ..core.models import ModelGateway, ModelKey
from ..core.store import CaseRecord, CaseStore, case_key, load_case, session_key
from ..core.utils import (
    AuthorizationError,
    FailureKind,
    NotFoundError,
    Result,
    clip,
    utc_now_iso,
)
from . import prompts
from .decisions import _log_llm_call, _log_llm_result, invoke_json, parse_json_safe
from .gatekeeper import SufficiencyGatekeeper
from .researcher import GroundingAgent
from .state import (
    ChatMessage,
    ChatRequest,
    Citation,
    GroundingResult,
    Jurisdiction,
    LegalSide,
    ReasoningResult,
    SufficiencyVerdict,
    is_ephemeral,
    needs_grounding,
)

logger = logging.getLogger(__name__)

# Decides whether a prompt needs live legal-source grounding
GroundingClassifier = Callable[[str], bool]


class ReasoningOrchestrator:
    """Coordinates context, grounding, gatekeeping and the main reasoning call."""

    HISTORY_TURNS = 15
    MIN_GATED_PROMPT = 4
    COMPARE_CHAR_LIMIT = 3000
    HISTORY_ROLES = ("user", "assistant", "system")

    def __init__(
        self,
        gateway: ModelGateway,
        store: CaseStore,
        aggregator: ContextAggregator,
        grounding: GroundingAgent,
        gatekeeper: SufficiencyGatekeeper,
        classifier: GroundingClassifier = needs_grounding,
    ):
        self.gateway = gateway
        self.store = store
        self.aggregator = aggregator
        self.grounding = grounding
        self.gatekeeper = gatekeeper
        self.classifier = classifier

    # === CASE ACCESS ===

    async def _require_owned_case(self, case_id: str, requester_id: str) -> CaseRecord:
        record = await load_case(self.store, case_id)
        if record is None:
            raise NotFoundError(f"Case not found: {case_id}")
        if not record.owned_by(requester_id):
            raise AuthorizationError(f"Case {case_id} does not belong to requester")
        return record

    async def _case_jurisdiction(self, case_id: Optional[str]) -> Optional[Jurisdiction]:
        if not case_id or is_ephemeral(case_id):
            return None
        try:
            record = await load_case(self.store, case_id)
        except Exception as e:
            logger.error(f"Failed to load case {case_id} for jurisdiction: {e}")
            return None
        return Jurisdiction.from_dict(record.jurisdiction) if record else None

    async def _context_for(self, case_id: Optional[str], requester_id: str) -> str:
        if not case_id or is_ephemeral(case_id):
            return ""
        return await self.aggregator.build_context(case_id, requester_id)

    # === MODEL CALLS ===

    async def _complete_reasoning(
        self,
        prompt: str,
        context: str,
        legal_side: LegalSide,
        history: Optional[list[dict]] = None,
    ) -> Result[str]:
        """GENERAL-model call with the persona, context and legal-side directive."""
        messages = [{
            "role": "system",
            "content": prompts.P_REASONING_SYSTEM.format(
                context=context,
                directive=prompts.STRATEGIC_DIRECTIVES[legal_side],
            ),
        }]
        for turn in (history or [])[-self.HISTORY_TURNS:]:
            role = turn.get("role")
            content = turn.get("content")
            if role in self.HISTORY_ROLES and isinstance(content, str):
                messages.append({"role": role, "content": content})
        messages.append({"role": "user", "content": prompt})

        start_time = time.time()
        _log_llm_call("legal_reasoning", ModelKey.GENERAL, prompt)
        try:
            response = await self.gateway.invoke(ModelKey.GENERAL, messages, temperature=0.1)
        except Exception as e:
            response = Result.failure(FailureKind.TRANSPORT, str(e))
        _log_llm_result("legal_reasoning", response.value if response.ok else response, time.time() - start_time)
        return response

    # === CHAT TURN ===

    async def run(self, request: ChatRequest) -> ReasoningResult:
        """Run one chat turn and persist it when a stored case is attached."""
        prompt = request.prompt
        logger.info(f"💬 Chat turn (case={request.case_id}, side={request.legal_side.value})")

        # Context
        context = ""
        jurisdiction = None
        if request.case_attached:
            record = await self._require_owned_case(request.case_id, request.requester_id)
            jurisdiction = Jurisdiction.from_dict(record.jurisdiction)
            try:
                context = await self.aggregator.build_context(request.case_id, request.requester_id)
            except Exception as e:
                logger.error(f"Context build failed for {request.case_id}: {e}")
                context = prompts.CONTEXT_UNAVAILABLE
        elif request.case_id:
            context = prompts.GUEST_SESSION_CONTEXT

        # Grounding
        citations: list[Citation] = []
        grounding_context = ""
        if self.classifier(prompt):
            logger.info("Legal query detected, fetching grounded research")
            try:
                grounding: GroundingResult = await self.grounding.research(prompt, jurisdiction)
                if grounding.citations:
                    citations = grounding.citations
                    grounding_context = prompts.GROUNDING_CONTEXT_HEADER + grounding.answer
            except Exception as e:
                logger.warning(f"Grounding failed, continuing with general knowledge: {e}")

        # Sufficiency gate
        verdict: Optional[SufficiencyVerdict] = None
        if request.case_attached and len(prompt.strip()) > self.MIN_GATED_PROMPT:
            try:
                verdict = await self.gatekeeper.check(prompt, context, jurisdiction)
            except Exception as e:
                logger.warning(f"Sufficiency check failed, proceeding to answer: {e}")

        if verdict is not None and verdict.needs_info:
            result = ReasoningResult(
                content=verdict.clarification_prompt or prompts.DEFAULT_CLARIFICATION,
                metadata={
                    "status": verdict.status.value,
                    "missing_fields": verdict.missing_fields or [],
                },
            )
        else:
            response = await self._complete_reasoning(
                prompt,
                context + grounding_context,
                request.legal_side,
                request.history,
            )
            if response.ok:
                result = ReasoningResult(content=response.value)
            else:
                logger.error(f"Reasoning generation failed: {response.detail}")
                result = ReasoningResult(content=prompts.REASONING_FAILED_MESSAGE)

        result.citations = citations

        if request.case_attached:
            await self.append_messages(
                request.case_id,
                request.requester_id,
                [
                    ChatMessage.create("user", prompt),
                    ChatMessage.create(
                        "assistant",
                        result.content or "System Error",
                        citations=result.citations,
                        metadata=result.metadata,
                    ),
                ],
                session_id=request.session_id,
            )

        return result

    async def append_messages(
        self,
        case_id: str,
        requester_id: str,
        messages: list[ChatMessage],
        session_id: Optional[str] = None,
    ):
        """Atomically append messages to a chat session, or to the case when no session."""
        target = session_key(case_id, session_id) if session_id else case_key(case_id)
        records = [m.to_dict() for m in messages]

        async def _append(tx):
            case_data = await tx.get(case_key(case_id))
            if case_data is None:
                raise NotFoundError(f"Case does not exist: {case_id}")
            if case_data.get("creatorUid") != requester_id:
                raise AuthorizationError(f"Case {case_id} does not belong to requester")

            data = case_data if not session_id else await tx.get(target)
            if data is None:
                raise NotFoundError(f"Session does not exist: {session_id}")

            tx.update(target, {
                "messages": list(data.get("messages") or []) + records,
                "updatedAt": utc_now_iso(),
            })

        await self.store.transaction(_append)
        logger.debug(f"Appended {len(records)} messages to {target}")

    # === RESEARCH ===

    async def research(
        self,
        query: str,
        requester_id: str,
        case_id: Optional[str] = None,
        jurisdiction: Optional[dict] = None,
    ) -> GroundingResult:
        """Grounded research, recorded in the case's research history when owned."""
        resolved = Jurisdiction.from_dict(jurisdiction)
        if resolved is None:
            resolved = await self._case_jurisdiction(case_id)

        result = await self.grounding.research(query, resolved)

        if case_id and not is_ephemeral(case_id):
            item = {
                "id": str(uuid.uuid4()),
                "query": query,
                "result": result.to_dict(),
                "timestamp": utc_now_iso(),
            }

            async def _record(tx):
                key = case_key(case_id)
                data = await tx.get(key)
                if data is None or data.get("creatorUid") != requester_id:
                    return
                tx.update(key, {
                    "researchHistory": list(data.get("researchHistory") or []) + [item],
                    "updatedAt": utc_now_iso(),
                })

            try:
                await self.store.transaction(_record)
            except Exception as e:
                logger.error(f"Failed to save research history for {case_id}: {e}")

        return result

    # === DRAFTING ===

    async def draft(
        self,
        instruction: str,
        requester_id: str,
        current_draft: str = "",
        case_id: Optional[str] = None,
        legal_side: LegalSide = LegalSide.PROSECUTION,
    ) -> dict:
        """Create or update a document. Returns ``{draft, summary, status}``."""
        context = await self._context_for(case_id, requester_id)
        prompt = prompts.P_DRAFTING.format(
            strategy=prompts.DRAFTING_STRATEGIES[legal_side],
            context=context,
            current_draft=current_draft or prompts.EMPTY_DRAFT,
            instruction=instruction,
        )
        parsed, raw = await invoke_json(
            self.gateway,
            "draft_document",
            ModelKey.RESEARCH,
            [{"role": "user", "content": prompt}],
        )

        if raw is None:
            return {"error": "Drafting failed", "message": parsed.detail}

        if not parsed.ok:
            logger.warning("Draft JSON parsing failed, returning raw text as draft")
            return {"draft": raw, "summary": "", "status": "DRAFT"}

        payload = parsed.value
        status = str(payload.get("status", "DRAFT")).upper()
        return {
            "draft": payload.get("draft") or "",
            "summary": payload.get("summary") or "",
            "status": status if status in ("FINALIZED", "DRAFT") else "DRAFT",
        }

    # === TACTICAL ANALYSIS ===

    async def _forensic_context(self, case_id: Optional[str], doc_id: Optional[str]) -> str:
        if not case_id or not doc_id or is_ephemeral(case_id):
            return ""
        record = await load_case(self.store, case_id)
        if record is None:
            return ""
        for doc in record.documents:
            if doc.get("id") == doc_id and doc.get("aiMetadata"):
                metadata = doc["aiMetadata"]
                return prompts.P_FORENSIC_INSIGHTS.format(
                    summary=metadata.get("summary"),
                    handwriting=_to_json(metadata.get("handwriting")),
                    entities=_to_json(metadata.get("entities")),
                    anomalies=_to_json(metadata.get("anomalies")),
                )
        return ""

    async def analyze(
        self,
        text: str,
        requester_id: str,
        case_id: Optional[str] = None,
        legal_side: LegalSide = LegalSide.PROSECUTION,
        doc_id: Optional[str] = None,
        mode: Optional[str] = None,
        current_draft: Optional[str] = None,
    ) -> dict:
        """Tactical audit of a text (or drafting, when ``mode == "draft"``)."""
        if mode == "draft" or current_draft:
            structured = await self.draft(text, requester_id, current_draft or "", case_id, legal_side)
        else:
            context = await self._context_for(case_id, requester_id)
            forensic = await self._forensic_context(case_id, doc_id)
            prompt = prompts.P_TACTICAL_AUDIT.format(context=context, forensic_context=forensic, text=text)

            response = await self._complete_reasoning(prompt, prompts.AUDIT_OBJECTIVE, legal_side)
            parsed = parse_json_safe(response.value) if response.ok else None
            if parsed is None:
                logger.error("Tactical audit did not produce structured data")
                return {
                    "error": "Analysis failed to produce structured data",
                    "raw": response.value if response.ok else None,
                }
            structured = parsed

        if "error" not in structured and case_id and doc_id and not is_ephemeral(case_id):
            await self._persist_analysis(case_id, doc_id, requester_id, {**structured, "rawText": text})

        return structured

    async def _persist_analysis(self, case_id: str, doc_id: str, requester_id: str, analysis: dict):
        logger.info(f"Persisting analysis for case {case_id}, doc {doc_id}")

        async def _update(tx):
            key = case_key(case_id)
            data = await tx.get(key)
            if data is None:
                raise NotFoundError(f"Case not found: {case_id}")
            if data.get("creatorUid") != requester_id:
                raise AuthorizationError(f"Case {case_id} does not belong to requester")

            documents = list(data.get("documents") or [])
            if not any(d.get("id") == doc_id for d in documents):
                raise NotFoundError(f"Document not found: {doc_id}")

            tx.update(key, {
                "documents": [
                    {**d, "analysis": analysis} if d.get("id") == doc_id else d
                    for d in documents
                ],
                "updatedAt": utc_now_iso(),
            })

        await self.store.transaction(_update)

    # === REDRAFT / COMPARE ===

    async def redraft(
        self,
        text: str,
        requester_id: str,
        instructions: Optional[str] = None,
        case_id: Optional[str] = None,
        legal_side: LegalSide = LegalSide.PROSECUTION,
    ) -> dict:
        """Rewrite a document in Counsel's favor, gated on sufficiency."""
        context = await self._context_for(case_id, requester_id)
        jurisdiction = await self._case_jurisdiction(case_id)

        verdict = await self.gatekeeper.check(instructions or "Redraft this", context, jurisdiction)
        if verdict.needs_info:
            fields = verdict.missing_fields or []
            return {
                "redraft": prompts.P_INSUFFICIENT_CONTEXT.format(
                    clarification=verdict.clarification_prompt,
                    missing=", ".join(fields),
                ),
                "status": verdict.status.value,
                "message": verdict.clarification_prompt,
                "missing_fields": fields,
            }

        prompt = prompts.P_REDRAFT.format(
            legal_side=legal_side.value,
            instructions=instructions or prompts.DEFAULT_REDRAFT_INSTRUCTIONS,
            text=text,
            context=context,
        )
        response = await self._complete_reasoning(prompt, prompts.REDRAFT_OBJECTIVE, legal_side)
        return {"redraft": response.value if response.ok else prompts.REASONING_FAILED_MESSAGE}

    async def compare(self, texts: list[str], legal_side: LegalSide = LegalSide.PROSECUTION) -> dict:
        """Tactical comparison of two or more document versions."""
        if not isinstance(texts, list) or len(texts) < 2:
            raise ValueError("Provide at least two documents for comparison.")

        documents = "\n\n".join(
            f"Document {i}:\n{clip(text, self.COMPARE_CHAR_LIMIT)}"
            for i, text in enumerate(texts, 1)
        )
        prompt = prompts.P_COMPARE.format(count=len(texts), legal_side=legal_side.value, documents=documents)
        response = await self._complete_reasoning(prompt, prompts.COMPARE_OBJECTIVE, legal_side)
        return {"comparison": response.value if response.ok else prompts.REASONING_FAILED_MESSAGE}


def _to_json(value) -> str:
    return json.dumps(value)
