"""Case context aggregation and background summarization.

``ContextAggregator.build_context`` renders a bounded text block for one case.
Once a case grows past the ceiling, a summarization job is handed to the
``SummaryScheduler``, which runs it outside the request and keeps track of it
until it finishes (or until shutdown flushes it).
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from .models import ModelGateway, ModelKey
from .store import CaseRecord, CaseStore, case_key, load_case
from .utils import clip, parse_iso_timestamp, utc_now
from ..agents import prompts

logger = logging.getLogger(__name__)


# =============================================================================
# Summary Scheduler
# =============================================================================

class SummaryScheduler:
    """Supervised runner for delayed per-case summarization jobs.

    At most one job is pending per case. Jobs are tracked ``asyncio`` tasks;
    ``shutdown`` runs still-waiting jobs immediately instead of dropping them.
    """

    def __init__(
        self,
        job: Callable[[str, str], Awaitable[Any]],
        shutdown_timeout: float = 30.0,
    ):
        self._job = job
        self.shutdown_timeout = shutdown_timeout
        self._tasks: dict[str, asyncio.Task] = {}
        self._release: dict[str, asyncio.Event] = {}
        self._closed = False
        self.scheduled_total = 0

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    def is_pending(self, case_id: str) -> bool:
        task = self._tasks.get(case_id)
        return task is not None and not task.done()

    def start(self):
        """Accept new jobs (after a previous shutdown)."""
        self._closed = False

    def schedule(self, case_id: str, requester_id: str, delay: float) -> bool:
        """Queue a summarization job. Returns False if one is already pending."""
        if self._closed:
            logger.warning(f"Scheduler closed, not summarizing case {case_id}")
            return False
        if self.is_pending(case_id):
            logger.debug(f"Summarization already pending for case {case_id}")
            return False

        release = asyncio.Event()
        task = asyncio.create_task(
            self._run(case_id, requester_id, delay, release),
            name=f"summarize:{case_id}",
        )
        self._tasks[case_id] = task
        self._release[case_id] = release
        task.add_done_callback(lambda t, cid=case_id: self._forget(cid, t))
        self.scheduled_total += 1
        logger.info(f"Scheduled summarization for case {case_id} in {delay}s")
        return True

    async def _run(self, case_id: str, requester_id: str, delay: float, release: asyncio.Event):
        try:
            await asyncio.wait_for(release.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

        try:
            await self._job(case_id, requester_id)
        except Exception as e:
            logger.error(f"Summarization job failed for case {case_id}: {e}")

    def _forget(self, case_id: str, task: asyncio.Task):
        if self._tasks.get(case_id) is task:
            self._tasks.pop(case_id, None)
            self._release.pop(case_id, None)

    async def drain(self, expedite: bool = False):
        """Wait for every pending job. ``expedite`` skips remaining delays."""
        while self._tasks:
            if expedite:
                for event in self._release.values():
                    event.set()
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self, timeout: Optional[float] = None):
        """Run waiting jobs now, then cancel whatever is still running after ``timeout``."""
        self._closed = True
        tasks = [t for t in self._tasks.values() if not t.done()]
        if not tasks:
            return

        logger.info(f"Flushing {len(tasks)} pending summarization job(s)")
        for event in self._release.values():
            event.set()

        _, not_done = await asyncio.wait(tasks, timeout=timeout or self.shutdown_timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning(f"Cancelled {len(not_done)} summarization job(s) at shutdown")
            await asyncio.gather(*not_done, return_exceptions=True)


# =============================================================================
# Context Aggregator
# =============================================================================

class ContextAggregator:
    """Builds the per-request case context string."""

    CONTEXT_CEILING = 40000
    DOC_TEXT_LIMIT = 2500
    DOC_TEXT_LIMIT_SUMMARIZED = 500
    RESEARCH_LIMIT = 5
    RESEARCH_LIMIT_SUMMARIZED = 2
    FINDINGS_LIMIT = 1500
    FINDINGS_LIMIT_SUMMARIZED = 500
    CHAT_LIMIT = 15
    CHAT_LIMIT_SUMMARIZED = 4
    MESSAGE_CHAR_LIMIT = 1000

    SUMMARY_DELAY = 10.0  # seconds
    SUMMARY_COOLDOWN = timedelta(hours=1)
    RAW_CONTENT_CAP = 800000
    MIN_SUMMARY_LENGTH = 100

    def __init__(
        self,
        store: CaseStore,
        gateway: ModelGateway,
        scheduler: Optional[SummaryScheduler] = None,
        summary_delay: float = SUMMARY_DELAY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.gateway = gateway
        self.scheduler = scheduler or SummaryScheduler(self.summarize_case)
        self.summary_delay = summary_delay
        self._clock = clock

    # === CONTEXT BUILD ===

    async def build_context(self, case_id: str, requester_id: str) -> str:
        """Render context for a case. Returns "" when the case is absent or not owned."""
        try:
            record = await load_case(self.store, case_id)
            if record is None or not record.owned_by(requester_id):
                return ""
            context = self.render(record)
        except Exception as e:
            logger.error(f"Error building context for case {case_id}: {e}")
            return ""

        if len(context) > self.CONTEXT_CEILING:
            logger.info(f"Context for case {case_id} is {len(context)} chars, queueing summarization")
            self.scheduler.schedule(case_id, requester_id, self.summary_delay)

        return context

    def render(self, record: CaseRecord) -> str:
        summarized = record.has_summary
        parts = [
            "--- CASE METADATA ---",
            f"Title: {record.title}",
            f"Client: {record.client}",
            f"Status: {record.status}",
            f"Legal Side: {record.legal_side or 'PROSECUTION'}",
            f"Description: {record.description or 'N/A'}",
        ]

        if summarized:
            parts.append("\n--- STRATEGIC CASE LEDGER (AI SUMMARIZED) ---")
            parts.append(record.global_context_summary)

        if record.documents:
            parts.append("\n--- CASE DOCUMENTS ---")
            limit = self.DOC_TEXT_LIMIT_SUMMARIZED if summarized else self.DOC_TEXT_LIMIT
            for index, doc in enumerate(record.documents, 1):
                parts.append(f"Document {index}: {doc.get('name')} ({doc.get('type')})")
                metadata = doc.get("aiMetadata")
                if metadata:
                    parts.append("[FORENSIC INSIGHTS]:")
                    parts.append(f"Summary: {metadata.get('summary')}")
                if doc.get("extractedText"):
                    parts.append(f"Content snippet: {clip(doc['extractedText'], limit)}...")

        if record.research_history:
            parts.append("\n--- RECENT RESEARCH ---")
            count = self.RESEARCH_LIMIT_SUMMARIZED if summarized else self.RESEARCH_LIMIT
            findings_limit = self.FINDINGS_LIMIT_SUMMARIZED if summarized else self.FINDINGS_LIMIT
            for item in record.research_history[-count:]:
                findings = clip(research_findings(item), findings_limit) or "N/A"
                parts.append(f"Query: {item.get('query')}")
                parts.append(f"Findings: {findings}...")

        if record.messages:
            parts.append("\n--- RECENT CHAT MESSAGES ---")
            count = self.CHAT_LIMIT_SUMMARIZED if summarized else self.CHAT_LIMIT
            for message in record.messages[-count:]:
                role = str(message.get("role", "")).upper()
                parts.append(f"{role}: {clip(message.get('content'), self.MESSAGE_CHAR_LIMIT)}")

        return "\n".join(parts)

    # === SUMMARIZATION ===

    def _in_cooldown(self, last_summarized_at: Optional[str]) -> bool:
        last_run = parse_iso_timestamp(last_summarized_at)
        if last_run is None:
            return False
        return self._clock() - last_run < self.SUMMARY_COOLDOWN

    def raw_content(self, record: CaseRecord) -> str:
        """Everything known about a case, untruncated except for the hard cap."""
        parts = [
            f"Title: {record.title}",
            f"Client: {record.client}",
            f"Legal Side: {record.legal_side}",
        ]

        if record.global_context_summary:
            parts.append(f"\n--- PREVIOUS SUMMARY STRATEGY ---\n{record.global_context_summary}")

        if record.documents:
            parts.append("\n--- ALL DOCUMENTS ---")
            for doc in record.documents:
                parts.append(f"Doc: {doc.get('name')}")
                if doc.get("extractedText"):
                    parts.append(f"Content: {doc['extractedText']}")

        if record.research_history:
            parts.append("\n--- ALL RESEARCH ---")
            for item in record.research_history:
                parts.append(f"Q: {item.get('query')}\nA: {research_findings(item)}")

        if record.messages:
            parts.append("\n--- ALL CHATS ---")
            for message in record.messages:
                parts.append(f"{message.get('role')}: {message.get('content')}")

        return "\n".join(parts)[:self.RAW_CONTENT_CAP]

    async def summarize_case(self, case_id: str, requester_id: str) -> bool:
        """Compress a case into ``globalContextSummary``. Returns True if written.

        The model call runs outside the transaction; the transaction re-checks
        existence, ownership and cooldown before writing, so concurrent runs
        for the same case commit at most one summary per cooldown window.
        """
        try:
            record = await load_case(self.store, case_id)
            if record is None or not record.owned_by(requester_id):
                return False

            if self._in_cooldown(record.last_summarized_at):
                logger.info(f"Skipping summarization for {case_id} (cooldown active)")
                return False

            raw = self.raw_content(record)
            logger.info(f"Compressing {len(raw)} characters of case data for {case_id}")

            response = await self.gateway.invoke(
                ModelKey.RESEARCH,
                [
                    {"role": "system", "content": prompts.P_SUMMARIZE_SYSTEM},
                    {"role": "user", "content": prompts.P_SUMMARIZE_USER.format(raw_context=raw)},
                ],
                temperature=0.1,
            )
            if not response.ok:
                logger.error(f"Summarization model call failed for {case_id}: {response.detail}")
                return False

            summary = response.value.strip()
            if len(summary) <= self.MIN_SUMMARY_LENGTH:
                logger.warning(f"Discarding {len(summary)}-char summary for {case_id}")
                return False

            async def _write(tx) -> bool:
                key = case_key(case_id)
                data = await tx.get(key)
                if data is None or data.get("creatorUid") != requester_id:
                    return False
                if self._in_cooldown(data.get("lastSummarizedAt")):
                    logger.info(f"Summary for {case_id} already written by a concurrent run")
                    return False
                tx.update(key, {
                    "globalContextSummary": summary,
                    "lastSummarizedAt": self._clock().isoformat(),
                })
                return True

            written = await self.store.transaction(_write)
            if written:
                logger.info(f"Persisted summary for case {case_id} ({len(summary)} chars)")
            return written

        except Exception as e:
            logger.error(f"Failed to summarize case {case_id}: {e}")
            return False


def research_findings(item: dict) -> str:
    """Text of a stored research-history result."""
    result = item.get("result")
    if isinstance(result, str):
        return result
    if isinstance(result, dict):
        return result.get("content") or result.get("answer") or ""
    return ""
