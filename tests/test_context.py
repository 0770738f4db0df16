"""Context aggregation and background summarization tests for PolyPact."""

import asyncio
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from polypact.core.context import ContextAggregator, SummaryScheduler, research_findings
from polypact.core.store import InMemoryCaseStore, case_key

from fakes import SUMMARIZER, FakeGateway, case_doc, transport_failure

LEDGER = "CASE LEDGER: " + "Accused arrested 12 March 2024; bail rejected by Sessions Court. " * 4


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def big_documents(count: int = 18, size: int = 2500) -> list[dict]:
    return [
        {"id": f"d{i}", "name": f"Exhibit {i}", "type": "pdf", "extractedText": "x" * size}
        for i in range(count)
    ]


def make_aggregator(store, gateway=None, clock=None, delay=10.0):
    gateway = gateway or FakeGateway([(SUMMARIZER, LEDGER)])
    return ContextAggregator(
        store,
        gateway,
        summary_delay=delay,
        clock=clock or FixedClock(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)),
    )


class TestBuildContext:
    """Tests for ContextAggregator.build_context."""

    @pytest.mark.asyncio
    async def test_missing_case_is_empty(self):
        aggregator = make_aggregator(InMemoryCaseStore())
        assert await aggregator.build_context("ghost", "uid_owner") == ""

    @pytest.mark.asyncio
    async def test_not_owned_is_empty(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc(uid="someone_else")})
        aggregator = make_aggregator(store)
        assert await aggregator.build_context("c1", "uid_owner") == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fields", [
        {"documents": [{"id": "d1", "name": "Scan", "extractedText": "text", "aiMetadata": "scanned"}]},
        {"messages": [{"role": "user", "content": {"text": "structured"}}]},
    ])
    async def test_malformed_record_is_empty(self, fields):
        store = InMemoryCaseStore({case_key("c1"): case_doc(**fields)})
        aggregator = make_aggregator(store)
        assert await aggregator.build_context("c1", "uid_owner") == ""
        assert aggregator.scheduler.scheduled_total == 0

    @pytest.mark.asyncio
    async def test_section_order(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc(
            documents=[{
                "id": "d1", "name": "FIR", "type": "pdf", "extractedText": "FIR text",
                "aiMetadata": {"summary": "Handwritten FIR"},
            }],
            researchHistory=[{"query": "bail 437", "result": {"answer": "Bail is the rule"}}],
            messages=[{"role": "user", "content": "Prepare bail"}],
        )})
        context = await make_aggregator(store).build_context("c1", "uid_owner")

        headers = [
            "--- CASE METADATA ---",
            "--- CASE DOCUMENTS ---",
            "--- RECENT RESEARCH ---",
            "--- RECENT CHAT MESSAGES ---",
        ]
        positions = [context.index(h) for h in headers]
        assert positions == sorted(positions)
        assert "Title: State v. Sharma" in context
        assert "[FORENSIC INSIGHTS]:" in context
        assert "Findings: Bail is the rule..." in context
        assert "USER: Prepare bail" in context
        assert "STRATEGIC CASE LEDGER" not in context

    @pytest.mark.asyncio
    async def test_chat_window_and_cap(self):
        messages = [{"role": "user", "content": f"m{i}"} for i in range(20)]
        messages.append({"role": "assistant", "content": "y" * 1500})
        store = InMemoryCaseStore({case_key("c1"): case_doc(messages=messages)})
        context = await make_aggregator(store).build_context("c1", "uid_owner")

        assert "USER: m5\n" not in context
        assert "USER: m6" in context
        assert "ASSISTANT: " + "y" * 1000 in context
        assert "y" * 1001 not in context

    @pytest.mark.asyncio
    async def test_summary_shrinks_windows(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc(
            globalContextSummary=LEDGER,
            documents=big_documents(count=1),
            researchHistory=[{"query": f"q{i}", "result": "r"} for i in range(6)],
        )})
        context = await make_aggregator(store).build_context("c1", "uid_owner")

        assert "--- STRATEGIC CASE LEDGER (AI SUMMARIZED) ---" in context
        assert "x" * 500 + "..." in context
        assert "x" * 501 not in context
        assert "Query: q3" not in context
        assert "Query: q4" in context and "Query: q5" in context


class TestSummarizationScheduling:
    """Context bound: summaries are scheduled above the ceiling only."""

    @pytest.mark.asyncio
    async def test_over_ceiling_schedules_exactly_one(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc(documents=big_documents())})
        aggregator = make_aggregator(store, delay=60.0)

        context = await aggregator.build_context("c1", "uid_owner")
        assert len(context) > ContextAggregator.CONTEXT_CEILING
        await aggregator.build_context("c1", "uid_owner")

        assert aggregator.scheduler.scheduled_total == 1
        assert aggregator.scheduler.is_pending("c1")
        await aggregator.scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_under_ceiling_schedules_nothing(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc(documents=big_documents(count=3))})
        aggregator = make_aggregator(store)

        await aggregator.build_context("c1", "uid_owner")
        assert aggregator.scheduler.scheduled_total == 0
        assert aggregator.scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_large_case_lifecycle(self):
        """45k chars of documents: truncated now, summarized later, shorter limits after."""
        store = InMemoryCaseStore({case_key("c1"): case_doc(documents=big_documents())})
        clock = FixedClock(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))
        aggregator = make_aggregator(store, clock=clock, delay=600.0)

        first = await aggregator.build_context("c1", "uid_owner")
        assert "x" * 2500 + "..." in first
        assert "STRATEGIC CASE LEDGER" not in first

        clock.advance(minutes=5)
        second = await aggregator.build_context("c1", "uid_owner")
        assert "STRATEGIC CASE LEDGER" not in second
        assert (await store.get(case_key("c1"))).get("globalContextSummary") is None

        await aggregator.scheduler.drain(expedite=True)

        third = await aggregator.build_context("c1", "uid_owner")
        assert "STRATEGIC CASE LEDGER" in third
        assert "x" * 500 + "..." in third
        assert "x" * 501 not in third
        assert aggregator.scheduler.scheduled_total == 1


class TestSummarizeCase:
    """Tests for ContextAggregator.summarize_case."""

    @pytest.mark.asyncio
    async def test_writes_summary_and_timestamp(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc(documents=big_documents(count=1))})
        gateway = FakeGateway([(SUMMARIZER, LEDGER)])
        clock = FixedClock(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))
        aggregator = make_aggregator(store, gateway, clock)

        assert await aggregator.summarize_case("c1", "uid_owner")
        data = await store.get(case_key("c1"))
        assert data["globalContextSummary"] == LEDGER.strip()
        assert data["lastSummarizedAt"] == clock.now.isoformat()
        assert "Content: " + "x" * 2500 in gateway.calls[0]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_cooldown_single_write(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc()})
        gateway = FakeGateway([(SUMMARIZER, LEDGER)])
        clock = FixedClock(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))
        aggregator = make_aggregator(store, gateway, clock)

        assert await aggregator.summarize_case("c1", "uid_owner")
        clock.advance(minutes=30)
        assert not await aggregator.summarize_case("c1", "uid_owner")

        assert store.writes_to("globalContextSummary") == 1
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_runs_single_write(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc()})
        aggregator = make_aggregator(store)

        results = await asyncio.gather(
            aggregator.summarize_case("c1", "uid_owner"),
            aggregator.summarize_case("c1", "uid_owner"),
        )

        assert sorted(results) == [False, True]
        assert store.writes_to("globalContextSummary") == 1

    @pytest.mark.asyncio
    async def test_runs_again_after_cooldown(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc()})
        clock = FixedClock(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))
        aggregator = make_aggregator(store, clock=clock)

        assert await aggregator.summarize_case("c1", "uid_owner")
        clock.advance(hours=2)
        assert await aggregator.summarize_case("c1", "uid_owner")
        assert store.writes_to("globalContextSummary") == 2

    @pytest.mark.asyncio
    async def test_short_or_failed_summary_discarded(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc()})

        short = make_aggregator(store, FakeGateway([(SUMMARIZER, "too short")]))
        assert not await short.summarize_case("c1", "uid_owner")

        failing = make_aggregator(store, FakeGateway([(SUMMARIZER, transport_failure())]))
        assert not await failing.summarize_case("c1", "uid_owner")

        assert store.writes_to("globalContextSummary") == 0

    @pytest.mark.asyncio
    async def test_wrong_owner_skipped(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc(uid="someone_else")})
        gateway = FakeGateway([(SUMMARIZER, LEDGER)])
        assert not await make_aggregator(store, gateway).summarize_case("c1", "uid_owner")
        assert gateway.calls == []


class TestSummaryScheduler:
    """Tests for SummaryScheduler lifecycle."""

    @pytest.mark.asyncio
    async def test_shutdown_flushes_pending_jobs(self):
        ran = []

        async def job(case_id, requester_id):
            ran.append((case_id, requester_id))

        scheduler = SummaryScheduler(job)
        assert scheduler.schedule("c1", "u1", delay=3600)
        assert not scheduler.schedule("c1", "u1", delay=3600)

        await scheduler.shutdown(timeout=1.0)
        assert ran == [("c1", "u1")]
        assert scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_closed_scheduler_refuses_until_started(self):
        async def job(case_id, requester_id):
            pass

        scheduler = SummaryScheduler(job)
        await scheduler.shutdown()
        assert not scheduler.schedule("c1", "u1", delay=0)

        scheduler.start()
        assert scheduler.schedule("c1", "u1", delay=0)
        await scheduler.drain()

    @pytest.mark.asyncio
    async def test_failing_job_is_contained(self):
        async def job(case_id, requester_id):
            raise RuntimeError("boom")

        scheduler = SummaryScheduler(job)
        scheduler.schedule("c1", "u1", delay=0)
        await scheduler.drain()
        assert scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_shutdown_cancels_stuck_jobs(self):
        async def job(case_id, requester_id):
            await asyncio.sleep(3600)

        scheduler = SummaryScheduler(job)
        scheduler.schedule("c1", "u1", delay=0)
        await scheduler.shutdown(timeout=0.05)
        assert scheduler.pending_count == 0


class TestResearchFindings:

    def test_shapes(self):
        assert research_findings({"result": "plain"}) == "plain"
        assert research_findings({"result": {"content": "c"}}) == "c"
        assert research_findings({"result": {"answer": "a"}}) == "a"
        assert research_findings({}) == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
