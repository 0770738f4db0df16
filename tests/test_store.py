"""Case store tests for PolyPact."""

import asyncio
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from polypact.core.store import (
    CaseRecord, InMemoryCaseStore, TransactionConflict, case_key, load_case, session_key,
)
from polypact.core.utils import NotFoundError


class TestCaseRecord:
    """Tests for the typed case view."""

    def test_from_dict(self):
        record = CaseRecord.from_dict("c1", {
            "creatorUid": "u1",
            "title": "Matter",
            "globalContextSummary": "ledger",
            "brainMap": {"versionHash": "h"},
        })
        assert record.owned_by("u1")
        assert not record.owned_by("u2")
        assert not record.owned_by(None)
        assert record.has_summary
        assert record.brain_map == {"versionHash": "h"}
        assert record.documents == []

    def test_keys(self):
        assert case_key("c1") == "cases/c1"
        assert session_key("c1", "s1") == "cases/c1/chatSessions/s1"


class TestInMemoryStore:
    """Tests for InMemoryCaseStore."""

    @pytest.mark.asyncio
    async def test_get_returns_copy(self):
        store = InMemoryCaseStore({"cases/c1": {"messages": []}})
        data = await store.get("cases/c1")
        data["messages"].append("mutated")
        assert (await store.get("cases/c1"))["messages"] == []

    @pytest.mark.asyncio
    async def test_load_case_missing(self):
        store = InMemoryCaseStore()
        assert await load_case(store, "nope") is None

    @pytest.mark.asyncio
    async def test_transaction_commits_and_logs(self):
        store = InMemoryCaseStore({"cases/c1": {"title": "T"}})

        async def _fn(tx):
            data = await tx.get("cases/c1")
            tx.update("cases/c1", {"title": data["title"] + "!", "status": "Open"})
            return "done"

        assert await store.transaction(_fn) == "done"
        assert (await store.get("cases/c1")) == {"title": "T!", "status": "Open"}
        assert store.writes_to("title") == 1
        assert store.writes_to("status", key="cases/other") == 0

    @pytest.mark.asyncio
    async def test_read_your_writes(self):
        store = InMemoryCaseStore({"cases/c1": {"n": 1}})

        async def _fn(tx):
            tx.update("cases/c1", {"n": 2})
            return (await tx.get("cases/c1"))["n"]

        assert await store.transaction(_fn) == 2

    @pytest.mark.asyncio
    async def test_update_missing_raises(self):
        store = InMemoryCaseStore()

        async def _fn(tx):
            tx.update("cases/ghost", {"x": 1})

        with pytest.raises(NotFoundError):
            await store.transaction(_fn)
        assert store.commit_log == []

    @pytest.mark.asyncio
    async def test_error_in_fn_discards_writes(self):
        store = InMemoryCaseStore({"cases/c1": {"n": 1}})

        async def _fn(tx):
            tx.update("cases/c1", {"n": 99})
            raise ValueError("abort")

        with pytest.raises(ValueError):
            await store.transaction(_fn)
        assert (await store.get("cases/c1"))["n"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_appends_lose_nothing(self):
        store = InMemoryCaseStore({"cases/c1": {"items": []}})

        async def _append(value):
            async def _fn(tx):
                data = await tx.get("cases/c1")
                await asyncio.sleep(0)
                tx.update("cases/c1", {"items": data["items"] + [value]})
            await store.transaction(_fn)

        await asyncio.gather(*[_append(i) for i in range(4)])
        items = (await store.get("cases/c1"))["items"]
        assert sorted(items) == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_conflict_after_retry_budget(self):
        store = InMemoryCaseStore({"cases/c1": {"n": 0}})

        async def _fn(tx):
            await tx.get("cases/c1")
            # Another writer commits between our read and commit, every attempt
            await store.set("cases/c1", {"n": 1})

        with pytest.raises(TransactionConflict):
            await store.transaction(_fn)

    @pytest.mark.asyncio
    async def test_case_helpers(self):
        store = InMemoryCaseStore()
        await store.put_case("c9", {"creatorUid": "u", "title": "Nine"})
        record = await store.get_case("c9")
        assert record.title == "Nine"
        assert "cases/c9" in store.dump()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
