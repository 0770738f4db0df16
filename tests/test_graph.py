"""Knowledge graph (brain map) tests for PolyPact."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from polypact.agents.graph import KnowledgeGraphBuilder, version_hash
from polypact.core.models import ModelKey
from polypact.core.store import InMemoryCaseStore, case_key
from polypact.core.utils import AuthorizationError, NotFoundError

from fakes import EXTRACTOR, FakeGateway, case_doc, transport_failure

FIR_TEXT = "On 12 March 2024 the accused Ravi Kumar was seen near the warehouse with a knife."
POSTMORTEM_TEXT = "Cause of death: stab wound. Traces of diazepam found. Examined by Dr. Mehta at KEM Hospital."

ENTITIES = {"entities": [
    {"name": "Ravi Kumar", "type": "Person", "docs": ["FIR", "Postmortem"]},
    {"name": "Knife", "type": "Evidence", "docs": ["FIR"]},
    {"name": "Diazepam", "type": "Medicine", "docs": ["Postmortem"]},
    {"name": "Unknown Doc Entity", "type": "Vehicle", "docs": ["Missing"]},
    {"name": "", "type": "Person"},
]}


def graph_store(**fields) -> InMemoryCaseStore:
    documents = [
        {"id": "a", "name": "FIR", "extractedText": FIR_TEXT},
        {"id": "b", "name": "Postmortem", "extractedText": POSTMORTEM_TEXT},
        {"id": "c", "name": "Cover Page", "extractedText": "short"},
    ]
    return InMemoryCaseStore({case_key("c1"): case_doc(documents=documents, **fields)})


class TestBuildGraph:
    """Tests for KnowledgeGraphBuilder.build_graph."""

    @pytest.mark.asyncio
    async def test_no_documents_returns_instruction(self):
        store = InMemoryCaseStore({case_key("c1"): case_doc()})
        gateway = FakeGateway()
        graph = await KnowledgeGraphBuilder(gateway, store).build_graph("c1", "uid_owner")

        assert graph["edges"] == []
        assert graph["nodes"][0]["type"] == "instruction"
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_extracts_and_caches(self):
        store = graph_store()
        gateway = FakeGateway([(EXTRACTOR, ENTITIES)])
        builder = KnowledgeGraphBuilder(gateway, store)

        graph = await builder.build_graph("c1", "uid_owner")

        call = gateway.calls[0]
        assert call["key"] == ModelKey.RESEARCH
        assert call["temperature"] == 0.0
        prompt = call["messages"][0]["content"]
        assert "--- DOCUMENT 1: FIR ---" in prompt
        assert "Cover Page" not in prompt

        cached = (await store.get(case_key("c1")))["brainMap"]
        assert len(cached["entities"]) == 4
        assert cached["versionHash"] == version_hash([
            {"id": "doc_a_0", "text": FIR_TEXT},
            {"id": "doc_b_1", "text": POSTMORTEM_TEXT},
        ])

        again = await builder.build_graph("c1", "uid_owner")
        assert len(gateway.calls) == 1
        assert again == graph

    @pytest.mark.asyncio
    async def test_changed_documents_regenerate(self):
        store = graph_store(brainMap={"versionHash": "stale", "entities": []})
        gateway = FakeGateway([(EXTRACTOR, ENTITIES)])
        await KnowledgeGraphBuilder(gateway, store).build_graph("c1", "uid_owner")

        assert len(gateway.calls) == 1
        assert (await store.get(case_key("c1")))["brainMap"]["versionHash"] != "stale"

    @pytest.mark.asyncio
    async def test_failed_extraction_not_cached(self):
        store = graph_store()
        gateway = FakeGateway([(EXTRACTOR, transport_failure())])
        graph = await KnowledgeGraphBuilder(gateway, store).build_graph("c1", "uid_owner")

        assert "brainMap" not in await store.get(case_key("c1"))
        assert [n["type"] for n in graph["nodes"]] == ["case", "document", "document", "document"]

    @pytest.mark.asyncio
    async def test_ownership(self):
        gateway = FakeGateway()
        with pytest.raises(NotFoundError):
            await KnowledgeGraphBuilder(gateway, InMemoryCaseStore()).build_graph("c1", "uid_owner")
        with pytest.raises(AuthorizationError):
            await KnowledgeGraphBuilder(gateway, graph_store()).build_graph("c1", "uid_intruder")
        assert gateway.calls == []


class TestToGraph:
    """Tests for the case -> document -> hub -> entity hierarchy."""

    def setup_method(self):
        documents = [
            {"id": "doc_a_0", "name": "FIR", "text": FIR_TEXT},
            {"id": "doc_b_1", "name": "Postmortem", "text": POSTMORTEM_TEXT},
        ]
        entities = [e for e in ENTITIES["entities"] if e["name"]]
        self.graph = KnowledgeGraphBuilder.to_graph("State v. Kumar", documents, entities)
        self.nodes = {n["id"]: n for n in self.graph["nodes"]}

    def test_root_and_documents(self):
        assert self.nodes["case_root"]["label"] == "State v. Kumar"
        assert {"source": "case_root", "target": "doc_a_0", "label": "belongs to"} in self.graph["edges"]

    def test_shared_entity_appears_once(self):
        people = [n for n in self.graph["nodes"] if n["id"] == "Person:Ravi Kumar"]
        assert len(people) == 1
        assert people[0]["color"] == "#10b981"
        assert {"source": "doc_a_0:person_hub", "target": "Person:Ravi Kumar"} in self.graph["edges"]
        assert {"source": "doc_b_1:person_hub", "target": "Person:Ravi Kumar"} in self.graph["edges"]

    def test_hub_labels(self):
        assert self.nodes["doc_a_0:person_hub"]["label"] == "People"
        assert self.nodes["doc_a_0:evidence_hub"]["label"] == "Evidences"
        assert {"source": "doc_a_0", "target": "doc_a_0:person_hub", "distance": 80} in self.graph["edges"]

    def test_unknown_type_and_document(self):
        node = self.nodes["Vehicle:Unknown Doc Entity"]
        assert (node["color"], node["icon"]) == ("#9ca3af", "circle")
        assert not any(e["target"] == "Vehicle:Unknown Doc Entity" for e in self.graph["edges"])


class TestVersionHash:

    def test_order_independent(self):
        docs = [{"id": "x", "text": "abc"}, {"id": "y", "text": "de"}]
        assert version_hash(docs) == version_hash(list(reversed(docs))) == "x:3|y:2"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
