"""Knowledge graph ("brain map") extraction over a case's documents.

Entities are extracted once per document set and cached on the case under
``brainMap`` keyed by a version hash of document ids and text lengths.
The returned graph is a hierarchy: case root -> documents -> category hubs -> entities.
"""

import logging
from typing import Optional

from ..core.models import ModelGateway, ModelKey
from ..core.store import CaseStore, case_key, load_case
from ..core.utils import AuthorizationError, NotFoundError, utc_now_iso
from . import prompts
from .decisions import invoke_json

logger = logging.getLogger(__name__)


ENTITY_STYLES: dict[str, tuple[str, str]] = {
    "person": ("#10b981", "person"),
    "organization": ("#3b82f6", "domain"),
    "date": ("#f59e0b", "event"),
    "location": ("#ef4444", "location_on"),
    "medicine": ("#a855f7", "vaccines"),
    "evidence": ("#db2777", "fingerprint"),
    "statute": ("#6366f1", "gavel"),
}
DEFAULT_STYLE = ("#9ca3af", "circle")

HUB_LABELS = {"person": "People", "date": "Timeline"}


def version_hash(documents: list[dict]) -> str:
    """Order-independent fingerprint of the processable documents."""
    return "|".join(sorted(f"{d['id']}:{len(d['text'])}" for d in documents))


class KnowledgeGraphBuilder:
    """Builds the entity graph for a case."""

    MIN_TEXT_LENGTH = 50
    DOC_TEXT_LIMIT = 15000

    def __init__(self, gateway: ModelGateway, store: CaseStore):
        self.gateway = gateway
        self.store = store

    async def _extract_entities(self, documents: list[dict]) -> Optional[list[dict]]:
        rendered = "\n\n".join(
            prompts.P_GRAPH_DOCUMENT.format(index=i, name=d["name"], text=d["text"][:self.DOC_TEXT_LIMIT])
            for i, d in enumerate(documents, 1)
        )
        parsed, _ = await invoke_json(
            self.gateway,
            "extract_entities",
            ModelKey.RESEARCH,
            [{"role": "user", "content": prompts.P_KNOWLEDGE_GRAPH.format(documents=rendered)}],
            temperature=0.0,
        )
        if not parsed.ok:
            logger.error(f"Entity extraction failed ({parsed.kind.value}): {parsed.detail}")
            return None

        entities = parsed.value.get("entities")
        if not isinstance(entities, list):
            return None
        return [e for e in entities if isinstance(e, dict) and e.get("name") and e.get("type")]

    async def build_graph(self, case_id: str, requester_id: str) -> dict:
        """Return ``{nodes, edges}`` for the case's documents."""
        record = await load_case(self.store, case_id)
        if record is None:
            raise NotFoundError(f"Case not found: {case_id}")
        if not record.owned_by(requester_id):
            raise AuthorizationError(f"Case {case_id} does not belong to requester")

        all_docs = [
            {
                "id": f"doc_{d.get('id') or index}_{index}",
                "name": d.get("name") or f"Document {index + 1}",
                "text": d.get("extractedText") or "",
            }
            for index, d in enumerate(record.documents)
        ]

        if not all_docs:
            return {
                "nodes": [{"id": "core", "label": "Upload Documents to Generate Graph", "type": "instruction", "val": 20}],
                "edges": [],
            }

        processable = [d for d in all_docs if len(d["text"]) > self.MIN_TEXT_LENGTH]
        current_hash = version_hash(processable)
        cached = record.brain_map or {}

        if cached.get("versionHash") == current_hash and cached.get("entities") is not None:
            logger.info(f"Returning cached graph for case {case_id}")
            entities = cached["entities"]
        else:
            logger.info(f"Generating new graph for case {case_id} ({len(processable)} documents)")
            entities = await self._extract_entities(processable) if processable else []
            if entities is not None:
                brain_map = {
                    "versionHash": current_hash,
                    "entities": entities,
                    "updatedAt": utc_now_iso(),
                }

                async def _save(tx):
                    key = case_key(case_id)
                    if await tx.get(key) is not None:
                        tx.update(key, {"brainMap": brain_map})

                try:
                    await self.store.transaction(_save)
                except Exception as e:
                    logger.error(f"Failed to cache graph for case {case_id}: {e}")
            else:
                entities = []

        return self.to_graph(record.title, all_docs, entities)

    @staticmethod
    def to_graph(title: str, documents: list[dict], entities: list[dict]) -> dict:
        nodes = [{
            "id": "case_root",
            "label": title or "Matter Root",
            "type": "case",
            "val": 50,
            "color": "#1DB954",
            "icon": "account_balance",
        }]
        edges = []
        seen: set[str] = {"case_root"}
        by_name = {}

        for doc in documents:
            nodes.append({
                "id": doc["id"],
                "label": doc["name"],
                "type": "document",
                "val": 35,
                "color": "#ffffff",
                "icon": "description",
            })
            seen.add(doc["id"])
            by_name.setdefault(doc["name"], doc)
            edges.append({"source": "case_root", "target": doc["id"], "label": "belongs to"})

        for entity in entities:
            entity_type = str(entity["type"]).lower()
            entity_id = f"{entity['type']}:{entity['name']}"

            if entity_id not in seen:
                color, icon = ENTITY_STYLES.get(entity_type, DEFAULT_STYLE)
                nodes.append({
                    "id": entity_id,
                    "label": entity["name"],
                    "type": entity_type,
                    "val": 10,
                    "color": color,
                    "icon": icon,
                    "docs": entity.get("docs") or [],
                })
                seen.add(entity_id)

            for doc_name in entity.get("docs") or []:
                doc = by_name.get(doc_name)
                if doc is None:
                    continue

                hub_id = f"{doc['id']}:{entity_type}_hub"
                if hub_id not in seen:
                    nodes.append({
                        "id": hub_id,
                        "label": HUB_LABELS.get(entity_type, entity_type.capitalize() + "s"),
                        "type": "hub",
                        "val": 5,
                        "color": "#333333",
                        "icon": "hub",
                    })
                    seen.add(hub_id)
                    edges.append({"source": doc["id"], "target": hub_id, "distance": 80})

                edges.append({"source": hub_id, "target": entity_id})

        return {"nodes": nodes, "edges": edges}
