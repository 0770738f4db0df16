"""Case store - key/value documents with optimistic transactions.

Keys:
- ``cases/{case_id}``                          case documents
- ``cases/{case_id}/chatSessions/{session_id}`` chat session documents

The core only needs ``get``, ``set`` and ``transaction``. ``InMemoryCaseStore``
is the bundled implementation; anything with the same surface can be injected.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar
import asyncio
import logging

from .utils import NotFoundError, PolyPactError

logger = logging.getLogger(__name__)

R = TypeVar("R")


def case_key(case_id: str) -> str:
    return f"cases/{case_id}"


def session_key(case_id: str, session_id: str) -> str:
    return f"cases/{case_id}/chatSessions/{session_id}"


class TransactionConflict(PolyPactError):
    """Optimistic transaction could not commit within the retry budget."""
    pass


# =============================================================================
# Case record view
# =============================================================================

@dataclass
class CaseRecord:
    """Typed view over the case document fields the core reads."""
    case_id: str
    creator_uid: Optional[str] = None
    title: str = ""
    client: str = ""
    status: str = ""
    legal_side: Optional[str] = None
    description: Optional[str] = None
    documents: list[dict] = field(default_factory=list)
    research_history: list[dict] = field(default_factory=list)
    messages: list[dict] = field(default_factory=list)
    global_context_summary: Optional[str] = None
    last_summarized_at: Optional[str] = None
    jurisdiction: Optional[dict] = None
    brain_map: Optional[dict] = None

    @classmethod
    def from_dict(cls, case_id: str, data: dict) -> "CaseRecord":
        return cls(
            case_id=case_id,
            creator_uid=data.get("creatorUid"),
            title=data.get("title") or "",
            client=data.get("client") or "",
            status=data.get("status") or "",
            legal_side=data.get("legalSide"),
            description=data.get("description"),
            documents=list(data.get("documents") or []),
            research_history=list(data.get("researchHistory") or []),
            messages=list(data.get("messages") or []),
            global_context_summary=data.get("globalContextSummary"),
            last_summarized_at=data.get("lastSummarizedAt"),
            jurisdiction=data.get("jurisdiction"),
            brain_map=data.get("brainMap"),
        )

    def owned_by(self, uid: Optional[str]) -> bool:
        return bool(uid) and self.creator_uid == uid

    @property
    def has_summary(self) -> bool:
        return bool(self.global_context_summary)


# =============================================================================
# Store interface
# =============================================================================

class Transaction(Protocol):
    async def get(self, key: str) -> Optional[dict]: ...

    def update(self, key: str, fields: dict) -> None: ...


class CaseStore(Protocol):
    async def get(self, key: str) -> Optional[dict]: ...

    async def set(self, key: str, data: dict) -> None: ...

    async def transaction(self, fn: Callable[[Transaction], Awaitable[R]]) -> R: ...


async def load_case(store: CaseStore, case_id: str) -> Optional[CaseRecord]:
    """Read a case document as a ``CaseRecord``, or None when absent."""
    data = await store.get(case_key(case_id))
    if data is None:
        return None
    return CaseRecord.from_dict(case_id, data)


# =============================================================================
# In-memory implementation
# =============================================================================

class InMemoryTransaction:
    """Read-your-writes view used inside ``InMemoryCaseStore.transaction``."""

    def __init__(self, store: "InMemoryCaseStore"):
        self._store = store
        self._read_versions: dict[str, int] = {}
        self._writes: dict[str, dict] = {}
        self._written_fields: dict[str, set[str]] = {}

    def _track(self, key: str) -> Optional[dict]:
        data, version = self._store._snapshot(key)
        self._read_versions.setdefault(key, version)
        return data

    async def get(self, key: str) -> Optional[dict]:
        # Yield so concurrent transactions can interleave between read and commit
        await asyncio.sleep(0)
        if key in self._writes:
            return deepcopy(self._writes[key])
        return self._track(key)

    def update(self, key: str, fields: dict) -> None:
        """Shallow-merge ``fields`` into an existing document."""
        current = self._writes.get(key)
        if current is None:
            current = self._track(key)
            if current is None:
                raise NotFoundError(f"Document does not exist: {key}")
        current.update(deepcopy(fields))
        self._writes[key] = current
        self._written_fields.setdefault(key, set()).update(fields.keys())


class InMemoryCaseStore:
    """Dict-backed store with versioned optimistic concurrency."""

    MAX_ATTEMPTS = 5

    def __init__(self, documents: Optional[dict[str, dict]] = None):
        self._docs: dict[str, dict] = {}
        self._versions: dict[str, int] = {}
        # (key, field names) per committed write, oldest first
        self.commit_log: list[tuple[str, frozenset[str]]] = []
        for key, data in (documents or {}).items():
            self._docs[key] = deepcopy(data)
            self._versions[key] = 1

    def _snapshot(self, key: str) -> tuple[Optional[dict], int]:
        data = self._docs.get(key)
        return (deepcopy(data) if data is not None else None), self._versions.get(key, 0)

    async def get(self, key: str) -> Optional[dict]:
        data, _ = self._snapshot(key)
        return data

    async def set(self, key: str, data: dict) -> None:
        self._docs[key] = deepcopy(data)
        self._versions[key] = self._versions.get(key, 0) + 1
        self.commit_log.append((key, frozenset(data.keys())))

    async def transaction(self, fn: Callable[[InMemoryTransaction], Awaitable[R]]) -> R:
        """Run ``fn`` and commit its writes, retrying when a read document changed."""
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            tx = InMemoryTransaction(self)
            result = await fn(tx)

            stale = [
                key for key, version in tx._read_versions.items()
                if self._versions.get(key, 0) != version
            ]
            if not stale:
                for key, data in tx._writes.items():
                    self._docs[key] = data
                    self._versions[key] = self._versions.get(key, 0) + 1
                    self.commit_log.append((key, frozenset(tx._written_fields.get(key, ()))))
                return result

            logger.debug(f"Transaction conflict on {stale} (attempt {attempt}/{self.MAX_ATTEMPTS})")

        raise TransactionConflict(f"Transaction failed after {self.MAX_ATTEMPTS} attempts")

    def writes_to(self, field_name: str, key: Optional[str] = None) -> int:
        """Count committed writes that touched ``field_name``."""
        return sum(
            1 for k, fields in self.commit_log
            if field_name in fields and (key is None or k == key)
        )

    async def get_case(self, case_id: str) -> Optional[CaseRecord]:
        return await load_case(self, case_id)

    async def put_case(self, case_id: str, data: dict) -> None:
        await self.set(case_key(case_id), data)

    def dump(self) -> dict[str, Any]:
        return deepcopy(self._docs)
