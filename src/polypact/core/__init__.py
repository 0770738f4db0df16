"""Core components: model gateway, case store, context aggregation and primary-source search."""

from .models import ModelKey, ModelRoute, ModelGateway, ChatCompletionsTransport, GeminiTransport
from .store import CaseRecord, InMemoryCaseStore, TransactionConflict
from .external_search import IndianKanoonClient, LegalAuthority
from .utils import FailureKind, Result

__all__ = [
    "ModelKey",
    "ModelRoute",
    "ModelGateway",
    "ChatCompletionsTransport",
    "GeminiTransport",
    "CaseRecord",
    "InMemoryCaseStore",
    "TransactionConflict",
    "IndianKanoonClient",
    "LegalAuthority",
    "FailureKind",
    "Result",
]
