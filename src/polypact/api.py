"""High-level API for the PolyPact reasoning core.

Wires the model gateway, case store, search client and agents together.
"""

from typing import Any, Optional
import asyncio
import logging

from .core.context import ContextAggregator, SummaryScheduler
from .core.external_search import IndianKanoonClient
from .core.models import (
    MODEL_ROUTES,
    PROVIDER_CHAT_COMPLETIONS,
    PROVIDER_GEMINI,
    ChatCompletionsTransport,
    GeminiTransport,
    ModelGateway,
    ModelKey,
    ModelRoute,
)
from .core.store import CaseStore, InMemoryCaseStore
from .agents.gatekeeper import SufficiencyGatekeeper
from .agents.graph import KnowledgeGraphBuilder
from .agents.orchestrator import GroundingClassifier, ReasoningOrchestrator
from .agents.researcher import GroundingAgent
from .agents.state import ChatRequest, GroundingResult, LegalSide, ReasoningResult, needs_grounding
from .service.config import ServiceConfig

logger = logging.getLogger("polypact")

__version__ = "0.1.0"


# =============================================================================
# Wiring
# =============================================================================

def build_routes(config: ServiceConfig) -> dict[ModelKey, ModelRoute]:
    """Model routing table from configuration."""
    research_endpoint = config.openrouter_base_url
    research_provider = config.research_provider
    if research_provider == PROVIDER_GEMINI:
        research_endpoint = ""

    return {
        ModelKey.GENERAL: ModelRoute(
            model_id=config.general_model,
            provider=PROVIDER_CHAT_COMPLETIONS,
            endpoint=config.openrouter_base_url,
            max_output_tokens=MODEL_ROUTES[ModelKey.GENERAL].max_output_tokens,
        ),
        ModelKey.RESEARCH: ModelRoute(
            model_id=config.research_model,
            provider=research_provider,
            endpoint=research_endpoint,
            max_output_tokens=MODEL_ROUTES[ModelKey.RESEARCH].max_output_tokens,
        ),
    }


def build_gateway(config: ServiceConfig) -> ModelGateway:
    """Model gateway with a transport for every configured provider."""
    transports = {
        PROVIDER_CHAT_COMPLETIONS: ChatCompletionsTransport(
            api_key=config.openrouter_api_key,
            site_url=config.site_url,
            site_name=config.site_name,
        ),
    }
    if config.research_provider == PROVIDER_GEMINI:
        transports[PROVIDER_GEMINI] = GeminiTransport(api_key=config.gemini_api_key)

    return ModelGateway(
        transports=transports,
        routes=build_routes(config),
        timeout=config.model_timeout_seconds,
    )


class PolyPact:
    """
    High-level API for PolyPact legal reasoning.

    Example usage:
        polypact = PolyPact(ServiceConfig.from_env())
        result = await polypact.chat(
            prompt="What is the punishment under Section 302?",
            requester_id="uid_123",
        )
        print(result.content)
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        gateway: Optional[ModelGateway] = None,
        store: Optional[CaseStore] = None,
        search_client: Optional[IndianKanoonClient] = None,
        classifier: GroundingClassifier = needs_grounding,
    ):
        self.config = config or ServiceConfig()

        self.gateway = gateway or build_gateway(self.config)
        self.store = store if store is not None else InMemoryCaseStore()
        self.search_client = search_client or IndianKanoonClient(
            api_token=self.config.indian_kanoon_api_key or None,
            timeout=self.config.search_timeout_seconds,
        )

        self.aggregator = ContextAggregator(
            self.store,
            self.gateway,
            summary_delay=self.config.summary_delay_seconds,
        )
        self.grounding = GroundingAgent(self.gateway, self.search_client)
        self.gatekeeper = SufficiencyGatekeeper(self.gateway)
        self.orchestrator = ReasoningOrchestrator(
            gateway=self.gateway,
            store=self.store,
            aggregator=self.aggregator,
            grounding=self.grounding,
            gatekeeper=self.gatekeeper,
            classifier=classifier,
        )
        self.graph = KnowledgeGraphBuilder(self.gateway, self.store)

    @property
    def scheduler(self) -> SummaryScheduler:
        return self.aggregator.scheduler

    # === OPERATIONS ===

    async def chat(
        self,
        prompt: str,
        requester_id: str,
        case_id: Optional[str] = None,
        session_id: Optional[str] = None,
        legal_side: Any = None,
        history: Optional[list[dict]] = None,
    ) -> ReasoningResult:
        """Run one chat turn."""
        return await self.orchestrator.run(ChatRequest(
            prompt=prompt,
            requester_id=requester_id,
            case_id=case_id,
            session_id=session_id,
            legal_side=LegalSide.parse(legal_side),
            history=history or [],
        ))

    async def research(
        self,
        query: str,
        requester_id: str,
        case_id: Optional[str] = None,
        jurisdiction: Optional[dict] = None,
    ) -> GroundingResult:
        return await self.orchestrator.research(query, requester_id, case_id, jurisdiction)

    async def analyze(self, text: str, requester_id: str, legal_side: Any = None, **kwargs) -> dict:
        return await self.orchestrator.analyze(
            text, requester_id, legal_side=LegalSide.parse(legal_side), **kwargs
        )

    async def redraft(self, text: str, requester_id: str, legal_side: Any = None, **kwargs) -> dict:
        return await self.orchestrator.redraft(
            text, requester_id, legal_side=LegalSide.parse(legal_side), **kwargs
        )

    async def compare(self, texts: list[str], legal_side: Any = None) -> dict:
        return await self.orchestrator.compare(texts, LegalSide.parse(legal_side))

    async def brain_map(self, case_id: str, requester_id: str) -> dict:
        return await self.graph.build_graph(case_id, requester_id)

    # === LIFECYCLE ===

    def start(self):
        self.scheduler.start()

    async def close(self):
        """Flush background summaries and release network clients."""
        await self.scheduler.shutdown()
        await self.gateway.close()
        await self.search_client.close()

    def get_usage(self) -> dict[str, Any]:
        return {key: vars(stats) for key, stats in self.gateway.get_usage().items()}


def chat_sync(prompt: str, requester_id: str, config: Optional[ServiceConfig] = None) -> ReasoningResult:
    """Synchronous wrapper for a single guest chat turn."""
    async def _run():
        polypact = PolyPact(config)
        try:
            return await polypact.chat(prompt, requester_id)
        finally:
            await polypact.close()

    return asyncio.run(_run())


def get_version() -> str:
    """Get PolyPact version."""
    return __version__


__all__ = [
    "PolyPact",
    "build_gateway",
    "build_routes",
    "chat_sync",
    "get_version",
    "__version__",
]
