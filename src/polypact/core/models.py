"""Model gateway for chat-completion style LLM access.

Routing Strategy:
- GENERAL: deep reasoning model (tactical analysis, redrafting, gatekeeping, main chat answers)
- RESEARCH: fast model (grounding, summarization, drafting edits, graph extraction)

Model selection is data: a ``ModelKey -> ModelRoute`` table injected at
construction. Each route names a provider; the gateway dispatches to the
transport registered for that provider.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol
import asyncio
import logging

import httpx
from google import genai
from google.genai import types

from .utils import FailureKind, ModelError, Result

logger = logging.getLogger(__name__)


class ModelKey(Enum):
    """Named model classes used by the pipeline."""
    GENERAL = "general"      # Deep reasoning: tactical analysis, gatekeeping, chat answers
    RESEARCH = "research"    # Fast: grounding, summarization, drafting edits


PROVIDER_CHAT_COMPLETIONS = "chat_completions"
PROVIDER_GEMINI = "gemini"

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


@dataclass
class ModelRoute:
    """Where and how to call one model class."""
    model_id: str
    provider: str = PROVIDER_CHAT_COMPLETIONS
    endpoint: str = OPENROUTER_BASE_URL
    max_output_tokens: int = 8192


# Default routing table, overridable from ServiceConfig
MODEL_ROUTES: dict[ModelKey, ModelRoute] = {
    ModelKey.GENERAL: ModelRoute(
        model_id="thedrummer/cydonia-24b-v4.1",
    ),
    ModelKey.RESEARCH: ModelRoute(
        model_id="google/gemini-2.5-flash-lite-preview-09-2025",
        max_output_tokens=16384,
    ),
}


@dataclass
class UsageStats:
    """Token usage tracking (estimated from character counts)."""
    input_tokens: int = 0
    output_tokens: int = 0
    requests: int = 0
    failures: int = 0

    def add(self, input_tokens: int, output_tokens: int):
        """Add tokens from a request."""
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.requests += 1


class ModelTransport(Protocol):
    """A provider-specific way of sending a message list to a model."""

    async def send(
        self,
        route: ModelRoute,
        messages: list[dict],
        temperature: float,
        json_output: bool,
    ) -> str: ...

    async def close(self) -> None: ...


class ChatCompletionsTransport:
    """OpenAI-compatible ``/chat/completions`` transport (OpenRouter by default)."""

    def __init__(
        self,
        api_key: str,
        site_url: str = "http://localhost:3000",
        site_name: str = "PolyPact",
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.site_url = site_url
        self.site_name = site_name
        self._client = client
        # None leaves the limit to ModelGateway's wait_for
        self.timeout = timeout

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.site_url,
            "X-Title": self.site_name,
            "Content-Type": "application/json",
        }

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(
        self,
        route: ModelRoute,
        messages: list[dict],
        temperature: float,
        json_output: bool,
    ) -> str:
        payload = {
            "model": route.model_id,
            "messages": messages,
            "temperature": temperature,
        }
        if json_output:
            payload["response_format"] = {"type": "json_object"}

        url = f"{route.endpoint.rstrip('/')}/chat/completions"
        response = await self._ensure_client().post(url, json=payload, headers=self._get_headers())

        try:
            data = response.json()
        except ValueError:
            raise ModelError(f"{route.model_id} returned non-JSON body (HTTP {response.status_code})")

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ModelError(f"{route.model_id} API error: {message}")

        if response.status_code >= 400:
            raise ModelError(f"{route.model_id} HTTP {response.status_code}")

        choices = data.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        if not content:
            raise ModelError(f"No response from {route.model_id}")
        return content

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()


class GeminiTransport:
    """Direct Google GenAI transport for routes with ``provider="gemini"``."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._client: Optional[genai.Client] = None

    def _ensure_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ModelError("GEMINI_API_KEY required for gemini routes")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def send(
        self,
        route: ModelRoute,
        messages: list[dict],
        temperature: float,
        json_output: bool,
    ) -> str:
        client = self._ensure_client()

        system_text = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = [
            types.Content(
                role="user" if m["role"] == "user" else "model",
                parts=[types.Part(text=m["content"])],
            )
            for m in messages
            if m["role"] != "system"
        ]

        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=route.max_output_tokens,
        )
        if system_text:
            config.system_instruction = system_text
        if json_output:
            config.response_mime_type = "application/json"

        response = await asyncio.to_thread(
            client.models.generate_content,
            model=route.model_id,
            contents=contents,
            config=config,
        )
        if not response.text:
            raise ModelError(f"No response from {route.model_id}")
        return response.text

    async def close(self) -> None:
        self._client = None


class ModelGateway:
    """Uniform entry point for every model call in the pipeline.

    Never retries. Every failure comes back as a ``Result`` failure so the
    calling stage can apply its own fallback policy.
    """

    DEFAULT_TIMEOUT = 60.0  # seconds

    def __init__(
        self,
        transports: dict[str, ModelTransport],
        routes: Optional[dict[ModelKey, ModelRoute]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.routes = dict(routes or MODEL_ROUTES)
        self.transports = transports
        self.timeout = timeout
        self._usage: dict[ModelKey, UsageStats] = {k: UsageStats() for k in ModelKey}

    async def invoke(
        self,
        key: ModelKey,
        messages: list[dict],
        *,
        temperature: float = 0.1,
        json_output: bool = False,
        timeout: Optional[float] = None,
    ) -> Result[str]:
        """Send a message list to the model behind ``key``."""
        route = self.routes[key]
        transport = self.transports.get(route.provider)
        if transport is None:
            self._usage[key].failures += 1
            return Result.failure(FailureKind.TRANSPORT, f"No transport registered for provider '{route.provider}'")

        request_timeout = timeout or self.timeout
        prompt_chars = sum(len(m.get("content", "")) for m in messages)
        logger.debug(f"Calling {route.model_id} with {prompt_chars} chars")

        try:
            text = await asyncio.wait_for(
                transport.send(route, messages, temperature, json_output),
                timeout=request_timeout,
            )
        except asyncio.TimeoutError:
            self._usage[key].failures += 1
            logger.error(f"Call to {route.model_id} timed out after {request_timeout}s")
            return Result.failure(FailureKind.TIMEOUT, f"{route.model_id} timed out after {request_timeout}s")
        except Exception as e:
            self._usage[key].failures += 1
            detail = f"{type(e).__name__}: {e}"
            logger.error(f"Call to {route.model_id} failed: {detail}")
            return Result.failure(FailureKind.TRANSPORT, detail)

        self._usage[key].add(prompt_chars // 4, len(text) // 4)
        logger.debug(f"Got response: {len(text)} chars")
        return Result.success(text)

    async def complete(
        self,
        prompt: str,
        key: ModelKey = ModelKey.RESEARCH,
        system_prompt: Optional[str] = None,
        **kwargs,
    ) -> Result[str]:
        """Single-turn convenience wrapper around ``invoke``."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.invoke(key, messages, **kwargs)

    def get_usage(self) -> dict[str, UsageStats]:
        """Get usage statistics per model key."""
        return {key.value: stats for key, stats in self._usage.items()}

    async def close(self):
        for transport in self.transports.values():
            await transport.close()
