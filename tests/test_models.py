"""Model gateway and transport tests for PolyPact."""

import asyncio
import json
import httpx
import pytest
from aiohttp import test_utils, web
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from polypact.core.models import (
    MODEL_ROUTES, PROVIDER_CHAT_COMPLETIONS, PROVIDER_GEMINI,
    ChatCompletionsTransport, GeminiTransport, ModelGateway, ModelKey, ModelRoute,
)
from polypact.core.utils import FailureKind, ModelError, ParseError, Result, TransportError


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


ROUTE = ModelRoute(model_id="test/model", endpoint="https://llm.example/api/v1")


class RecordingTransport:
    def __init__(self, reply="answer", delay: float = 0.0, error: Exception = None):
        self.reply = reply
        self.delay = delay
        self.error = error
        self.sent = []
        self.closed = False

    async def send(self, route, messages, temperature, json_output):
        self.sent.append((route, messages, temperature, json_output))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply

    async def close(self):
        self.closed = True


class TestChatCompletionsTransport:
    """Tests for the OpenAI-compatible transport."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "{\"ok\": true}"}}]})

        transport = ChatCompletionsTransport("sk-test", site_name="PolyPact", client=mock_client(handler))
        text = await transport.send(ROUTE, [{"role": "user", "content": "hi"}], 0.0, True)

        assert text == '{"ok": true}'
        assert seen["url"] == "https://llm.example/api/v1/chat/completions"
        assert seen["headers"]["Authorization"] == "Bearer sk-test"
        assert seen["headers"]["X-Title"] == "PolyPact"
        assert seen["body"]["model"] == "test/model"
        assert seen["body"]["temperature"] == 0.0
        assert seen["body"]["response_format"] == {"type": "json_object"}
        await transport.close()

    @pytest.mark.asyncio
    async def test_plain_text_has_no_response_format(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "text"}}]})

        transport = ChatCompletionsTransport("k", client=mock_client(handler))
        await transport.send(ROUTE, [{"role": "user", "content": "hi"}], 0.1, False)
        assert "response_format" not in bodies[0]

    @pytest.mark.asyncio
    async def test_error_body_raises(self):
        def handler(request):
            return httpx.Response(200, json={"error": {"message": "quota exceeded"}})

        transport = ChatCompletionsTransport("k", client=mock_client(handler))
        with pytest.raises(ModelError, match="quota exceeded"):
            await transport.send(ROUTE, [{"role": "user", "content": "hi"}], 0.1, False)

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        transport = ChatCompletionsTransport("k", client=mock_client(lambda r: httpx.Response(502, json={})))
        with pytest.raises(ModelError, match="502"):
            await transport.send(ROUTE, [{"role": "user", "content": "hi"}], 0.1, False)

    @pytest.mark.asyncio
    async def test_empty_content_raises(self):
        transport = ChatCompletionsTransport("k", client=mock_client(lambda r: httpx.Response(200, json={"choices": []})))
        with pytest.raises(ModelError, match="No response"):
            await transport.send(ROUTE, [{"role": "user", "content": "hi"}], 0.1, False)

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self):
        transport = ChatCompletionsTransport("k", client=mock_client(lambda r: httpx.Response(200, text="<html>")))
        with pytest.raises(ModelError, match="non-JSON"):
            await transport.send(ROUTE, [{"role": "user", "content": "hi"}], 0.1, False)


class TestSlowProvider:
    """Deep models can take longer than httpx's default 5s; the gateway timeout governs."""

    def test_own_client_has_no_http_timeout(self):
        client = ChatCompletionsTransport("k")._ensure_client()
        assert client.timeout.read is None
        assert client.timeout.connect is None

    def test_explicit_timeout_is_passed_through(self):
        client = ChatCompletionsTransport("k", timeout=90.0)._ensure_client()
        assert client.timeout.read == 90.0

    @pytest.mark.asyncio
    async def test_response_after_six_seconds_succeeds(self):
        async def completions(request):
            await asyncio.sleep(6)
            return web.json_response({"choices": [{"message": {"content": "deliberate answer"}}]})

        app = web.Application()
        app.router.add_post("/api/v1/chat/completions", completions)
        server = test_utils.TestServer(app)
        await server.start_server()

        transport = ChatCompletionsTransport("k")
        route = ModelRoute(model_id="deep/model", endpoint=str(server.make_url("/api/v1")))
        gateway = ModelGateway({PROVIDER_CHAT_COMPLETIONS: transport}, routes={ModelKey.GENERAL: route}, timeout=60)
        try:
            result = await gateway.invoke(ModelKey.GENERAL, [{"role": "user", "content": "q"}])
        finally:
            await gateway.close()
            await server.close()

        assert result.ok, result.detail
        assert result.value == "deliberate answer"

    @pytest.mark.asyncio
    async def test_failure_detail_names_exception(self):
        gateway = ModelGateway({PROVIDER_CHAT_COMPLETIONS: RecordingTransport(error=httpx.ReadTimeout(""))})
        result = await gateway.invoke(ModelKey.GENERAL, [{"role": "user", "content": "q"}])
        assert result.kind == FailureKind.TRANSPORT
        assert result.detail.startswith("ReadTimeout")


class TestGeminiTransport:

    @pytest.mark.asyncio
    async def test_missing_key_raises(self):
        transport = GeminiTransport(api_key="")
        route = ModelRoute(model_id="gemini-2.5-flash", provider=PROVIDER_GEMINI, endpoint="")
        with pytest.raises(ModelError):
            await transport.send(route, [{"role": "user", "content": "hi"}], 0.1, False)


class TestModelGateway:
    """Tests for ModelGateway routing and failure mapping."""

    def test_default_routes(self):
        assert set(MODEL_ROUTES) == {ModelKey.GENERAL, ModelKey.RESEARCH}
        assert MODEL_ROUTES[ModelKey.GENERAL].model_id != MODEL_ROUTES[ModelKey.RESEARCH].model_id

    @pytest.mark.asyncio
    async def test_routes_by_key(self):
        transport = RecordingTransport("hello")
        routes = {
            ModelKey.GENERAL: ModelRoute(model_id="deep"),
            ModelKey.RESEARCH: ModelRoute(model_id="fast"),
        }
        gateway = ModelGateway({PROVIDER_CHAT_COMPLETIONS: transport}, routes)

        result = await gateway.invoke(ModelKey.RESEARCH, [{"role": "user", "content": "q"}], json_output=True)
        assert result.ok and result.value == "hello"
        route, _, temperature, json_output = transport.sent[0]
        assert route.model_id == "fast"
        assert temperature == 0.1
        assert json_output is True
        assert gateway.get_usage()["research"].requests == 1

    @pytest.mark.asyncio
    async def test_transport_error_becomes_failure(self):
        transport = RecordingTransport(error=ModelError("boom"))
        gateway = ModelGateway({PROVIDER_CHAT_COMPLETIONS: transport})

        result = await gateway.invoke(ModelKey.GENERAL, [{"role": "user", "content": "q"}])
        assert not result.ok
        assert result.kind == FailureKind.TRANSPORT
        assert "boom" in result.detail
        assert gateway.get_usage()["general"].failures == 1
        assert len(transport.sent) == 1  # never retried

    @pytest.mark.asyncio
    async def test_timeout_becomes_failure(self):
        gateway = ModelGateway({PROVIDER_CHAT_COMPLETIONS: RecordingTransport(delay=1.0)}, timeout=0.01)
        result = await gateway.invoke(ModelKey.GENERAL, [{"role": "user", "content": "q"}])
        assert result.kind == FailureKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_missing_transport(self):
        gateway = ModelGateway({})
        result = await gateway.invoke(ModelKey.GENERAL, [{"role": "user", "content": "q"}])
        assert result.kind == FailureKind.TRANSPORT

    @pytest.mark.asyncio
    async def test_complete_builds_messages(self):
        transport = RecordingTransport()
        gateway = ModelGateway({PROVIDER_CHAT_COMPLETIONS: transport})
        await gateway.complete("question", system_prompt="persona")
        _, messages, _, _ = transport.sent[0]
        assert messages == [
            {"role": "system", "content": "persona"},
            {"role": "user", "content": "question"},
        ]

    @pytest.mark.asyncio
    async def test_close_closes_transports(self):
        transport = RecordingTransport()
        gateway = ModelGateway({PROVIDER_CHAT_COMPLETIONS: transport})
        await gateway.close()
        assert transport.closed


class TestResult:

    def test_unwrap(self):
        assert Result.success(3).unwrap() == 3
        with pytest.raises(ModelError):
            Result.failure(FailureKind.TRANSPORT, "reset").unwrap()
        with pytest.raises(ParseError):
            Result.failure(FailureKind.PARSE).unwrap()

    def test_timeout_is_transport_not_model_error(self):
        error = Result.failure(FailureKind.TIMEOUT, "search timed out").to_error()
        assert type(error) is TransportError
        assert str(error) == "search timed out"
        with pytest.raises(TransportError):
            Result.failure(FailureKind.TIMEOUT, "slow").unwrap()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
