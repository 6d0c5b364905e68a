"""
Unit tests for the SDK-backed language model clients
"""
import json

import httpx
import pytest

from starepo_gateway.errors import AuthenticationError, NetworkError, VendorError
from starepo_gateway.middleware.chain import MiddlewareChain
from starepo_gateway.middleware.retry import RetryMiddleware
from starepo_gateway.providers.adapters import AnthropicAdapter, OllamaAdapter, OpenAICompatibleAdapter
from starepo_gateway.providers.base import ProviderAccountConfig
from starepo_gateway.providers.client import map_transport_error
from starepo_gateway.providers.definitions import (
    ANTHROPIC_PROVIDER,
    CUSTOM_ANTHROPIC_PROVIDER,
    CUSTOM_OPENAI_PROVIDER,
    OLLAMA_PROVIDER,
    OPENAI_PROVIDER,
)
from starepo_gateway.runtime.connection_manager import ConnectionManager


def chat_completion(text: str) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1735732800,
        "model": "gpt-4o",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": text}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10},
    }


def openai_model(transport, chain=None, api_key="sk-test-key-123456789"):
    adapter = OpenAICompatibleAdapter(ConnectionManager(transport=transport), chain or MiddlewareChain())
    account = ProviderAccountConfig(provider_id="openai", api_key=api_key)
    return adapter.create_language_model(OPENAI_PROVIDER, account)


class TestOpenAIChatModel:
    """Test the chat completions client"""

    @pytest.mark.asyncio
    async def test_generate(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, json=chat_completion("Hello there")))
        model = openai_model(transport)

        result = await model.generate([{"role": "user", "content": "Hi"}], temperature=0.2)

        assert result.text == "Hello there"
        assert result.finish_reason == "stop"
        assert result.usage == {"input_tokens": 7, "output_tokens": 3}

        request = transport.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test-key-123456789"
        body = json.loads(request.content)
        assert body["model"] == "gpt-4o"
        assert body["temperature"] == 0.2
        assert body["messages"] == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_stream(self, make_transport):
        chunks = [
            {"id": "c1", "object": "chat.completion.chunk", "created": 1, "model": "gpt-4o",
             "choices": [{"index": 0, "delta": {"role": "assistant", "content": "Hel"}, "finish_reason": None}]},
            {"id": "c1", "object": "chat.completion.chunk", "created": 1, "model": "gpt-4o",
             "choices": [{"index": 0, "delta": {"content": "lo"}, "finish_reason": "stop"}]},
        ]
        sse = "".join(f"data: {json.dumps(chunk)}\n\n" for chunk in chunks) + "data: [DONE]\n\n"
        transport = make_transport(
            lambda request: httpx.Response(200, text=sse, headers={"content-type": "text/event-stream"})
        )

        deltas = [delta async for delta in openai_model(transport).stream([{"role": "user", "content": "Hi"}])]

        assert deltas == ["Hel", "lo"]
        assert json.loads(transport.requests[0].content)["stream"] is True

    @pytest.mark.asyncio
    async def test_vendor_error(self, make_transport):
        transport = make_transport(
            lambda request: httpx.Response(400, json={"error": {"message": "bad model", "type": "invalid_request_error"}})
        )

        with pytest.raises(VendorError) as exc_info:
            await openai_model(transport).generate([{"role": "user", "content": "Hi"}])

        assert exc_info.value.status_code == 400
        assert exc_info.value.vendor_message == "bad model"
        assert str(exc_info.value) == "HTTP 400: bad model"

    @pytest.mark.asyncio
    async def test_authentication_error(self, make_transport):
        transport = make_transport(
            lambda request: httpx.Response(401, json={"error": {"message": "Incorrect API key"}})
        )

        with pytest.raises(AuthenticationError, match="HTTP 401"):
            await openai_model(transport).generate([{"role": "user", "content": "Hi"}])

    @pytest.mark.asyncio
    async def test_timeout_becomes_network_error(self, make_transport):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(NetworkError) as exc_info:
            await openai_model(make_transport(handler)).generate([{"role": "user", "content": "Hi"}])

        assert exc_info.value.code == "ETIMEDOUT"

    @pytest.mark.asyncio
    async def test_retry_middleware_retries_unavailable_vendor(self, make_transport):
        responses = iter([
            httpx.Response(503, json={"error": {"message": "overloaded"}}),
            httpx.Response(503, json={"error": {"message": "overloaded"}}),
            httpx.Response(200, json=chat_completion("finally")),
        ])
        transport = make_transport(lambda request: next(responses))
        chain = MiddlewareChain([RetryMiddleware(max_retries=3, base_delay=0)])

        result = await openai_model(transport, chain).generate([{"role": "user", "content": "Hi"}])

        assert result.text == "finally"
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_metadata_is_not_sent_to_vendor(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, json=chat_completion("ok")))

        await openai_model(transport).generate([{"role": "user", "content": "Hi"}], metadata={"trace": "t-1"})

        assert "metadata" not in json.loads(transport.requests[0].content)

    @pytest.mark.asyncio
    async def test_ollama_sends_no_authorization(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, json=chat_completion("hi")))
        adapter = OllamaAdapter(ConnectionManager(transport=transport), MiddlewareChain())
        model = adapter.create_language_model(OLLAMA_PROVIDER, ProviderAccountConfig(provider_id="ollama"), "llama3")

        await model.generate([{"role": "user", "content": "Hi"}])

        request = transport.requests[0]
        assert str(request.url) == "http://localhost:11434/v1/chat/completions"
        assert "authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_keyless_custom_endpoint_sends_no_authorization(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, json=chat_completion("hi")))
        adapter = OpenAICompatibleAdapter(ConnectionManager(transport=transport), MiddlewareChain())
        account = ProviderAccountConfig(provider_id="custom_openai", base_url="https://llm.local", default_model="m1")
        model = adapter.create_language_model(CUSTOM_OPENAI_PROVIDER, account)

        await model.generate([{"role": "user", "content": "Hi"}])

        assert "authorization" not in transport.requests[0].headers


class TestAnthropicChatModel:
    """Test the messages client"""

    @pytest.mark.asyncio
    async def test_generate_with_system_prompt(self, make_transport):
        reply = {
            "id": "msg_1",
            "type": "message",
            "role": "assistant",
            "model": "claude-3-5-haiku-20241022",
            "content": [{"type": "text", "text": "Bonjour"}],
            "stop_reason": "end_turn",
            "stop_sequence": None,
            "usage": {"input_tokens": 12, "output_tokens": 4},
        }
        transport = make_transport(lambda request: httpx.Response(200, json=reply))
        adapter = AnthropicAdapter(ConnectionManager(transport=transport), MiddlewareChain())
        account = ProviderAccountConfig(provider_id="anthropic", api_key="ak-123")
        model = adapter.create_language_model(ANTHROPIC_PROVIDER, account, "claude-3-5-haiku-20241022")

        result = await model.generate([
            {"role": "system", "content": "Answer in French"},
            {"role": "user", "content": "Hello"},
        ])

        assert result.text == "Bonjour"
        assert result.finish_reason == "end_turn"
        assert result.usage == {"input_tokens": 12, "output_tokens": 4}

        request = transport.requests[0]
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers.get_list("x-api-key") == ["ak-123"]
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body["system"] == "Answer in French"
        assert body["messages"] == [{"role": "user", "content": "Hello"}]
        assert body["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_keyless_custom_endpoint_sends_no_api_key(self, make_transport):
        reply = {
            "id": "msg_2",
            "type": "message",
            "role": "assistant",
            "model": "house-model",
            "content": [{"type": "text", "text": "ok"}],
            "stop_reason": "end_turn",
            "stop_sequence": None,
            "usage": {"input_tokens": 1, "output_tokens": 1},
        }
        transport = make_transport(lambda request: httpx.Response(200, json=reply))
        adapter = AnthropicAdapter(ConnectionManager(transport=transport), MiddlewareChain())
        account = ProviderAccountConfig(provider_id="custom_anthropic", base_url="https://claude.internal")
        model = adapter.create_language_model(CUSTOM_ANTHROPIC_PROVIDER, account, "house-model")

        result = await model.generate([{"role": "user", "content": "Hi"}])

        assert result.text == "ok"
        request = transport.requests[0]
        assert str(request.url) == "https://claude.internal/v1/messages"
        assert "x-api-key" not in request.headers
        assert "authorization" not in request.headers


class TestTransportErrorMapping:
    """Test classification of connection failures"""

    def test_timeout(self):
        error = map_transport_error(httpx.ReadTimeout("read timed out"), "openai")
        assert error.code == "ETIMEDOUT"
        assert str(error).startswith("ETIMEDOUT:")

    def test_dns_failure(self):
        error = map_transport_error(httpx.ConnectError("[Errno -2] Name or service not known"))
        assert error.code == "ENOTFOUND"

    def test_reset(self):
        error = map_transport_error(httpx.RemoteProtocolError("peer closed connection"))
        assert error.code == "ECONNRESET"
