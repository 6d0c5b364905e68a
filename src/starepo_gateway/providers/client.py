"""
Language Model Clients

Ready-to-call chat clients returned by adapters. Each client is bound to a
resolved base URL, merged headers, a model id and a pooled httpx client, and
routes every call through the adapter's MiddlewareChain. SDK-level retries
are disabled; retrying is the middleware's job.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import anthropic
import httpx
import openai
import structlog

from starepo_gateway.errors import AuthenticationError, GatewayError, NetworkError, VendorError
from starepo_gateway.middleware.chain import MiddlewareChain, MiddlewareContext

logger = structlog.get_logger(__name__)

Message = Dict[str, Any]

# SDKs insist on a key; the header it would produce is omitted when no key is configured
NO_API_KEY = "no-key"

_DNS_HINTS = ("name or service not known", "nodename nor servname", "getaddrinfo", "name resolution")
_TIMEOUT_HINTS = ("timed out", "timeout")


@dataclass
class GenerationResult:
    """Result of a non-streaming chat call"""
    text: str
    model: str
    finish_reason: Optional[str] = None
    usage: Dict[str, int] = field(default_factory=dict)


def _vendor_message(exc: Exception) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return getattr(exc, "message", None) or str(exc)


def map_transport_error(exc: Exception, provider_id: Optional[str] = None) -> NetworkError:
    """Classify a connection-level failure as a retryable NetworkError"""
    message = str(exc) or type(exc).__name__
    cause = exc.__cause__ or exc.__context__
    detail = f"{message} {cause}".lower() if cause else message.lower()

    if isinstance(exc, (httpx.TimeoutException, openai.APITimeoutError, anthropic.APITimeoutError)) or any(
        hint in detail for hint in _TIMEOUT_HINTS
    ):
        code = "ETIMEDOUT"
    elif any(hint in detail for hint in _DNS_HINTS):
        code = "ENOTFOUND"
    else:
        code = "ECONNRESET"
    return NetworkError(f"{code}: {message}", provider_id=provider_id, code=code)


def map_sdk_error(exc: Exception, provider_id: Optional[str] = None) -> Exception:
    """Translate openai/anthropic SDK exceptions into the gateway taxonomy"""
    if isinstance(exc, GatewayError):
        return exc
    if isinstance(exc, (openai.APIConnectionError, anthropic.APIConnectionError, httpx.TransportError)):
        return map_transport_error(exc, provider_id)
    if isinstance(exc, (openai.APIStatusError, anthropic.APIStatusError)):
        status = exc.status_code
        message = _vendor_message(exc)
        if status in (401, 403):
            return AuthenticationError(f"HTTP {status}: {message}", provider_id=provider_id, code=str(status))
        return VendorError(status, message, provider_id=provider_id)
    return exc


class LanguageModel(ABC):
    """Uniform chat surface over one vendor protocol"""

    def __init__(
        self,
        provider_id: str,
        model_id: str,
        base_url: str,
        headers: Dict[str, str],
        http_client: httpx.AsyncClient,
        middleware: MiddlewareChain,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        default_max_tokens: Optional[int] = None,
        default_temperature: Optional[float] = None,
    ):
        self.provider_id = provider_id
        self.model_id = model_id
        self.base_url = base_url
        self.headers = dict(headers)
        self.http_client = http_client
        self.middleware = middleware
        self.timeout = timeout
        self.default_max_tokens = default_max_tokens
        self.default_temperature = default_temperature
        self._api_key = api_key

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider_id!r}, model={self.model_id!r}, base_url={self.base_url!r})"

    def _context(self, options: Dict[str, Any], streaming: bool) -> MiddlewareContext:
        metadata = dict(options.pop("metadata", None) or {})
        metadata["streaming"] = streaming
        return MiddlewareContext(provider_id=self.provider_id, model_id=self.model_id, metadata=metadata)

    async def generate(self, messages: List[Message], **options: Any) -> GenerationResult:
        """Send messages and return the complete reply"""
        context = self._context(options, streaming=False)
        params = self._build_params(messages, options)
        return await self.middleware.execute(params, context, self._guarded(self._generate))

    async def stream(self, messages: List[Message], **options: Any) -> AsyncIterator[str]:
        """Send messages and yield reply text as it arrives

        Only opening the stream runs through the middleware chain; a failure
        after the first delta is surfaced to the caller as-is.
        """
        context = self._context(options, streaming=True)
        params = self._build_params(messages, options)
        response = await self.middleware.execute(params, context, self._guarded(self._open_stream))
        try:
            async for delta in self._iter_stream(response):
                yield delta
        except Exception as e:
            logger.warning(
                "AI stream interrupted",
                request_id=context.request_id,
                provider=self.provider_id,
                model=self.model_id,
                error=str(e),
            )
            mapped = map_sdk_error(e, self.provider_id)
            if mapped is e:
                raise
            raise mapped from e

    def _guarded(self, call):
        async def wrapper(params: Dict[str, Any]) -> Any:
            try:
                return await call(params)
            except Exception as e:
                mapped = map_sdk_error(e, self.provider_id)
                if mapped is e:
                    raise
                raise mapped from e

        return wrapper

    @abstractmethod
    def _build_params(self, messages: List[Message], options: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def _generate(self, params: Dict[str, Any]) -> GenerationResult:
        pass

    @abstractmethod
    async def _open_stream(self, params: Dict[str, Any]) -> Any:
        pass

    @abstractmethod
    def _iter_stream(self, response: Any) -> AsyncIterator[str]:
        pass


class OpenAIChatModel(LanguageModel):
    """OpenAI chat completions client (also used for Ollama's /v1 endpoint)"""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        headers: Dict[str, Any] = dict(self.headers)
        if not any(name.lower() == "authorization" for name in headers):
            headers["Authorization"] = openai.Omit()
        self.client = openai.AsyncOpenAI(
            api_key=self._api_key or NO_API_KEY,
            base_url=self.base_url,
            default_headers=headers,
            http_client=self.http_client,
            timeout=self.timeout,
            max_retries=0,
        )

    def _build_params(self, messages: List[Message], options: Dict[str, Any]) -> Dict[str, Any]:
        params: Dict[str, Any] = {"model": self.model_id, "messages": list(messages)}
        if self.default_max_tokens is not None:
            params["max_tokens"] = self.default_max_tokens
        if self.default_temperature is not None:
            params["temperature"] = self.default_temperature
        params.update({k: v for k, v in options.items() if v is not None})
        return params

    async def _generate(self, params: Dict[str, Any]) -> GenerationResult:
        response = await self.client.chat.completions.create(**params)
        choice = response.choices[0] if response.choices else None
        usage: Dict[str, int] = {}
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        return GenerationResult(
            text=(choice.message.content or "") if choice else "",
            model=response.model or self.model_id,
            finish_reason=choice.finish_reason if choice else None,
            usage=usage,
        )

    async def _open_stream(self, params: Dict[str, Any]) -> Any:
        return await self.client.chat.completions.create(**params, stream=True)

    async def _iter_stream(self, response: Any) -> AsyncIterator[str]:
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = getattr(chunk.choices[0], "delta", None)
            content = getattr(delta, "content", None) if delta else None
            if content:
                yield content


class AnthropicChatModel(LanguageModel):
    """Anthropic messages client

    base_url is the resolved ".../v1" endpoint; the SDK appends /v1/messages
    itself so it is handed the root.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        root = self.base_url[: -len("/v1")] if self.base_url.endswith("/v1") else self.base_url
        # the SDK sends X-Api-Key itself; a second lowercase copy would duplicate it
        headers: Dict[str, Any] = {k: v for k, v in self.headers.items() if k.lower() != "x-api-key"}
        # older SDK releases only honour an omitted auth header per request
        self._request_headers: Dict[str, Any] = {}
        if not self._api_key:
            headers["X-Api-Key"] = anthropic.Omit()
            self._request_headers["X-Api-Key"] = anthropic.Omit()
        self.client = anthropic.AsyncAnthropic(
            api_key=self._api_key or NO_API_KEY,
            base_url=root,
            default_headers=headers,
            http_client=self.http_client,
            timeout=self.timeout,
            max_retries=0,
        )

    def _build_params(self, messages: List[Message], options: Dict[str, Any]) -> Dict[str, Any]:
        system_parts = [str(m.get("content", "")) for m in messages if m.get("role") == "system"]
        params: Dict[str, Any] = {
            "model": self.model_id,
            "messages": [m for m in messages if m.get("role") != "system"],
            "max_tokens": self.default_max_tokens or 4096,
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)
        if self.default_temperature is not None:
            params["temperature"] = self.default_temperature
        params.update({k: v for k, v in options.items() if v is not None})
        return params

    async def _generate(self, params: Dict[str, Any]) -> GenerationResult:
        response = await self.client.messages.create(**params, extra_headers=self._request_headers or None)
        text = "".join(
            getattr(block, "text", "") for block in response.content if getattr(block, "type", None) == "text"
        )
        usage: Dict[str, int] = {}
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        return GenerationResult(
            text=text,
            model=response.model or self.model_id,
            finish_reason=response.stop_reason,
            usage=usage,
        )

    async def _open_stream(self, params: Dict[str, Any]) -> Any:
        return await self.client.messages.create(**params, stream=True, extra_headers=self._request_headers or None)

    async def _iter_stream(self, response: Any) -> AsyncIterator[str]:
        async for event in response:
            if getattr(event, "type", None) != "content_block_delta":
                continue
            delta = getattr(event, "delta", None)
            if getattr(delta, "type", None) == "text_delta" and delta.text:
                yield delta.text
