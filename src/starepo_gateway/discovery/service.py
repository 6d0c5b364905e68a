"""
Model Discovery Service

Fetches, caches and falls back on a vendor's model catalogue.

Policy for get_models():
1. A live cache entry answers immediately unless a refresh is forced.
2. Without a live entry and without force_refresh the answer is an empty
   list; refreshing is opt-in.
3. A forced refresh asks the vendor (conditionally when an entry exists)
   and caches the result.
4. When the vendor cannot be reached the stale entry is returned with
   ttl=0, else the provider's declared models tagged "fallback".
"""

import asyncio
import hashlib
import json
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from starepo_gateway.discovery.cache import DEFAULT_TTL_SECONDS, ModelCacheEntry, ModelCacheStorage
from starepo_gateway.errors import (
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    ResponseParseError,
    VendorError,
)
from starepo_gateway.providers.base import (
    AIModel,
    ModelCapabilities,
    ModelValidation,
    ProviderAccountConfig,
    ProviderDefinition,
    ProviderProtocol,
)
from starepo_gateway.providers.client import map_transport_error
from starepo_gateway.providers.registry import ProviderRegistry
from starepo_gateway.runtime.connection_manager import ConnectionManager

logger = structlog.get_logger(__name__)

FALLBACK_TAG = "fallback"

_MAX_AGE = re.compile(r"max-age\s*=\s*(\d+)", re.IGNORECASE)


def compute_account_hash(account: ProviderAccountConfig) -> str:
    """md5 of provider id, base URL and custom headers; the API key is not part of it"""
    relevant = {
        "provider_id": account.provider_id,
        "base_url": account.base_url,
        "custom_headers": dict(account.custom_headers),
    }
    content = json.dumps(relevant, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(content.encode("utf-8")).hexdigest()


class ModelListResponse(BaseModel):
    models: List[AIModel]
    provider_id: str
    fetched_at: datetime
    ttl: int
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    source: str = "cache"


class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    model_count: Optional[int] = None
    latency: Optional[int] = None


class _OpenAIModelItem(BaseModel):
    id: str
    display_name: Optional[str] = None
    max_tokens: Optional[int] = None


class _OpenAIModelList(BaseModel):
    data: List[_OpenAIModelItem]


class _OllamaModelItem(BaseModel):
    name: str
    tag: Optional[str] = None
    digest: Optional[str] = None


class _OllamaModelList(BaseModel):
    models: List[_OllamaModelItem]


@dataclass
class _FetchResult:
    models: List[AIModel]
    ttl: int
    etag: Optional[str]
    last_modified: Optional[str]
    not_modified: bool = False


class ModelDiscoveryService:
    """Cache-first model listing with remote refresh and fallback"""

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ModelCacheStorage,
        connection_manager: ConnectionManager,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        health_check_timeout: float = 5.0,
        backoff_base: float = 1.0,
        backoff_max: float = 5.0,
        max_attempts: int = 3,
    ):
        self.registry = registry
        self.cache = cache
        self.connection_manager = connection_manager
        self.default_ttl = default_ttl
        self.health_check_timeout = health_check_timeout
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.max_attempts = max(1, max_attempts)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Load the persisted cache once"""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            await self.cache.load()
            self._initialized = True

    async def get_models(self, account: ProviderAccountConfig, force_refresh: bool = False) -> ModelListResponse:
        await self.initialize()
        definition = self.registry.require_provider(account.provider_id)
        account_hash = compute_account_hash(account)

        if not force_refresh:
            cached = self.cache.get(definition.id, account_hash)
            if cached is not None:
                logger.debug("Using cached models", provider=definition.id, count=len(cached.models))
                return self._from_entry(cached, source="cache")

            logger.debug("No cached models and refresh not requested", provider=definition.id)
            return ModelListResponse(models=[], provider_id=definition.id, fetched_at=self.cache.now(), ttl=0, source="empty")

        previous = self.cache.get(definition.id, account_hash, include_expired=True)
        try:
            result = await self._fetch_remote(definition, account, previous)
        except Exception as e:
            return self._fallback(definition, previous, e)

        if result.not_modified and previous is not None:
            entry = await self.cache.set(
                definition.id,
                account_hash,
                previous.models,
                ttl=result.ttl,
                etag=result.etag or previous.etag,
                last_modified=result.last_modified or previous.last_modified,
            )
            logger.info("Model list not modified", provider=definition.id, count=len(entry.models))
            return self._from_entry(entry, source="not_modified")

        entry = await self.cache.set(
            definition.id,
            account_hash,
            result.models,
            ttl=result.ttl,
            etag=result.etag,
            last_modified=result.last_modified,
        )
        logger.info("Fetched models", provider=definition.id, count=len(entry.models), ttl=result.ttl)
        return self._from_entry(entry, source="remote")

    async def test_connection(self, account: ProviderAccountConfig) -> ConnectionTestResult:
        """Check credentials, reachability and model listing; never raises"""
        start = time.perf_counter()

        def elapsed_ms() -> int:
            return int((time.perf_counter() - start) * 1000)

        try:
            definition = self.registry.get_provider(account.provider_id)
            if definition is None:
                return ConnectionTestResult(success=False, message=f"Unknown provider: {account.provider_id}")

            if definition.validation.api_key_required and not account.api_key:
                return ConnectionTestResult(success=False, message=f"Provider {definition.id} requires an API key")

            if definition.validation.base_url_required and not account.base_url:
                return ConnectionTestResult(success=False, message=f"Provider {definition.id} requires a base URL")

            if not await self._health_check(definition, account):
                return ConnectionTestResult(
                    success=False,
                    message="Connection failed: service endpoint is unreachable",
                    latency=elapsed_ms(),
                )

            response = await self.get_models(account, force_refresh=True)
            message = "Connection succeeded"
            if response.source in ("stale_cache", "fallback", "empty"):
                message = f"Connection succeeded, but the model list could not be refreshed ({response.source})"
            return ConnectionTestResult(
                success=True,
                message=message,
                model_count=len(response.models),
                latency=elapsed_ms(),
            )
        except Exception as e:
            logger.warning("Connection test failed", provider=account.provider_id, error=str(e))
            return ConnectionTestResult(success=False, message=f"Connection failed: {e}", latency=elapsed_ms())

    async def clear_cache(self, provider_id: Optional[str] = None) -> int:
        await self.initialize()
        return await self.cache.clear(provider_id)

    def _from_entry(self, entry: ModelCacheEntry, source: str, stale: bool = False) -> ModelListResponse:
        return ModelListResponse(
            models=entry.models,
            provider_id=entry.provider_id,
            fetched_at=entry.fetched_at,
            ttl=0 if stale else entry.ttl_remaining(self.cache.now()),
            etag=entry.etag,
            last_modified=entry.last_modified,
            source=source,
        )

    def _fallback(
        self,
        definition: ProviderDefinition,
        previous: Optional[ModelCacheEntry],
        error: Exception,
    ) -> ModelListResponse:
        logger.error("Failed to fetch models", provider=definition.id, error=str(error))

        if previous is not None:
            logger.warning("Using stale cached models", provider=definition.id, count=len(previous.models))
            return self._from_entry(previous, source="stale_cache", stale=True)

        models = self._predefined_models(definition)
        logger.warning("Using predefined models", provider=definition.id, count=len(models))
        return ModelListResponse(
            models=models,
            provider_id=definition.id,
            fetched_at=self.cache.now(),
            ttl=0,
            source="fallback" if models else "empty",
        )

    @staticmethod
    def _predefined_models(definition: ProviderDefinition) -> List[AIModel]:
        return [
            AIModel(
                id=model_id,
                display_name=model_id,
                provider_id=definition.id,
                capabilities=ModelCapabilities(max_tokens=definition.defaults.max_tokens),
                tags=[FALLBACK_TAG],
            )
            for model_id in definition.defaults.models
        ]

    async def _fetch_remote(
        self,
        definition: ProviderDefinition,
        account: ProviderAccountConfig,
        previous: Optional[ModelCacheEntry],
    ) -> _FetchResult:
        if not definition.validation.supports_model_listing:
            raise ConfigurationError(
                f"Provider {definition.id} does not support model listing", provider_id=definition.id
            )

        adapter = self.registry.get_adapter_for_account(account)
        url = adapter.model_listing_url(definition, account)
        headers = adapter.build_headers(definition, account)
        if previous is not None:
            if previous.etag:
                headers["If-None-Match"] = previous.etag
            if previous.last_modified:
                headers["If-Modified-Since"] = previous.last_modified
        client = self.connection_manager.get_client(url, adapter.pool_options(account))

        attempts = self.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                logger.debug("Fetching models", provider=definition.id, url=url, attempt=attempt, attempts=attempts)
                return await self._fetch_once(client, url, headers, definition, account, previous is not None)
            except Exception as e:
                if attempt >= attempts:
                    raise
                delay = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
                logger.warning(
                    "Model list fetch failed, retrying",
                    provider=definition.id,
                    attempt=attempt,
                    delay_seconds=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

    async def _fetch_once(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Dict[str, str],
        definition: ProviderDefinition,
        account: ProviderAccountConfig,
        conditional: bool,
    ) -> _FetchResult:
        try:
            response = await client.get(url, headers=headers, timeout=float(account.timeout))
        except httpx.TransportError as e:
            raise map_transport_error(e, definition.id) from e

        ttl = self._ttl_from_headers(response.headers)
        etag = response.headers.get("etag")
        last_modified = response.headers.get("last-modified")

        if response.status_code == 304 and conditional:
            return _FetchResult(models=[], ttl=ttl, etag=etag, last_modified=last_modified, not_modified=True)

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                provider_id=definition.id,
                code=str(response.status_code),
            )
        if not response.is_success:
            raise VendorError(response.status_code, response.reason_phrase or "request failed", provider_id=definition.id)

        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseParseError(f"Model list is not valid JSON: {e}", provider_id=definition.id) from e

        models = self.parse_models(definition, payload)
        return _FetchResult(models=models, ttl=ttl, etag=etag, last_modified=last_modified)

    def _ttl_from_headers(self, headers: httpx.Headers) -> int:
        match = _MAX_AGE.search(headers.get("cache-control", ""))
        if match:
            return int(match.group(1))
        return self.default_ttl

    def parse_models(self, definition: ProviderDefinition, payload: Any) -> List[AIModel]:
        """Shape-sniff a model list payload

        Strict providers must match their protocol's shape exactly or a
        ResponseParseError is raised; everyone else degrades to [] with a
        warning.
        """
        if definition.validation.model_validation == ModelValidation.STRICT:
            return self._parse_strict(definition, payload)

        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            return [
                self._openai_model(definition, item)
                for item in payload["data"]
                if isinstance(item, dict) and item.get("id")
            ]
        if isinstance(payload, dict) and isinstance(payload.get("models"), list):
            return [
                self._ollama_model(definition, item)
                for item in payload["models"]
                if isinstance(item, dict) and item.get("name")
            ]

        logger.warning(
            "Unknown model list response format",
            provider=definition.id,
            keys=sorted(payload.keys()) if isinstance(payload, dict) else type(payload).__name__,
        )
        return []

    def _parse_strict(self, definition: ProviderDefinition, payload: Any) -> List[AIModel]:
        try:
            if definition.protocol == ProviderProtocol.OLLAMA:
                parsed = _OllamaModelList.model_validate(payload)
                return [self._ollama_model(definition, item.model_dump()) for item in parsed.models]
            parsed = _OpenAIModelList.model_validate(payload)
            return [self._openai_model(definition, item.model_dump()) for item in parsed.data]
        except ValidationError as e:
            raise ResponseParseError(
                f"Model list from {definition.id} does not match the expected shape: {e.error_count()} errors",
                provider_id=definition.id,
            ) from e

    @staticmethod
    def _openai_model(definition: ProviderDefinition, item: Dict[str, Any]) -> AIModel:
        return AIModel(
            id=str(item["id"]),
            display_name=str(item.get("display_name") or item["id"]),
            provider_id=definition.id,
            capabilities=ModelCapabilities(max_tokens=item.get("max_tokens") or None, supports_streaming=True),
        )

    @staticmethod
    def _ollama_model(definition: ProviderDefinition, item: Dict[str, Any]) -> AIModel:
        name = str(item["name"])
        digest = item.get("digest")
        return AIModel(
            id=name,
            display_name=f"{name}:{item.get('tag') or 'latest'}" if ":" not in name else name,
            provider_id=definition.id,
            capabilities=ModelCapabilities(supports_streaming=True),
            tags=[digest[:7] if isinstance(digest, str) and digest else "local"],
        )

    async def _health_check(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> bool:
        check = definition.health_check
        if check is None:
            return True

        try:
            adapter = self.registry.get_adapter_for_account(account)
            url = adapter.health_check_url(definition, account)
            headers = adapter.build_headers(definition, account)
            headers.update(check.headers)
            client = self.connection_manager.get_client(url, adapter.pool_options(account))
            response = await client.request(check.method, url, headers=headers, timeout=self.health_check_timeout)
        except (GatewayError, httpx.HTTPError) as e:
            logger.debug("Health check failed", provider=definition.id, error=str(e))
            return False

        healthy = response.status_code == check.expected_status
        logger.debug("Health check", provider=definition.id, status=response.status_code, healthy=healthy)
        return healthy
