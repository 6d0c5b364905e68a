"""
Shared fixtures for the Starepo gateway test suite
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, List

import httpx
import pytest

from starepo_gateway.discovery.cache import ModelCacheStorage
from starepo_gateway.discovery.service import ModelDiscoveryService
from starepo_gateway.middleware.chain import MiddlewareChain
from starepo_gateway.providers.base import AIModel, ProviderAccountConfig
from starepo_gateway.providers.registry import ProviderRegistry, create_provider_registry
from starepo_gateway.runtime.connection_manager import ConnectionManager


class FakeClock:
    """Controllable UTC clock"""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


# ==================== CLOCK & STORAGE ====================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache_file(tmp_path):
    return tmp_path / "ai-models-cache.json"


@pytest.fixture
def cache(cache_file, clock) -> ModelCacheStorage:
    return ModelCacheStorage(cache_file, clock=clock)


# ==================== PROVIDERS ====================

@pytest.fixture
def openai_account() -> ProviderAccountConfig:
    return ProviderAccountConfig(provider_id="openai", api_key="sk-test-key-123456789")


@pytest.fixture
def ollama_account() -> ProviderAccountConfig:
    return ProviderAccountConfig(provider_id="ollama")


@pytest.fixture
def sample_models() -> List[AIModel]:
    return [
        AIModel(id="gpt-4o", display_name="gpt-4o", provider_id="openai"),
        AIModel(id="gpt-4o-mini", display_name="gpt-4o-mini", provider_id="openai"),
    ]


@pytest.fixture
def make_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    return RecordingTransport


@pytest.fixture
def make_registry() -> Callable[[ConnectionManager], ProviderRegistry]:
    def factory(connection_manager: ConnectionManager) -> ProviderRegistry:
        return create_provider_registry(connection_manager, MiddlewareChain())

    return factory


@pytest.fixture
def make_discovery(cache, make_registry):
    """Discovery service wired to a mock transport, with zero backoff"""

    def factory(transport: httpx.AsyncBaseTransport) -> ModelDiscoveryService:
        connection_manager = ConnectionManager(transport=transport)
        return ModelDiscoveryService(
            make_registry(connection_manager),
            cache,
            connection_manager,
            backoff_base=0,
            backoff_max=0,
        )

    return factory
