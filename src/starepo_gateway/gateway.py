"""
Gateway Container

Constructs and owns every gateway component. Create one instance at process
start, await start(), and await shutdown() (or use it as an async context
manager) when the process exits.
"""

from typing import Optional

import structlog

from starepo_gateway.config import Settings, get_settings
from starepo_gateway.discovery.cache import ModelCacheStorage
from starepo_gateway.discovery.service import ModelDiscoveryService
from starepo_gateway.middleware import create_default_chain
from starepo_gateway.middleware.chain import MiddlewareChain
from starepo_gateway.providers.factory import ProviderFactory
from starepo_gateway.providers.namespace import AccountProvider, ModelResolver
from starepo_gateway.providers.registry import ProviderRegistry, create_provider_registry
from starepo_gateway.runtime.connection_manager import ConnectionManager, PoolOptions

logger = structlog.get_logger(__name__)


class Gateway:
    """Dependency-injection container for the AI provider gateway"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        account_provider: Optional[AccountProvider] = None,
        connection_manager: Optional[ConnectionManager] = None,
        middleware: Optional[MiddlewareChain] = None,
        registry: Optional[ProviderRegistry] = None,
        cache: Optional[ModelCacheStorage] = None,
        model_resolver: Optional[ModelResolver] = None,
    ):
        self.settings = settings or get_settings()

        self.connection_manager = connection_manager or ConnectionManager(
            PoolOptions(
                keepalive_expiry=self.settings.pool_keepalive_expiry,
                max_connections=self.settings.pool_max_connections,
                max_keepalive_connections=self.settings.pool_max_keepalive_connections,
                timeout=self.settings.pool_timeout,
            )
        )
        self.middleware = middleware or create_default_chain(self.settings)
        self.registry = registry or create_provider_registry(self.connection_manager, self.middleware)
        self.cache = cache or ModelCacheStorage(self.settings.cache_file)
        self.discovery = ModelDiscoveryService(
            self.registry,
            self.cache,
            self.connection_manager,
            default_ttl=self.settings.model_cache_ttl,
            health_check_timeout=self.settings.health_check_timeout,
            backoff_base=self.settings.discovery_backoff_base,
            backoff_max=self.settings.discovery_backoff_max,
            max_attempts=self.settings.discovery_max_attempts,
        )
        self.factory = ProviderFactory(
            self.registry,
            model_resolver=model_resolver,
            account_provider=account_provider,
        )
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        await self.discovery.initialize()
        self._started = True
        logger.info(
            "Gateway started",
            providers=len(self.registry.list_providers()),
            middlewares=self.middleware.size,
            cache_file=str(self.cache.cache_file),
        )

    async def shutdown(self) -> None:
        await self.connection_manager.destroy_all()
        self._started = False
        logger.info("Gateway stopped")

    async def __aenter__(self) -> "Gateway":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
