"""
Provider Registry

Maps a provider id to its (definition, adapter) pair. This is the only place
vendors are wired in; one adapter instance may serve several provider ids.
"""

from typing import Any, Dict, List, Optional, Tuple

import structlog

from starepo_gateway.errors import AdapterNotFoundError, ConfigurationError, ProviderNotFoundError
from starepo_gateway.middleware.chain import MiddlewareChain
from starepo_gateway.providers.adapters import (
    AnthropicAdapter,
    OllamaAdapter,
    OpenAICompatibleAdapter,
    ProviderAdapter,
)
from starepo_gateway.providers.base import ProviderAccountConfig, ProviderDefinition, ProviderProtocol
from starepo_gateway.providers.definitions import (
    ANTHROPIC_PROVIDER,
    CUSTOM_ANTHROPIC_PROVIDER,
    CUSTOM_OPENAI_PROVIDER,
    DEEPSEEK_PROVIDER,
    OLLAMA_PROVIDER,
    OPENAI_PROVIDER,
)
from starepo_gateway.runtime.connection_manager import ConnectionManager

logger = structlog.get_logger(__name__)


class ProviderRegistry:
    """In-memory provider id -> (definition, adapter) map"""

    def __init__(self):
        self._entries: Dict[str, Tuple[ProviderDefinition, ProviderAdapter]] = {}
        self._protocol_adapters: Dict[ProviderProtocol, ProviderAdapter] = {}

    def register(self, definition: ProviderDefinition, adapter: ProviderAdapter) -> None:
        """Associate definition.id with its adapter, replacing any earlier entry"""
        if not adapter.supports(definition):
            raise ConfigurationError(
                f"Adapter {adapter.name} does not support provider {definition.id}",
                provider_id=definition.id,
            )
        if definition.id in self._entries:
            logger.info("Replacing provider registration", provider=definition.id)

        self._entries[definition.id] = (definition, adapter)
        self._protocol_adapters.setdefault(definition.protocol, adapter)
        logger.debug("Registered provider", provider=definition.id, adapter=adapter.name)

    def unregister(self, provider_id: str) -> bool:
        entry = self._entries.pop(provider_id, None)
        if entry is None:
            return False

        definition, adapter = entry
        still_used = any(a is adapter for _, a in self._entries.values())
        if self._protocol_adapters.get(definition.protocol) is adapter and not still_used:
            del self._protocol_adapters[definition.protocol]
        return True

    def has(self, provider_id: str) -> bool:
        return provider_id in self._entries

    def get_provider(self, provider_id: str) -> Optional[ProviderDefinition]:
        entry = self._entries.get(provider_id)
        return entry[0] if entry else None

    def get_adapter(self, provider_id: str) -> Optional[ProviderAdapter]:
        entry = self._entries.get(provider_id)
        return entry[1] if entry else None

    def require_provider(self, provider_id: str) -> ProviderDefinition:
        definition = self.get_provider(provider_id)
        if definition is None:
            raise ProviderNotFoundError(provider_id)
        return definition

    def require_adapter(self, provider_id: str) -> ProviderAdapter:
        adapter = self.get_adapter(provider_id)
        if adapter is None:
            raise AdapterNotFoundError(provider_id)
        return adapter

    def get_adapter_by_protocol(self, protocol: ProviderProtocol) -> Optional[ProviderAdapter]:
        return self._protocol_adapters.get(protocol)

    def get_adapter_for_account(self, account: ProviderAccountConfig) -> ProviderAdapter:
        """Adapter for an account, honouring its protocol override"""
        if account.protocol is not None:
            adapter = self.get_adapter_by_protocol(account.protocol)
            if adapter is None:
                raise AdapterNotFoundError(account.provider_id)
            return adapter
        return self.require_adapter(account.provider_id)

    def list_providers(self) -> List[ProviderDefinition]:
        return [definition for definition, _ in self._entries.values()]

    def clear(self) -> None:
        self._entries.clear()
        self._protocol_adapters.clear()

    @property
    def stats(self) -> Dict[str, Any]:
        by_protocol: Dict[str, int] = {}
        for definition, _ in self._entries.values():
            by_protocol[definition.protocol.value] = by_protocol.get(definition.protocol.value, 0) + 1
        return {
            "providers": len(self._entries),
            "adapters": len({id(adapter) for _, adapter in self._entries.values()}),
            "by_protocol": by_protocol,
        }


def create_provider_registry(
    connection_manager: ConnectionManager,
    middleware: MiddlewareChain,
) -> ProviderRegistry:
    """Registry wired with the built-in providers"""
    registry = ProviderRegistry()

    openai_adapter = OpenAICompatibleAdapter(connection_manager, middleware)
    anthropic_adapter = AnthropicAdapter(connection_manager, middleware)
    ollama_adapter = OllamaAdapter(connection_manager, middleware)

    registry.register(OPENAI_PROVIDER, openai_adapter)
    registry.register(ANTHROPIC_PROVIDER, anthropic_adapter)
    registry.register(DEEPSEEK_PROVIDER, openai_adapter)
    registry.register(OLLAMA_PROVIDER, ollama_adapter)
    registry.register(CUSTOM_OPENAI_PROVIDER, openai_adapter)
    registry.register(CUSTOM_ANTHROPIC_PROVIDER, anthropic_adapter)

    logger.info("Provider registry initialized", providers=len(registry.list_providers()))
    return registry
