"""
Provider Factory

Creates language-model clients from a namespace string or from an explicit
provider id and account.
"""

from typing import Optional

import structlog

from starepo_gateway.providers.base import ProviderAccountConfig
from starepo_gateway.providers.client import LanguageModel
from starepo_gateway.providers.namespace import AccountProvider, ModelResolver
from starepo_gateway.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)


class ProviderFactory:
    """Factory for ready-to-call language models"""

    def __init__(
        self,
        registry: ProviderRegistry,
        model_resolver: Optional[ModelResolver] = None,
        account_provider: Optional[AccountProvider] = None,
    ):
        self.registry = registry
        self.model_resolver = model_resolver or ModelResolver(registry)
        self.account_provider = account_provider

    async def create_language_model(self, value: str) -> LanguageModel:
        """Create a client for a namespace string such as "openai|gpt-4o" """
        resolution = await self.model_resolver.resolve(value, self.account_provider)
        adapter = self.registry.get_adapter_for_account(resolution.account)

        model = adapter.create_language_model(resolution.provider, resolution.account, resolution.model_id)
        logger.info("Created language model", provider=resolution.provider.id, model=resolution.model_id)
        return model

    def create_language_model_with_account(
        self,
        provider_id: str,
        account: ProviderAccountConfig,
        model_id: Optional[str] = None,
    ) -> LanguageModel:
        provider = self.registry.require_provider(provider_id)
        adapter = self.registry.require_adapter(provider_id)

        model = adapter.create_language_model(provider, account, model_id)
        logger.info("Created language model", provider=provider_id, model=model.model_id)
        return model
