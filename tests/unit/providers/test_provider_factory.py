"""
Unit tests for the provider factory
"""
from unittest.mock import AsyncMock

import pytest

from starepo_gateway.errors import ProviderNotFoundError
from starepo_gateway.middleware.chain import MiddlewareChain
from starepo_gateway.providers.base import ProviderAccountConfig, ProviderProtocol
from starepo_gateway.providers.client import AnthropicChatModel, OpenAIChatModel
from starepo_gateway.providers.factory import ProviderFactory
from starepo_gateway.providers.namespace import ModelResolver
from starepo_gateway.providers.registry import create_provider_registry
from starepo_gateway.runtime.connection_manager import ConnectionManager


@pytest.fixture
def registry():
    return create_provider_registry(ConnectionManager(), MiddlewareChain())


class TestProviderFactory:
    """Test language model creation"""

    @pytest.mark.asyncio
    async def test_create_from_namespace(self, registry):
        account = ProviderAccountConfig(provider_id="anthropic", api_key="ak-1")
        factory = ProviderFactory(registry, account_provider=AsyncMock(return_value=account))

        model = await factory.create_language_model("anthropic|claude-3-5-haiku-20241022")

        assert isinstance(model, AnthropicChatModel)
        assert model.provider_id == "anthropic"
        assert model.model_id == "claude-3-5-haiku-20241022"

    @pytest.mark.asyncio
    async def test_create_uses_protocol_override(self, registry):
        account = ProviderAccountConfig(
            provider_id="custom_anthropic",
            base_url="https://llm.internal",
            protocol=ProviderProtocol.OPENAI_COMPATIBLE,
            default_model="house-model",
        )
        factory = ProviderFactory(registry, account_provider=AsyncMock(return_value=account))

        model = await factory.create_language_model("custom_anthropic|")

        assert isinstance(model, OpenAIChatModel)
        assert model.base_url == "https://llm.internal/v1"
        assert model.model_id == "house-model"

    @pytest.mark.asyncio
    async def test_custom_resolver(self, registry):
        resolver = ModelResolver(registry, fallback_provider="ollama")
        factory = ProviderFactory(registry, model_resolver=resolver)

        model = await factory.create_language_model("mistral")

        assert model.provider_id == "ollama"
        assert model.model_id == "mistral"

    def test_create_with_account(self, registry):
        factory = ProviderFactory(registry)
        account = ProviderAccountConfig(provider_id="deepseek", api_key="ds-1")

        model = factory.create_language_model_with_account("deepseek", account)

        assert isinstance(model, OpenAIChatModel)
        assert model.base_url == "https://api.deepseek.com/v1"
        assert model.model_id == "deepseek-chat"

    def test_create_with_account_unknown_provider(self, registry):
        factory = ProviderFactory(registry)
        with pytest.raises(ProviderNotFoundError):
            factory.create_language_model_with_account("mystery", ProviderAccountConfig(provider_id="mystery"))
