"""
Unit tests for protocol adapters
"""
import pytest

from starepo_gateway.errors import AuthenticationError, ConfigurationError
from starepo_gateway.middleware.chain import MiddlewareChain
from starepo_gateway.providers.adapters import (
    AnthropicAdapter,
    OllamaAdapter,
    OpenAICompatibleAdapter,
    build_auth_headers,
)
from starepo_gateway.providers.base import AuthConfig, AuthType, ProviderAccountConfig, ProxyConfig
from starepo_gateway.providers.client import AnthropicChatModel, OpenAIChatModel
from starepo_gateway.providers.definitions import (
    ANTHROPIC_PROVIDER,
    CUSTOM_OPENAI_PROVIDER,
    DEEPSEEK_PROVIDER,
    OLLAMA_PROVIDER,
    OPENAI_PROVIDER,
)
from starepo_gateway.runtime.connection_manager import ConnectionManager


@pytest.fixture
def connection_manager():
    return ConnectionManager()


@pytest.fixture
def openai_adapter(connection_manager):
    return OpenAICompatibleAdapter(connection_manager, MiddlewareChain())


@pytest.fixture
def anthropic_adapter(connection_manager):
    return AnthropicAdapter(connection_manager, MiddlewareChain())


@pytest.fixture
def ollama_adapter(connection_manager):
    return OllamaAdapter(connection_manager, MiddlewareChain())


class TestAuthHeaders:
    """Test the auth header rules for each auth type"""

    def test_bearer_token(self):
        auth = AuthConfig(type=AuthType.BEARER_TOKEN)
        assert build_auth_headers(auth, "k1") == {"Authorization": "Bearer k1"}

    def test_api_key_header_defaults_to_x_api_key(self):
        auth = AuthConfig(type=AuthType.API_KEY_HEADER)
        assert build_auth_headers(auth, "k1") == {"x-api-key": "k1"}

    def test_api_key_header_uses_configured_name(self):
        auth = AuthConfig(type=AuthType.API_KEY_HEADER, key_header="api-key")
        assert build_auth_headers(auth, "k1") == {"api-key": "k1"}

    def test_custom_header_requires_name(self):
        assert build_auth_headers(AuthConfig(type=AuthType.CUSTOM_HEADER), "k1") == {}
        auth = AuthConfig(type=AuthType.CUSTOM_HEADER, key_header="X-Token")
        assert build_auth_headers(auth, "k1") == {"X-Token": "k1"}

    def test_no_auth_and_missing_key(self):
        assert build_auth_headers(AuthConfig(type=AuthType.NO_AUTH), "k1") == {}
        assert build_auth_headers(AuthConfig(type=AuthType.BEARER_TOKEN), None) == {}


class TestDefaultModelId:
    """Test model id precedence"""

    def test_requested_wins(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="openai", default_model="gpt-4")
        assert openai_adapter.get_default_model_id(OPENAI_PROVIDER, account, "gpt-4o-mini") == "gpt-4o-mini"

    def test_account_default_then_recommended(self, openai_adapter):
        with_default = ProviderAccountConfig(provider_id="openai", default_model="gpt-4")
        without_default = ProviderAccountConfig(provider_id="openai")

        assert openai_adapter.get_default_model_id(OPENAI_PROVIDER, with_default) == "gpt-4"
        assert openai_adapter.get_default_model_id(OPENAI_PROVIDER, without_default) == "gpt-4o"

    def test_first_declared_model(self, openai_adapter):
        definition = DEEPSEEK_PROVIDER.model_copy(
            update={"defaults": DEEPSEEK_PROVIDER.defaults.model_copy(update={"recommended_model": None})}
        )
        account = ProviderAccountConfig(provider_id="deepseek")
        assert openai_adapter.get_default_model_id(definition, account) == "deepseek-chat"

    def test_no_model_fails_closed(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="custom_openai", base_url="https://llm.local/v1")
        with pytest.raises(ConfigurationError, match="No model configured"):
            openai_adapter.get_default_model_id(CUSTOM_OPENAI_PROVIDER, account)


class TestBaseUrlResolution:
    """Test base URL resolution per protocol"""

    def test_openai_keeps_existing_v1(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="openai", base_url="https://proxy.example.com/v1///")

        assert openai_adapter.resolve_base_url(OPENAI_PROVIDER, account) == "https://proxy.example.com/v1"
        assert openai_adapter.model_listing_url(OPENAI_PROVIDER, account) == "https://proxy.example.com/v1/models"

    def test_openai_default_base(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="openai")
        assert openai_adapter.resolve_base_url(OPENAI_PROVIDER, account) == "https://api.openai.com/v1"

    def test_openai_compatible_appends_v1_once(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="deepseek")
        custom = ProviderAccountConfig(provider_id="custom_openai", base_url="https://llm.local/")

        assert openai_adapter.resolve_base_url(DEEPSEEK_PROVIDER, account) == "https://api.deepseek.com/v1"
        assert openai_adapter.model_listing_url(DEEPSEEK_PROVIDER, account) == "https://api.deepseek.com/v1/models"
        assert openai_adapter.health_check_url(CUSTOM_OPENAI_PROVIDER, custom) == "https://llm.local/v1/models"

    def test_anthropic_appends_v1_once(self, anthropic_adapter):
        default = ProviderAccountConfig(provider_id="anthropic")
        custom = ProviderAccountConfig(provider_id="anthropic", base_url="https://gw.example.com/v1/")

        assert anthropic_adapter.resolve_base_url(ANTHROPIC_PROVIDER, default) == "https://api.anthropic.com/v1"
        assert anthropic_adapter.resolve_base_url(ANTHROPIC_PROVIDER, custom) == "https://gw.example.com/v1"
        assert anthropic_adapter.health_check_url(ANTHROPIC_PROVIDER, custom) == "https://gw.example.com/v1/models"

    def test_ollama_chat_and_listing_urls(self, ollama_adapter):
        account = ProviderAccountConfig(provider_id="ollama", base_url="http://gpu-box:11434/")

        assert ollama_adapter.resolve_base_url(OLLAMA_PROVIDER, account) == "http://gpu-box:11434/v1"
        assert ollama_adapter.model_listing_url(OLLAMA_PROVIDER, account) == "http://gpu-box:11434/api/tags"
        assert ollama_adapter.health_check_url(OLLAMA_PROVIDER, account) == "http://gpu-box:11434/api/tags"

    def test_missing_base_url_fails_closed(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="custom_openai")
        with pytest.raises(ConfigurationError, match="Base URL is required"):
            openai_adapter.resolve_base_url(CUSTOM_OPENAI_PROVIDER, account)

    def test_account_rejects_non_http_url(self):
        with pytest.raises(ValueError, match="http or https"):
            ProviderAccountConfig(provider_id="openai", base_url="ftp://files.example.com")


class TestHeaderMerge:
    """Test header merge order and filtering"""

    def test_provider_then_account_then_auth(self, anthropic_adapter):
        account = ProviderAccountConfig(
            provider_id="anthropic",
            api_key="ak-1",
            custom_headers={"anthropic-version": "2024-01-01", "X-Trace": "on"},
        )

        headers = anthropic_adapter.build_headers(ANTHROPIC_PROVIDER, account)

        assert headers == {"anthropic-version": "2024-01-01", "X-Trace": "on", "x-api-key": "ak-1"}

    def test_auth_header_wins_over_account_header(self, anthropic_adapter):
        account = ProviderAccountConfig(
            provider_id="anthropic",
            api_key="real-key",
            custom_headers={"x-api-key": "spoofed"},
        )

        assert anthropic_adapter.build_headers(ANTHROPIC_PROVIDER, account)["x-api-key"] == "real-key"

    def test_account_cannot_inject_authorization(self, openai_adapter):
        account = ProviderAccountConfig(
            provider_id="deepseek",
            custom_headers={"Authorization": "Bearer stolen", "X-Forwarded-For": "1.2.3.4", "Cookie": "a=b"},
        )

        headers = openai_adapter.build_headers(DEEPSEEK_PROVIDER, account)

        assert headers == {}


class TestCreateLanguageModel:
    """Test client construction"""

    def test_openai_client_bound_to_account(self, openai_adapter, connection_manager):
        account = ProviderAccountConfig(provider_id="openai", api_key="sk-abc", timeout=45, strict_tls=False)

        model = openai_adapter.create_language_model(OPENAI_PROVIDER, account)

        assert isinstance(model, OpenAIChatModel)
        assert model.model_id == "gpt-4o"
        assert model.base_url == "https://api.openai.com/v1"
        assert model.headers["Authorization"] == "Bearer sk-abc"
        assert model.timeout == 45.0
        assert connection_manager.stats["https"]["clients"] == 1

    def test_anthropic_client(self, anthropic_adapter):
        account = ProviderAccountConfig(provider_id="anthropic", api_key="ak-1")

        model = anthropic_adapter.create_language_model(ANTHROPIC_PROVIDER, account, "claude-3-opus-20240229")

        assert isinstance(model, AnthropicChatModel)
        assert model.model_id == "claude-3-opus-20240229"
        assert model.base_url == "https://api.anthropic.com/v1"

    def test_api_key_required(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="openai")
        with pytest.raises(AuthenticationError, match="API key is required"):
            openai_adapter.create_language_model(OPENAI_PROVIDER, account)

    def test_ollama_needs_no_key(self, ollama_adapter):
        model = ollama_adapter.create_language_model(OLLAMA_PROVIDER, ProviderAccountConfig(provider_id="ollama"))

        assert model.base_url == "http://localhost:11434/v1"
        assert model.model_id == "llama2"
        assert "Authorization" not in model.headers

    def test_disabled_account(self, openai_adapter):
        account = ProviderAccountConfig(provider_id="openai", api_key="sk-abc", enabled=False)
        with pytest.raises(ConfigurationError, match="disabled"):
            openai_adapter.create_language_model(OPENAI_PROVIDER, account)

    def test_unsupported_protocol(self, anthropic_adapter):
        account = ProviderAccountConfig(provider_id="openai", api_key="sk-abc")
        with pytest.raises(ConfigurationError, match="does not support"):
            anthropic_adapter.create_language_model(OPENAI_PROVIDER, account)

    def test_pool_options_follow_account(self, openai_adapter):
        account = ProviderAccountConfig(
            provider_id="openai",
            timeout=12,
            strict_tls=False,
            proxy=ProxyConfig(enabled=True, host="proxy.local", port=3128),
        )

        options = openai_adapter.pool_options(account)

        assert options.timeout == 12.0
        assert options.verify is False
        assert options.proxy == "http://proxy.local:3128"
        assert options.max_connections == 10
