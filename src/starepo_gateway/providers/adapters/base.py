"""
Base Adapter

Shared logic for turning a (ProviderDefinition, ProviderAccountConfig) pair
into a ready-to-call LanguageModel: base URL resolution, model selection,
header merging and pool option derivation. Subclasses only declare their
protocol, URL conventions and client class.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, Optional, Type

import structlog

from starepo_gateway.errors import AuthenticationError, ConfigurationError
from starepo_gateway.middleware.chain import MiddlewareChain
from starepo_gateway.providers.base import (
    AuthConfig,
    AuthType,
    ProviderAccountConfig,
    ProviderDefinition,
    ProviderProtocol,
)
from starepo_gateway.providers.client import LanguageModel
from starepo_gateway.runtime.connection_manager import ConnectionManager, PoolOptions
from starepo_gateway.utils.security import is_valid_base_url, validate_custom_headers

logger = structlog.get_logger(__name__)


def strip_trailing_slashes(url: str) -> str:
    return url.rstrip("/")


def ensure_path_suffix(url: str, suffix: str) -> str:
    """Append suffix unless url already ends with it"""
    url = strip_trailing_slashes(url)
    return url if url.endswith(suffix) else f"{url}{suffix}"


def strip_path_suffix(url: str, suffix: str) -> str:
    url = strip_trailing_slashes(url)
    return url[: -len(suffix)] if url.endswith(suffix) else url


def build_auth_headers(auth: AuthConfig, api_key: Optional[str]) -> Dict[str, str]:
    """Auth header for the given auth type; empty when there is nothing to send"""
    if not api_key:
        return {}

    if auth.type == AuthType.BEARER_TOKEN:
        return {auth.key_header or "Authorization": f"Bearer {api_key}"}
    if auth.type == AuthType.API_KEY_HEADER:
        return {auth.key_header or "x-api-key": api_key}
    if auth.type == AuthType.CUSTOM_HEADER:
        return {auth.key_header: api_key} if auth.key_header else {}
    return {}


class ProviderAdapter(ABC):
    """Maps one protocol family onto the uniform LanguageModel surface"""

    protocol: ProviderProtocol
    model_class: Type[LanguageModel]

    def __init__(self, connection_manager: ConnectionManager, middleware: MiddlewareChain):
        self.connection_manager = connection_manager
        self.middleware = middleware

    @property
    def name(self) -> str:
        return type(self).__name__

    def supports(self, definition: ProviderDefinition) -> bool:
        return definition.protocol == self.protocol

    def get_default_model_id(
        self,
        definition: ProviderDefinition,
        account: ProviderAccountConfig,
        requested: Optional[str] = None,
    ) -> str:
        """Pick the model id: requested, account default, recommended, first declared"""
        model_id = (
            requested
            or account.default_model
            or definition.defaults.recommended_model
            or (definition.defaults.models[0] if definition.defaults.models else None)
        )
        if not model_id:
            raise ConfigurationError(
                f"No model configured for provider {definition.id}", provider_id=definition.id
            )
        return model_id

    def resolve_root_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        """Account override else provider default, without trailing slashes"""
        base_url = account.base_url or definition.defaults.base_url
        if not base_url:
            raise ConfigurationError(
                f"Base URL is required for provider {definition.id}", provider_id=definition.id
            )
        if not is_valid_base_url(base_url):
            raise ConfigurationError(
                f"Base URL must be an http or https URL: {base_url}", provider_id=definition.id
            )
        return strip_trailing_slashes(base_url)

    def resolve_base_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        """URL the chat client is bound to"""
        return self.resolve_root_url(definition, account)

    @abstractmethod
    def model_listing_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        """Endpoint that lists the provider's models"""
        pass

    def health_check_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        """Declared health check endpoint joined to the root URL"""
        endpoint = definition.health_check.endpoint if definition.health_check else ""
        return f"{self.resolve_root_url(definition, account)}{endpoint}"

    def build_headers(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> Dict[str, str]:
        """Provider headers, then account headers, then the auth header"""
        headers: Dict[str, str] = dict(definition.auth.custom_headers)
        headers.update(validate_custom_headers(account.custom_headers))
        headers.update(build_auth_headers(definition.auth, account.api_key))
        return headers

    def pool_options(self, account: ProviderAccountConfig) -> PoolOptions:
        return replace(
            self.connection_manager.default_options,
            timeout=float(account.timeout),
            verify=account.strict_tls,
            proxy=account.proxy_url,
        )

    def create_language_model(
        self,
        definition: ProviderDefinition,
        account: ProviderAccountConfig,
        model_id: Optional[str] = None,
    ) -> LanguageModel:
        """Build a client bound to the resolved URL, headers and model"""
        if not self.supports(definition) and account.protocol != self.protocol:
            raise ConfigurationError(
                f"{self.name} does not support provider {definition.id}", provider_id=definition.id
            )
        if not account.enabled:
            raise ConfigurationError(f"Account for provider {definition.id} is disabled", provider_id=definition.id)
        if definition.validation.api_key_required and not account.api_key:
            raise AuthenticationError(f"API key is required for provider {definition.id}", provider_id=definition.id)

        base_url = self.resolve_base_url(definition, account)
        resolved_model = self.get_default_model_id(definition, account, model_id)
        http_client = self.connection_manager.get_client(base_url, self.pool_options(account))

        logger.debug(
            "Creating language model",
            adapter=self.name,
            provider=definition.id,
            model=resolved_model,
            base_url=base_url,
        )
        return self.model_class(
            provider_id=definition.id,
            model_id=resolved_model,
            base_url=base_url,
            headers=self.build_headers(definition, account),
            http_client=http_client,
            middleware=self.middleware,
            api_key=account.api_key,
            timeout=float(account.timeout),
            default_max_tokens=definition.defaults.max_tokens,
            default_temperature=definition.defaults.temperature,
        )
