"""
Model Namespaces

A namespace string names a model together with its provider:
"openai|gpt-4o", "ollama|llama3:8b" or a bare "gpt-4o". ModelResolver turns
one into a concrete (definition, account, model id) triple.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from starepo_gateway.errors import ConfigurationError, ProviderNotFoundError
from starepo_gateway.providers.base import ModelValidation, ProviderAccountConfig, ProviderDefinition
from starepo_gateway.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)

AccountProvider = Callable[[str], Awaitable[Optional[ProviderAccountConfig]]]


@dataclass(frozen=True)
class ModelNamespace:
    provider: str
    model: str
    raw: str
    namespace: Optional[str] = None


def parse_model_namespace(value: str) -> ModelNamespace:
    """Split "provider|model"; the model id is kept whole, "ns:" prefix included"""
    parts = value.split("|")
    if len(parts) == 1:
        return ModelNamespace(provider="", model=parts[0], raw=value)
    if len(parts) > 2:
        raise ConfigurationError(f"Invalid model namespace format: {value}")

    provider, model = parts
    namespace = model.split(":", 1)[0] if ":" in model else None
    return ModelNamespace(provider=provider, model=model, raw=value, namespace=namespace)


def format_model_namespace(namespace: ModelNamespace) -> str:
    if not namespace.provider:
        return namespace.model
    model = namespace.model
    if namespace.namespace and not model.startswith(f"{namespace.namespace}:"):
        model = f"{namespace.namespace}:{model}"
    return f"{namespace.provider}|{model}"


def is_valid_model_namespace(value: str) -> bool:
    try:
        parse_model_namespace(value)
    except ConfigurationError:
        return False
    return True


@dataclass(frozen=True)
class ModelResolution:
    provider: ProviderDefinition
    account: ProviderAccountConfig
    model_id: str
    namespace: ModelNamespace


class ModelResolver:
    """Resolves namespace strings against the registry and account storage

    Args:
        registry: Source of provider definitions
        fallback_provider: Provider used when the string names none
        fallback_model: Model used when nothing else yields one
        strict_mode: Require a configured account instead of a default one
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        fallback_provider: Optional[str] = None,
        fallback_model: Optional[str] = None,
        strict_mode: bool = False,
    ):
        self.registry = registry
        self.fallback_provider = fallback_provider
        self.fallback_model = fallback_model
        self.strict_mode = strict_mode

    async def resolve(self, value: str, account_provider: Optional[AccountProvider] = None) -> ModelResolution:
        namespace = parse_model_namespace(value)

        provider_id = namespace.provider or self.fallback_provider
        if not provider_id:
            raise ConfigurationError(f"Cannot determine provider for model: {value}")

        provider = self.registry.get_provider(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)

        account = await account_provider(provider_id) if account_provider else None
        if account is None:
            if self.strict_mode:
                raise ConfigurationError(
                    f"No account configured for provider: {provider_id}", provider_id=provider_id
                )
            account = self.create_default_account(provider)

        model_id = self._resolve_model_id(namespace, provider, account)
        if not self.validate_model(model_id, provider):
            if provider.validation.model_validation == ModelValidation.STRICT:
                raise ConfigurationError(
                    f"Model {model_id} is not offered by provider {provider.id}", provider_id=provider.id
                )
            logger.warning("Model not in declared list", provider=provider_id, model=model_id)
        logger.debug("Resolved model", input=value, provider=provider_id, model=model_id)
        return ModelResolution(provider=provider, account=account, model_id=model_id, namespace=namespace)

    def _resolve_model_id(
        self,
        namespace: ModelNamespace,
        provider: ProviderDefinition,
        account: ProviderAccountConfig,
    ) -> str:
        model_id = (
            namespace.model
            or account.default_model
            or provider.defaults.recommended_model
            or (provider.defaults.models[0] if provider.defaults.models else None)
            or self.fallback_model
        )
        if not model_id:
            raise ConfigurationError(f"Cannot determine model ID for provider: {provider.id}", provider_id=provider.id)
        return model_id

    @staticmethod
    def create_default_account(provider: ProviderDefinition) -> ProviderAccountConfig:
        return ProviderAccountConfig(provider_id=provider.id, base_url=provider.defaults.base_url)

    @staticmethod
    def validate_model(model_id: str, provider: ProviderDefinition) -> bool:
        """Whether model_id is acceptable without asking the vendor"""
        if provider.validation.supports_model_listing:
            return True
        declared = provider.defaults.models
        if provider.validation.model_validation == ModelValidation.STRICT:
            return model_id in declared
        if provider.validation.model_validation == ModelValidation.LENIENT:
            return not declared or model_id in declared
        return True
