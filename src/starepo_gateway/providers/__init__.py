"""
AI provider abstraction

Provider definitions, protocol adapters, language-model clients, the
registry and the namespace-based factory.
"""

from starepo_gateway.providers.base import (
    AIModel,
    AuthType,
    ModelCapabilities,
    ModelValidation,
    ProviderAccountConfig,
    ProviderDefinition,
    ProviderProtocol,
    ProxyConfig,
)
from starepo_gateway.providers.client import GenerationResult, LanguageModel
from starepo_gateway.providers.definitions import BUILTIN_PROVIDERS
from starepo_gateway.providers.factory import ProviderFactory
from starepo_gateway.providers.namespace import (
    ModelNamespace,
    ModelResolver,
    format_model_namespace,
    parse_model_namespace,
)
from starepo_gateway.providers.registry import ProviderRegistry, create_provider_registry

__all__ = [
    "AIModel",
    "AuthType",
    "BUILTIN_PROVIDERS",
    "GenerationResult",
    "LanguageModel",
    "ModelCapabilities",
    "ModelNamespace",
    "ModelResolver",
    "ModelValidation",
    "ProviderAccountConfig",
    "ProviderDefinition",
    "ProviderFactory",
    "ProviderProtocol",
    "ProviderRegistry",
    "ProxyConfig",
    "create_provider_registry",
    "format_model_namespace",
    "parse_model_namespace",
]
