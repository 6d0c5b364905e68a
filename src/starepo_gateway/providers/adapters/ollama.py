"""Ollama adapter

Chat goes through Ollama's OpenAI-compatible endpoint at <root>/v1; model
listing uses the native <root>/api/tags.
"""

from starepo_gateway.providers.adapters.base import ProviderAdapter, ensure_path_suffix, strip_path_suffix
from starepo_gateway.providers.base import ProviderAccountConfig, ProviderDefinition, ProviderProtocol
from starepo_gateway.providers.client import OpenAIChatModel


class OllamaAdapter(ProviderAdapter):
    protocol = ProviderProtocol.OLLAMA
    model_class = OpenAIChatModel

    def resolve_base_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        return ensure_path_suffix(self.resolve_root_url(definition, account), "/v1")

    def model_listing_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        root = strip_path_suffix(self.resolve_root_url(definition, account), "/v1")
        return f"{root}/api/tags"

    def health_check_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        root = strip_path_suffix(self.resolve_root_url(definition, account), "/v1")
        endpoint = definition.health_check.endpoint if definition.health_check else ""
        return f"{root}{endpoint}"
