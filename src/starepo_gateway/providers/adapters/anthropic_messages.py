"""Anthropic messages adapter"""

from starepo_gateway.providers.adapters.base import ProviderAdapter, ensure_path_suffix, strip_path_suffix
from starepo_gateway.providers.base import ProviderAccountConfig, ProviderDefinition, ProviderProtocol
from starepo_gateway.providers.client import AnthropicChatModel


class AnthropicAdapter(ProviderAdapter):
    protocol = ProviderProtocol.ANTHROPIC
    model_class = AnthropicChatModel

    def resolve_base_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        return ensure_path_suffix(self.resolve_root_url(definition, account), "/v1")

    def model_listing_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        return f"{self.resolve_base_url(definition, account)}/models"

    def health_check_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        # declared endpoints carry their own /v1
        root = strip_path_suffix(self.resolve_root_url(definition, account), "/v1")
        endpoint = definition.health_check.endpoint if definition.health_check else ""
        return f"{root}{endpoint}"
