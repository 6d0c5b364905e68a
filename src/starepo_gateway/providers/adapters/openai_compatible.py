"""OpenAI-compatible adapter (OpenAI, DeepSeek, custom endpoints)"""

from starepo_gateway.providers.adapters.base import ProviderAdapter, ensure_path_suffix
from starepo_gateway.providers.base import ProviderAccountConfig, ProviderDefinition, ProviderProtocol
from starepo_gateway.providers.client import OpenAIChatModel


class OpenAICompatibleAdapter(ProviderAdapter):
    """Speaks /chat/completions under <base>/v1

    The /v1 segment is appended once, so https://api.deepseek.com and
    https://api.deepseek.com/v1 resolve to the same endpoint.
    """

    protocol = ProviderProtocol.OPENAI_COMPATIBLE
    model_class = OpenAIChatModel

    def resolve_base_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        return ensure_path_suffix(self.resolve_root_url(definition, account), "/v1")

    def model_listing_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        return f"{self.resolve_base_url(definition, account)}/models"

    def health_check_url(self, definition: ProviderDefinition, account: ProviderAccountConfig) -> str:
        # declared endpoints are relative to the versioned base
        endpoint = definition.health_check.endpoint if definition.health_check else ""
        return f"{self.resolve_base_url(definition, account)}{endpoint}"
