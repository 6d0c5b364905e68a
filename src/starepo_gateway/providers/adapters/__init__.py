"""Protocol adapters"""

from starepo_gateway.providers.adapters.anthropic_messages import AnthropicAdapter
from starepo_gateway.providers.adapters.base import (
    ProviderAdapter,
    build_auth_headers,
    ensure_path_suffix,
    strip_trailing_slashes,
)
from starepo_gateway.providers.adapters.ollama import OllamaAdapter
from starepo_gateway.providers.adapters.openai_compatible import OpenAICompatibleAdapter

__all__ = [
    "AnthropicAdapter",
    "OllamaAdapter",
    "OpenAICompatibleAdapter",
    "ProviderAdapter",
    "build_auth_headers",
    "ensure_path_suffix",
    "strip_trailing_slashes",
]
