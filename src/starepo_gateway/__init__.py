"""
Starepo AI Provider Gateway

Uniform, resilient access to OpenAI-compatible, Anthropic and Ollama model
vendors: provider adapters, a middleware pipeline, cached model discovery
and pooled HTTP connections.
"""

from starepo_gateway.errors import (
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    NetworkError,
    RateLimitExceededError,
    ResponseParseError,
    VendorError,
)
from starepo_gateway.gateway import Gateway

__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "Gateway",
    "GatewayError",
    "NetworkError",
    "RateLimitExceededError",
    "ResponseParseError",
    "VendorError",
    "__version__",
]
