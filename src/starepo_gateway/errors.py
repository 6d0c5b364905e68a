"""
Gateway error taxonomy

Every failure surfaced by the gateway derives from GatewayError so callers
can catch one type and still branch on the concrete category.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors"""

    def __init__(self, message: str, provider_id: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider_id = provider_id
        self.code = code


class ConfigurationError(GatewayError):
    """Missing or invalid provider/account configuration"""


class ProviderNotFoundError(ConfigurationError):
    """No provider definition registered under the given id"""

    def __init__(self, provider_id: str):
        super().__init__(f"Provider not found: {provider_id}", provider_id=provider_id)


class AdapterNotFoundError(ConfigurationError):
    """No adapter registered for the given provider or protocol"""

    def __init__(self, provider_id: str):
        super().__init__(f"Adapter not found for provider: {provider_id}", provider_id=provider_id)


class AuthenticationError(GatewayError):
    """Missing or rejected API key"""


class NetworkError(GatewayError):
    """Timeout, DNS or connection failure; retryable"""


class RateLimitExceededError(GatewayError):
    """Local fixed-window limit reached"""

    def __init__(self, provider_id: str, retry_after: int):
        super().__init__(
            f"Rate limit exceeded for provider {provider_id}. Please wait {retry_after}s",
            provider_id=provider_id,
            code="RATE_LIMIT_EXCEEDED",
        )
        self.retry_after = retry_after


class VendorError(GatewayError):
    """Non-2xx response from a vendor API"""

    def __init__(self, status_code: int, message: str, provider_id: Optional[str] = None):
        super().__init__(f"HTTP {status_code}: {message}", provider_id=provider_id, code=str(status_code))
        self.status_code = status_code
        self.vendor_message = message


class ResponseParseError(GatewayError):
    """Vendor payload did not have the expected shape"""
