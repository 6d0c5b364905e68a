"""
Provider Data Model

Static provider definitions, user account configuration and the model
records exchanged between discovery, adapters and callers.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from starepo_gateway.utils.security import is_valid_base_url


class ProviderProtocol(str, Enum):
    """Wire-shape family a provider speaks"""
    OPENAI_COMPATIBLE = "openai_compatible"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


class AuthType(str, Enum):
    """How the API key is attached to requests"""
    BEARER_TOKEN = "bearer_token"
    API_KEY_HEADER = "api_key_header"
    CUSTOM_HEADER = "custom_header"
    NO_AUTH = "no_auth"


class ModelValidation(str, Enum):
    """How strictly a model list payload is checked"""
    STRICT = "strict"
    LENIENT = "lenient"
    NONE = "none"


class ProviderDisplay(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    icon: Optional[str] = None
    website: Optional[str] = None
    docs_url: Optional[str] = None


class ProviderCapabilities(BaseModel):
    """Capabilities declared by a provider"""
    model_config = ConfigDict(frozen=True)

    chat: bool = True
    streaming: bool = True
    tools: bool = False
    json_mode: bool = False
    vision: bool = False
    model_listing: bool = False
    system_prompt: bool = True
    temperature: bool = True
    top_p: bool = True
    max_tokens: bool = True


class AuthConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AuthType
    key_header: Optional[str] = None
    custom_headers: Dict[str, str] = Field(default_factory=dict)


class ProviderDefaults(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: Optional[str] = None
    models: List[str] = Field(default_factory=list)
    recommended_model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None


class ValidationRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url_required: bool = False
    api_key_required: bool = True
    supports_model_listing: bool = False
    model_validation: ModelValidation = ModelValidation.LENIENT


class HealthCheck(BaseModel):
    """Lightweight probe run before a connection test lists models"""
    model_config = ConfigDict(frozen=True)

    endpoint: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    expected_status: int = 200

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        method = v.upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported health check method: {v}")
        return method


class ProviderDefinition(BaseModel):
    """Immutable vendor metadata, created once at startup"""
    model_config = ConfigDict(frozen=True)

    id: str
    protocol: ProviderProtocol
    display: ProviderDisplay
    capabilities: ProviderCapabilities = Field(default_factory=ProviderCapabilities)
    auth: AuthConfig
    defaults: ProviderDefaults = Field(default_factory=ProviderDefaults)
    validation: ValidationRules = Field(default_factory=ValidationRules)
    health_check: Optional[HealthCheck] = None


class ProxyConfig(BaseModel):
    enabled: bool = False
    host: str = ""
    port: int = 0
    protocol: str = "http"

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        if v not in ("http", "https", "socks5"):
            raise ValueError(f"Unsupported proxy protocol: {v}")
        return v


class ProviderAccountConfig(BaseModel):
    """A user's configuration for one provider

    The API key is excluded from repr and never takes part in cache keys.
    """

    provider_id: str
    protocol: Optional[ProviderProtocol] = None
    name: Optional[str] = None
    logo: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = Field(default=None, repr=False)
    custom_headers: Dict[str, str] = Field(default_factory=dict)
    timeout: int = Field(default=30, ge=1, le=300)
    retries: int = Field(default=3, ge=0, le=10)
    proxy: Optional[ProxyConfig] = None
    strict_tls: bool = True
    default_model: Optional[str] = None
    enabled: bool = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if v in (None, ""):
            return None
        if not is_valid_base_url(v):
            raise ValueError(f"Base URL must be an http or https URL: {v}")
        return v

    @property
    def proxy_url(self) -> Optional[str]:
        if not self.proxy or not self.proxy.enabled or not self.proxy.host:
            return None
        return f"{self.proxy.protocol}://{self.proxy.host}:{self.proxy.port}"


class ModelCapabilities(BaseModel):
    max_tokens: Optional[int] = None
    max_input_tokens: Optional[int] = None
    max_output_tokens: Optional[int] = None
    supports_streaming: bool = True
    supports_tools: bool = False
    supports_json_mode: bool = False
    supports_vision: bool = False
    supports_system_prompt: bool = True


class AIModel(BaseModel):
    """A model offered by a provider"""

    id: str
    display_name: str
    description: Optional[str] = None
    provider_id: str
    capabilities: ModelCapabilities = Field(default_factory=ModelCapabilities)
    tags: List[str] = Field(default_factory=list)
    deprecated: bool = False
