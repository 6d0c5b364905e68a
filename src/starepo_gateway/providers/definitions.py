"""
Built-in Provider Definitions

The catalogue of vendors the gateway knows about out of the box.
"""

from typing import Dict, List

from starepo_gateway.providers.base import (
    AuthConfig,
    AuthType,
    HealthCheck,
    ModelValidation,
    ProviderCapabilities,
    ProviderDefaults,
    ProviderDefinition,
    ProviderDisplay,
    ProviderProtocol,
    ValidationRules,
)

ANTHROPIC_VERSION = "2023-06-01"


OPENAI_PROVIDER = ProviderDefinition(
    id="openai",
    protocol=ProviderProtocol.OPENAI_COMPATIBLE,
    display=ProviderDisplay(
        name="OpenAI",
        description="GPT models from OpenAI",
        icon="openai",
        website="https://openai.com",
        docs_url="https://platform.openai.com/docs",
    ),
    capabilities=ProviderCapabilities(tools=True, json_mode=True, vision=True, model_listing=True),
    auth=AuthConfig(type=AuthType.BEARER_TOKEN, key_header="Authorization"),
    defaults=ProviderDefaults(
        base_url="https://api.openai.com/v1",
        models=["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo"],
        recommended_model="gpt-4o",
        max_tokens=4096,
        temperature=0.7,
    ),
    validation=ValidationRules(
        api_key_required=True,
        supports_model_listing=True,
        model_validation=ModelValidation.STRICT,
    ),
    health_check=HealthCheck(endpoint="/models", method="GET", expected_status=200),
)

ANTHROPIC_PROVIDER = ProviderDefinition(
    id="anthropic",
    protocol=ProviderProtocol.ANTHROPIC,
    display=ProviderDisplay(
        name="Anthropic",
        description="Claude models from Anthropic",
        icon="anthropic",
        website="https://www.anthropic.com",
        docs_url="https://docs.anthropic.com",
    ),
    capabilities=ProviderCapabilities(tools=True, vision=True, top_p=True),
    auth=AuthConfig(
        type=AuthType.API_KEY_HEADER,
        key_header="x-api-key",
        custom_headers={"anthropic-version": ANTHROPIC_VERSION},
    ),
    defaults=ProviderDefaults(
        base_url="https://api.anthropic.com",
        models=[
            "claude-3-5-sonnet-20241022",
            "claude-3-5-haiku-20241022",
            "claude-3-opus-20240229",
            "claude-3-sonnet-20240229",
            "claude-3-haiku-20240307",
        ],
        recommended_model="claude-3-5-sonnet-20241022",
        max_tokens=4096,
        temperature=0.7,
    ),
    validation=ValidationRules(
        api_key_required=True,
        supports_model_listing=False,
        model_validation=ModelValidation.LENIENT,
    ),
    health_check=HealthCheck(endpoint="/v1/models", method="GET", expected_status=200),
)

DEEPSEEK_PROVIDER = ProviderDefinition(
    id="deepseek",
    protocol=ProviderProtocol.OPENAI_COMPATIBLE,
    display=ProviderDisplay(
        name="DeepSeek",
        description="DeepSeek chat and coder models",
        icon="deepseek",
        website="https://www.deepseek.com",
        docs_url="https://api-docs.deepseek.com",
    ),
    capabilities=ProviderCapabilities(tools=True, json_mode=True),
    auth=AuthConfig(type=AuthType.BEARER_TOKEN, key_header="Authorization"),
    defaults=ProviderDefaults(
        base_url="https://api.deepseek.com",
        models=["deepseek-chat", "deepseek-coder"],
        recommended_model="deepseek-chat",
        max_tokens=4096,
        temperature=0.7,
    ),
    validation=ValidationRules(
        api_key_required=True,
        supports_model_listing=False,
        model_validation=ModelValidation.LENIENT,
    ),
)

OLLAMA_PROVIDER = ProviderDefinition(
    id="ollama",
    protocol=ProviderProtocol.OLLAMA,
    display=ProviderDisplay(
        name="Ollama",
        description="Local models served by Ollama",
        icon="ollama",
        website="https://ollama.com",
        docs_url="https://github.com/ollama/ollama/blob/main/docs/api.md",
    ),
    capabilities=ProviderCapabilities(model_listing=True),
    auth=AuthConfig(type=AuthType.NO_AUTH),
    defaults=ProviderDefaults(
        base_url="http://localhost:11434",
        models=["llama2", "codellama", "mistral", "vicuna"],
        recommended_model="llama2",
        max_tokens=2048,
        temperature=0.7,
    ),
    validation=ValidationRules(
        api_key_required=False,
        supports_model_listing=True,
        model_validation=ModelValidation.NONE,
    ),
    health_check=HealthCheck(endpoint="/api/tags", method="GET", expected_status=200),
)

CUSTOM_OPENAI_PROVIDER = ProviderDefinition(
    id="custom_openai",
    protocol=ProviderProtocol.OPENAI_COMPATIBLE,
    display=ProviderDisplay(
        name="Custom OpenAI-compatible",
        description="Any endpoint speaking the OpenAI chat completions API",
    ),
    capabilities=ProviderCapabilities(model_listing=True),
    auth=AuthConfig(type=AuthType.BEARER_TOKEN, key_header="Authorization"),
    defaults=ProviderDefaults(models=[]),
    validation=ValidationRules(
        base_url_required=True,
        api_key_required=False,
        supports_model_listing=True,
        model_validation=ModelValidation.LENIENT,
    ),
    health_check=HealthCheck(endpoint="/models", method="GET", expected_status=200),
)

CUSTOM_ANTHROPIC_PROVIDER = ProviderDefinition(
    id="custom_anthropic",
    protocol=ProviderProtocol.ANTHROPIC,
    display=ProviderDisplay(
        name="Custom Anthropic-compatible",
        description="Any endpoint speaking the Anthropic messages API",
    ),
    auth=AuthConfig(
        type=AuthType.API_KEY_HEADER,
        key_header="x-api-key",
        custom_headers={"anthropic-version": ANTHROPIC_VERSION},
    ),
    defaults=ProviderDefaults(models=[]),
    validation=ValidationRules(
        base_url_required=True,
        api_key_required=False,
        supports_model_listing=False,
        model_validation=ModelValidation.LENIENT,
    ),
)

BUILTIN_PROVIDERS: List[ProviderDefinition] = [
    OPENAI_PROVIDER,
    ANTHROPIC_PROVIDER,
    DEEPSEEK_PROVIDER,
    OLLAMA_PROVIDER,
    CUSTOM_OPENAI_PROVIDER,
    CUSTOM_ANTHROPIC_PROVIDER,
]

BUILTIN_PROVIDERS_BY_ID: Dict[str, ProviderDefinition] = {p.id: p for p in BUILTIN_PROVIDERS}
