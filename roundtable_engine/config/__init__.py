"""Configuration loading and validation."""

from .models import (
    SystemConfig,
    CharacterProfile,
    ApiCredentials,
    ProviderConfig,
    ZAIProviderConfig,
    OpenAIProviderConfig,
    AnthropicProviderConfig,
    CustomProviderConfig,
    OllamaProviderConfig,
    RepetitionConfig,
    DEMO_ZAI_API_KEY,
    DEMO_OPENAI_API_KEY,
    is_real_api_key,
    parse_provider_config,
)
from .loader import ConfigLoader, ConfigLoadError, ConfigValidationError

__all__ = [
    "SystemConfig",
    "CharacterProfile",
    "ApiCredentials",
    "ProviderConfig",
    "ZAIProviderConfig",
    "OpenAIProviderConfig",
    "AnthropicProviderConfig",
    "CustomProviderConfig",
    "OllamaProviderConfig",
    "RepetitionConfig",
    "DEMO_ZAI_API_KEY",
    "DEMO_OPENAI_API_KEY",
    "is_real_api_key",
    "parse_provider_config",
    "ConfigLoader",
    "ConfigLoadError",
    "ConfigValidationError",
]
