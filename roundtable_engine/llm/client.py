"""LLM client factory."""

import random
from typing import TYPE_CHECKING, Optional

import httpx

from roundtable_engine.config.models import is_real_api_key
from .base import BaseLLMClient
from .anthropic import AnthropicClient
from .ollama import OllamaClient
from .openai_compatible import CustomAPIClient, OpenAIClient, ZAIClient

if TYPE_CHECKING:
    from roundtable_engine.config.models import ApiCredentials, ProviderConfig, ProvidersConfig

SUPPORTED_PROVIDERS = ("zai", "openai", "anthropic", "custom", "ollama")


def create_llm_client(
    config: "ProviderConfig",
    credentials: "ApiCredentials",
    endpoints: "ProvidersConfig",
    temperature: float = 0.7,
    max_tokens: int = 2048,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    rng: Optional[random.Random] = None,
) -> BaseLLMClient:
    """
    Factory function to create the client for a character's provider config.

    Placeholder (demo) keys are never sent over the wire: a provider whose
    only key is a placeholder gets no key and fails fast with LLMError.

    Args:
        config: Validated provider configuration
        credentials: Deployment-wide API credentials
        endpoints: Endpoint defaults per provider
        temperature: Default temperature when the config sets none
        max_tokens: Default max tokens when the config sets none
        transport: Optional httpx transport (tests)
        rng: Random source for Ollama model selection

    Returns:
        Provider-specific LLM client instance

    Raises:
        ValueError: If provider is unknown
    """
    provider = config.provider.lower()
    temperature = config.temperature if config.temperature is not None else temperature
    max_tokens = config.max_tokens if config.max_tokens is not None else max_tokens

    if provider == "ollama":
        endpoint = endpoints.ollama
        return OllamaClient(
            base_url=config.base_url or credentials.ollama_base_url or endpoint.base_url,
            model=config.model or credentials.ollama_model or endpoint.model,
            timeout=endpoint.timeout_seconds,
            temperature=temperature,
            max_tokens=max_tokens,
            transport=transport,
            rng=rng,
        )

    if provider == "custom":
        return CustomAPIClient(
            base_url=config.base_url or "",
            model=config.model,
            timeout=endpoints.custom_timeout_seconds,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=config.api_key,
            transport=transport,
        )

    client_classes = {
        "zai": ZAIClient,
        "openai": OpenAIClient,
        "anthropic": AnthropicClient,
    }
    if provider not in client_classes:
        raise ValueError(
            f"Unknown LLM provider: '{provider}'. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    endpoint = getattr(endpoints, provider)
    api_key = config.api_key or credentials.key_for(provider)
    return client_classes[provider](
        base_url=config.base_url or endpoint.base_url,
        model=config.model or endpoint.model,
        timeout=endpoint.timeout_seconds,
        temperature=temperature,
        max_tokens=max_tokens,
        api_key=api_key if is_real_api_key(api_key) else None,
        transport=transport,
    )
