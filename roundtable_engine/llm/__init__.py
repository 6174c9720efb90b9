"""LLM integration layer."""

from .base import BaseLLMClient, LLMError, LLMResponse
from .client import create_llm_client, SUPPORTED_PROVIDERS
from .anthropic import AnthropicClient
from .ollama import OllamaClient
from .offline import OfflineResponder
from .openai_compatible import CustomAPIClient, OpenAIClient, ZAIClient

__all__ = [
    "BaseLLMClient",
    "LLMError",
    "LLMResponse",
    "AnthropicClient",
    "CustomAPIClient",
    "OllamaClient",
    "OpenAIClient",
    "ZAIClient",
    "OfflineResponder",
    "create_llm_client",
    "SUPPORTED_PROVIDERS",
]
