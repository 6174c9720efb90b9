"""Base abstract class for LLM providers."""

from abc import ABC, abstractmethod
from typing import Optional
import httpx
from pydantic import BaseModel


class LLMResponse(BaseModel):
    """LLM response model."""
    content: str
    model: str
    provider: str
    finish_reason: Optional[str] = None


class LLMError(Exception):
    """Base exception for LLM operations."""
    pass


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM provider clients.

    Adapters map one prompt to one outbound call and pull the text out of
    the provider's response shape. They raise LLMError on transport,
    status or shape failures; recovering from those is the caller's job.
    """

    provider_name: str = "base"

    def __init__(
        self,
        base_url: str,
        model: Optional[str],
        timeout: float,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize LLM client.

        Args:
            base_url: Base URL for the LLM provider
            model: Default model identifier
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
            max_tokens: Default maximum tokens to generate
            api_key: Provider credential, if the provider needs one
            transport: Optional httpx transport (used to stub the network)
        """
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate a non-streaming completion.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            temperature: Override default temperature
            max_tokens: Override default max tokens
            model: Override default model

        Returns:
            LLMResponse with generated content

        Raises:
            LLMError: If generation fails
        """
        pass

    async def health_check(self) -> bool:
        """
        Check if the provider is reachable.

        Default implementation assumes it is. Override where the provider
        exposes a cheap status endpoint.
        """
        return True

    def _resolve(self, temperature: Optional[float], max_tokens: Optional[int]) -> tuple[float, int]:
        return (
            temperature if temperature is not None else self.temperature,
            max_tokens if max_tokens is not None else self.max_tokens,
        )

    async def _post_json(self, url: str, payload: dict, headers: Optional[dict] = None) -> dict:
        """POST a JSON body and return the decoded JSON object response."""
        try:
            response = await self.client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"{self.provider_name} API error: {e.response.status_code} {e.response.text[:200]}"
            )
        except httpx.HTTPError as e:
            raise LLMError(f"HTTP error during {self.provider_name} generation: {e}")
        except ValueError as e:
            raise LLMError(f"{self.provider_name} returned invalid JSON: {e}")

        if not isinstance(data, dict):
            raise LLMError(f"{self.provider_name} returned unexpected payload type {type(data).__name__}")
        return data

    async def close(self) -> None:
        """Close the HTTP client. Can be overridden if needed."""
        await self.client.aclose()
