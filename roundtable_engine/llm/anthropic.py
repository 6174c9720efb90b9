"""Anthropic Messages API client."""

import logging
from typing import Optional

from .base import BaseLLMClient, LLMResponse, LLMError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicClient(BaseLLMClient):
    """Client for the Anthropic `/messages` endpoint."""

    provider_name = "anthropic"
    default_model = "claude-3-sonnet-20240229"

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate a completion with the Messages API.

        Raises:
            LLMError: If generation fails or no text block comes back
        """
        if not self.api_key:
            raise LLMError("Anthropic API key is required")

        temperature, max_tokens = self._resolve(temperature, max_tokens)
        used_model = model or self.model or self.default_model
        payload = {
            "model": used_model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        data = await self._post_json(f"{self.base_url}/messages", payload, headers=headers)

        blocks = data.get("content") or []
        text = "".join(
            block.get("text", "") for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        if not text.strip():
            raise LLMError(f"No content returned from Anthropic model {used_model}")

        return LLMResponse(
            content=text,
            model=data.get("model", used_model),
            provider=self.provider_name,
            finish_reason=data.get("stop_reason"),
        )
