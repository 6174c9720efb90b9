"""OpenAI-compatible chat completion clients (OpenAI, Z.AI, custom endpoints)."""

import logging
from typing import Optional

from .base import BaseLLMClient, LLMResponse, LLMError

logger = logging.getLogger(__name__)


def _build_messages(prompt: str, system_prompt: Optional[str]) -> list[dict]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


class OpenAICompatibleClient(BaseLLMClient):
    """
    Client for any provider speaking the OpenAI chat completions protocol.

    Requests go to `{base_url}/chat/completions` with a bearer token.
    """

    provider_name = "openai"
    default_model = "gpt-3.5-turbo"

    def _completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _check_credentials(self) -> None:
        if not self.api_key:
            raise LLMError(f"{self.provider_name} API key is required")

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate a completion using the chat completions endpoint.

        Raises:
            LLMError: If generation fails or the reply is empty
        """
        self._check_credentials()
        temperature, max_tokens = self._resolve(temperature, max_tokens)
        used_model = model or self.model or self.default_model

        payload = {
            "model": used_model,
            "messages": _build_messages(prompt, system_prompt),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        logger.debug(
            f"{self.provider_name} request: model={used_model}, temp={temperature}, max_tokens={max_tokens}"
        )

        data = await self._post_json(self._completions_url(), payload, headers=self._headers())
        content, finish_reason = self._extract_content(data)
        if not content or not content.strip():
            raise LLMError(f"Empty response from {self.provider_name} model {used_model}")

        return LLMResponse(
            content=content,
            model=data.get("model", used_model),
            provider=self.provider_name,
            finish_reason=finish_reason,
        )

    def _extract_content(self, data: dict) -> tuple[str, Optional[str]]:
        choices = data.get("choices") or [{}]
        choice = choices[0] if isinstance(choices[0], dict) else {}
        message = choice.get("message") or {}
        return message.get("content") or "", choice.get("finish_reason")


class OpenAIClient(OpenAICompatibleClient):
    """OpenAI hosted API."""

    provider_name = "openai"
    default_model = "gpt-3.5-turbo"


class ZAIClient(OpenAICompatibleClient):
    """Z.AI hosted API (OpenAI-compatible protocol)."""

    provider_name = "zai"
    default_model = "glm-4.5"


class CustomAPIClient(OpenAICompatibleClient):
    """
    User-supplied endpoint.

    base_url is the full completions URL; the API key is optional and the
    reply may come back either OpenAI-shaped or as a top-level `content`.
    """

    provider_name = "custom"
    default_model = "custom"

    def _completions_url(self) -> str:
        if not self.base_url:
            raise LLMError("Base URL is required for custom API")
        return self.base_url

    def _check_credentials(self) -> None:
        if not self.base_url:
            raise LLMError("Base URL is required for custom API")

    def _extract_content(self, data: dict) -> tuple[str, Optional[str]]:
        content, finish_reason = super()._extract_content(data)
        if not content and isinstance(data.get("content"), str):
            content = data["content"]
        return content, finish_reason
