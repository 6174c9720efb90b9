"""Ollama LLM client implementation."""

import logging
import random
from typing import List, Optional

import httpx

from .base import BaseLLMClient, LLMResponse, LLMError

logger = logging.getLogger(__name__)

# Models whose names contain these are not chat models
NON_CHAT_MODEL_MARKERS = ("embed", "embedding", "code", "coder")


def is_chat_model(name: str) -> bool:
    lowered = name.lower()
    return not any(marker in lowered for marker in NON_CHAT_MODEL_MARKERS)


class OllamaClient(BaseLLMClient):
    """
    Client for a local Ollama server.

    When no model is configured, a chat model is picked uniformly at random
    from the models the server reports as installed.
    """

    provider_name = "ollama"

    def __init__(self, *args, rng: Optional[random.Random] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.rng = rng or random.Random()
        self._available_models: Optional[List[str]] = None

    async def health_check(self) -> bool:
        """Check if Ollama is available."""
        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Ollama health check failed: {e}")
            return False

    async def list_models(self) -> List[str]:
        """
        Installed chat models (embedding and code models filtered out).

        Discovery failures are logged and yield an empty list.
        """
        if self._available_models is not None:
            return self._available_models

        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            data = response.json()
            names = [m.get("name", "") for m in data.get("models", []) if isinstance(m, dict)]
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Error fetching Ollama models: {e}")
            return []

        self._available_models = [name for name in names if name and is_chat_model(name)]
        logger.debug(f"Discovered {len(self._available_models)} Ollama chat model(s)")
        return self._available_models

    async def resolve_model(self, model: Optional[str] = None) -> str:
        """Pick the explicit model, the default model, or a random installed one."""
        chosen = model or self.model
        if chosen:
            return chosen

        models = await self.list_models()
        if not models:
            raise LLMError("No Ollama chat models available")
        chosen = self.rng.choice(models)
        logger.info(f"Randomly selected Ollama model: {chosen}")
        return chosen

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate a completion with the `/api/generate` endpoint.

        Raises:
            LLMError: If generation fails or the reply is empty
        """
        temperature, max_tokens = self._resolve(temperature, max_tokens)
        used_model = await self.resolve_model(model)

        payload = {
            "model": used_model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
                "top_p": 0.9,
                "repeat_penalty": 1.1,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        logger.debug(f"Ollama request: base_url={self.base_url}, model={used_model}, temp={temperature}")
        data = await self._post_json(f"{self.base_url}/api/generate", payload)

        content = data.get("response", "")
        if not isinstance(content, str) or not content.strip():
            logger.warning(
                f"[OLLAMA] Empty response content: model={data.get('model', used_model)}, "
                f"done_reason={data.get('done_reason')}"
            )
            raise LLMError(f"Empty response from Ollama model {used_model}")

        total_dur = data.get("total_duration", 0) / 1e9
        if total_dur > 30:
            logger.info(
                f"[OLLAMA] Request completed: total={total_dur:.1f}s, "
                f"output_tokens={data.get('eval_count', 0)}"
            )

        return LLMResponse(
            content=content,
            model=data.get("model", used_model),
            provider=self.provider_name,
            finish_reason=data.get("done_reason"),
        )
