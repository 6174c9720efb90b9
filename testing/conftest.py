"""Shared fixtures and provider stubs for the engine tests."""

from collections import defaultdict
from typing import Callable, Dict, Optional

import pytest

from roundtable_engine.config.models import ApiCredentials, CharacterProfile, SystemConfig
from roundtable_engine.llm.base import BaseLLMClient, LLMError, LLMResponse
from roundtable_engine.repositories.memory_bank_repository import MemoryBankRepository
from roundtable_engine.services.memory_bank_manager import MemoryBankManager


def unreachable(prompt: str) -> str:
    raise LLMError("connection refused")


class ScriptedClient(BaseLLMClient):
    """LLM client whose replies come from a plain function; records every call."""

    def __init__(self, provider: str, respond: Callable[[str], str], calls: list):
        super().__init__(base_url="http://stub.invalid", model=f"{provider}-stub", timeout=5)
        self.provider_name = provider
        self.respond = respond
        self.calls = calls

    async def generate(self, prompt, system_prompt=None, temperature=None, max_tokens=None, model=None):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        content = self.respond(prompt)
        return LLMResponse(content=content, model=self.model, provider=self.provider_name)


class StubClientFactory:
    """Stands in for create_llm_client; providers without a responder are unreachable."""

    def __init__(self, responders: Optional[Dict[str, Callable[[str], str]]] = None):
        self.responders = responders or {}
        self.calls = defaultdict(list)
        self.configs = []

    def __call__(self, config, credentials, endpoints, **kwargs):
        self.configs.append(config)
        respond = self.responders.get(config.provider, unreachable)
        return ScriptedClient(config.provider, respond, self.calls[config.provider])

    def prompts(self, provider: str) -> list:
        return [call["prompt"] for call in self.calls[provider]]


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "memory_banks"


@pytest.fixture
def make_manager(storage_dir):
    """Build a manager inside the running event loop (its locks are loop-bound)."""
    def _make() -> MemoryBankManager:
        return MemoryBankManager(MemoryBankRepository(storage_dir))
    return _make


@pytest.fixture
def system_config():
    return SystemConfig()


@pytest.fixture
def demo_credentials():
    return ApiCredentials(zai_api_key="demo-key-for-testing", openai_api_key="demo-openai-key-for-testing")


@pytest.fixture
def live_credentials():
    return ApiCredentials(zai_api_key="zai-live-key")


@pytest.fixture
def ai_expert():
    return CharacterProfile(
        id="ai_expert",
        name="AI专家",
        system_prompt="你是一位人工智能专家。",
        participation_level=0.8,
        interest_threshold=0.5,
        provider_config={"provider": "zai"},
    )


@pytest.fixture
def counselor():
    return CharacterProfile(
        id="counselor",
        name="心理咨询师",
        system_prompt="你是一位温和的心理咨询师。",
        participation_level=0.6,
        interest_threshold=0.6,
        provider_config={"provider": "ollama"},
    )
