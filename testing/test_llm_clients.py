"""
Tests for the provider adapters and the client factory.

Tests cover:
- Request shapes (URL, headers, payload) per provider
- Reply extraction and LLMError on empty, failed or keyless calls
- Ollama model discovery, filtering and random selection
- Placeholder keys never reaching the wire
"""

import asyncio
import json
import random
from types import SimpleNamespace

import httpx
import pytest

from roundtable_engine.config.models import (
    AnthropicProviderConfig,
    ApiCredentials,
    CustomProviderConfig,
    OllamaProviderConfig,
    OpenAIProviderConfig,
    ProvidersConfig,
    ZAIProviderConfig,
)
from roundtable_engine.llm import (
    AnthropicClient,
    CustomAPIClient,
    LLMError,
    OfflineResponder,
    OllamaClient,
    OpenAIClient,
    ZAIClient,
    create_llm_client,
)
from roundtable_engine.llm.ollama import is_chat_model


class Recorder:
    """MockTransport handler that records requests and returns a canned reply."""

    def __init__(self, status=200, body=None, routes=None):
        self.status = status
        self.body = body
        self.routes = routes or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path in self.routes:
            return httpx.Response(200, json=self.routes[request.url.path])
        return httpx.Response(self.status, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


def _generate(client, *args, **kwargs):
    async def scenario():
        try:
            return await client.generate(*args, **kwargs)
        finally:
            await client.close()
    return asyncio.run(scenario())


class TestOpenAICompatible:

    def test_health_check_assumes_reachable_without_request(self):
        recorder = Recorder()
        client = OpenAIClient(
            base_url="https://api.openai.com/v1", model=None, timeout=5,
            api_key="sk-live", transport=httpx.MockTransport(recorder),
        )

        async def check():
            try:
                return await client.health_check()
            finally:
                await client.close()

        assert asyncio.run(check()) is True
        assert recorder.requests == []

    def test_openai_request_shape(self):
        recorder = Recorder(body={"model": "gpt-3.5-turbo", "choices": [
            {"message": {"content": "你好"}, "finish_reason": "stop"}
        ]})
        client = OpenAIClient(
            base_url="https://api.openai.com/v1", model=None, timeout=5,
            api_key="sk-live", transport=httpx.MockTransport(recorder),
        )

        response = _generate(client, "hi", system_prompt="be nice", temperature=0.2, max_tokens=64)

        request = recorder.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-live"
        payload = recorder.last_json
        assert payload["model"] == "gpt-3.5-turbo"
        assert payload["messages"] == [
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "hi"},
        ]
        assert payload["temperature"] == 0.2
        assert payload["max_tokens"] == 64
        assert response.content == "你好"
        assert response.finish_reason == "stop"

    def test_zai_defaults(self):
        recorder = Recorder(body={"choices": [{"message": {"content": "ok"}}]})
        client = ZAIClient(
            base_url="https://api.z.ai/api/paas/v4", model=None, timeout=5,
            api_key="zai-live", transport=httpx.MockTransport(recorder),
        )
        response = _generate(client, "hi")
        assert recorder.last_json["model"] == "glm-4.5"
        assert response.provider == "zai"

    def test_missing_key_fails_without_request(self):
        recorder = Recorder(body={})
        client = OpenAIClient(
            base_url="https://api.openai.com/v1", model=None, timeout=5,
            transport=httpx.MockTransport(recorder),
        )
        with pytest.raises(LLMError):
            _generate(client, "hi")
        assert recorder.requests == []

    def test_http_error_raises(self):
        recorder = Recorder(status=500, body={"error": "boom"})
        client = OpenAIClient(
            base_url="https://api.openai.com/v1", model=None, timeout=5,
            api_key="sk-live", transport=httpx.MockTransport(recorder),
        )
        with pytest.raises(LLMError, match="500"):
            _generate(client, "hi")

    def test_empty_content_raises(self):
        recorder = Recorder(body={"choices": [{"message": {"content": "   "}}]})
        client = OpenAIClient(
            base_url="https://api.openai.com/v1", model=None, timeout=5,
            api_key="sk-live", transport=httpx.MockTransport(recorder),
        )
        with pytest.raises(LLMError):
            _generate(client, "hi")

    def test_custom_endpoint_accepts_flat_content(self):
        recorder = Recorder(body={"content": "flat reply"})
        client = CustomAPIClient(
            base_url="https://llm.example.com/v1/complete", model="house-model", timeout=5,
            transport=httpx.MockTransport(recorder),
        )
        response = _generate(client, "hi")
        assert str(recorder.requests[0].url) == "https://llm.example.com/v1/complete"
        assert "Authorization" not in recorder.requests[0].headers
        assert response.content == "flat reply"

    def test_custom_endpoint_requires_url(self):
        client = CustomAPIClient(base_url="", model=None, timeout=5)
        with pytest.raises(LLMError):
            _generate(client, "hi")


class TestAnthropic:

    def test_request_and_text_blocks(self):
        recorder = Recorder(body={
            "model": "claude-3-sonnet-20240229",
            "content": [{"type": "text", "text": "Hello "}, {"type": "text", "text": "there"}],
            "stop_reason": "end_turn",
        })
        client = AnthropicClient(
            base_url="https://api.anthropic.com/v1", model=None, timeout=5,
            api_key="ak-live", transport=httpx.MockTransport(recorder),
        )
        response = _generate(client, "hi", system_prompt="sys", max_tokens=100)

        request = recorder.requests[0]
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "ak-live"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert recorder.last_json["system"] == "sys"
        assert recorder.last_json["messages"] == [{"role": "user", "content": "hi"}]
        assert response.content == "Hello there"

    def test_no_text_raises(self):
        recorder = Recorder(body={"content": []})
        client = AnthropicClient(
            base_url="https://api.anthropic.com/v1", model=None, timeout=5,
            api_key="ak-live", transport=httpx.MockTransport(recorder),
        )
        with pytest.raises(LLMError):
            _generate(client, "hi")


class TestOllama:

    TAGS = {"models": [
        {"name": "qwen2.5:7b"},
        {"name": "llama3:8b"},
        {"name": "nomic-embed-text"},
        {"name": "deepseek-coder:6.7b"},
        {"name": "codellama:7b"},
    ]}

    def test_generate_payload(self):
        recorder = Recorder(body={"model": "qwen2.5:7b", "response": "本地回复", "done_reason": "stop"})
        client = OllamaClient(
            base_url="http://127.0.0.1:11434", model="qwen2.5:7b", timeout=5,
            transport=httpx.MockTransport(recorder),
        )
        response = _generate(client, "hi", system_prompt="sys", temperature=0.5, max_tokens=128)

        assert recorder.requests[0].url.path == "/api/generate"
        payload = recorder.last_json
        assert payload["stream"] is False
        assert payload["system"] == "sys"
        assert payload["options"] == {
            "temperature": 0.5, "num_predict": 128, "top_p": 0.9, "repeat_penalty": 1.1,
        }
        assert response.content == "本地回复"

    def test_random_model_excludes_embedding_and_code_models(self):
        chosen = set()
        for seed in range(20):
            recorder = Recorder(body={"response": "ok"}, routes={"/api/tags": self.TAGS})
            client = OllamaClient(
                base_url="http://127.0.0.1:11434", model=None, timeout=5,
                transport=httpx.MockTransport(recorder), rng=random.Random(seed),
            )
            _generate(client, "hi")
            chosen.add(recorder.last_json["model"])
        assert chosen <= {"qwen2.5:7b", "llama3:8b"}
        assert chosen

    def test_no_models_available(self):
        recorder = Recorder(body={"response": "ok"}, routes={"/api/tags": {"models": [{"name": "nomic-embed-text"}]}})
        client = OllamaClient(
            base_url="http://127.0.0.1:11434", model=None, timeout=5,
            transport=httpx.MockTransport(recorder),
        )
        with pytest.raises(LLMError, match="No Ollama chat models"):
            _generate(client, "hi")

    def test_empty_response_raises(self):
        recorder = Recorder(body={"response": ""})
        client = OllamaClient(
            base_url="http://127.0.0.1:11434", model="llama3:8b", timeout=5,
            transport=httpx.MockTransport(recorder),
        )
        with pytest.raises(LLMError):
            _generate(client, "hi")

    def test_health_check(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def check(transport):
            client = OllamaClient(base_url="http://127.0.0.1:11434", model="llama3:8b", timeout=5, transport=transport)
            try:
                return await client.health_check()
            finally:
                await client.close()

        up = Recorder(routes={"/api/tags": self.TAGS})
        assert asyncio.run(check(httpx.MockTransport(up))) is True
        assert up.requests[0].url.path == "/api/tags"
        assert asyncio.run(check(httpx.MockTransport(Recorder(status=503, body={})))) is False
        assert asyncio.run(check(httpx.MockTransport(refuse))) is False

    def test_is_chat_model(self):
        assert is_chat_model("llama3:8b")
        assert not is_chat_model("mxbai-EMBED-large")
        assert not is_chat_model("qwen2.5-coder:7b")


class TestClientFactory:

    endpoints = ProvidersConfig()

    def test_placeholder_keys_are_dropped(self):
        credentials = ApiCredentials(zai_api_key="demo-key-for-testing", openai_api_key="demo-openai-key-for-testing")
        zai = create_llm_client(ZAIProviderConfig(), credentials, self.endpoints)
        openai = create_llm_client(OpenAIProviderConfig(), credentials, self.endpoints)
        assert isinstance(zai, ZAIClient) and zai.api_key is None
        assert isinstance(openai, OpenAIClient) and openai.api_key is None

    def test_config_values_beat_defaults(self):
        credentials = ApiCredentials(anthropic_api_key="ak-env")
        config = AnthropicProviderConfig(model="claude-x", temperature=0.1, api_key="ak-character")
        client = create_llm_client(config, credentials, self.endpoints, temperature=0.9)
        assert client.model == "claude-x"
        assert client.temperature == 0.1
        assert client.api_key == "ak-character"
        assert client.base_url == "https://api.anthropic.com/v1"

    def test_ollama_uses_credential_overrides(self):
        credentials = ApiCredentials(ollama_base_url="http://gpu-box:11434", ollama_model="llama3:8b")
        client = create_llm_client(OllamaProviderConfig(), credentials, self.endpoints)
        assert isinstance(client, OllamaClient)
        assert client.base_url == "http://gpu-box:11434"
        assert client.model == "llama3:8b"

    def test_custom_client(self):
        config = CustomProviderConfig(base_url="https://llm.example.com/complete", model="m")
        client = create_llm_client(config, ApiCredentials(), self.endpoints)
        assert isinstance(client, CustomAPIClient)
        assert client.base_url == "https://llm.example.com/complete"

    def test_unknown_provider(self):
        config = SimpleNamespace(provider="mystery", temperature=None, max_tokens=None)
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_llm_client(config, ApiCredentials(), self.endpoints)


class TestOfflineResponder:

    def test_keyword_replies(self):
        responder = OfflineResponder()
        assert "人工智能" in responder("聊聊人工智能吧")
        assert "情绪" in responder("最近情绪不好")
        assert "创业" in responder("我想创业")
        assert "艺术" in responder("文学有什么意义")

    def test_generic_reply(self):
        responder = OfflineResponder()
        reply = responder("今天天气怎么样")
        assert reply
        assert reply == responder.generic_reply
