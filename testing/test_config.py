"""
Tests for configuration models and the loader.
"""

import json

import pytest
from pydantic import ValidationError

from roundtable_engine.config import (
    ApiCredentials,
    CharacterProfile,
    ConfigLoader,
    ConfigValidationError,
    OllamaProviderConfig,
    OpenAIProviderConfig,
    SystemConfig,
    ZAIProviderConfig,
    is_real_api_key,
    parse_provider_config,
)


class TestProviderConfig:

    def test_json_string_blob(self):
        config = parse_provider_config('{"provider": "openai", "model": "gpt-4o", "apiKey": "sk-1", "maxTokens": 300}')
        assert isinstance(config, OpenAIProviderConfig)
        assert config.model == "gpt-4o"
        assert config.api_key == "sk-1"
        assert config.max_tokens == 300

    def test_missing_provider_defaults_to_ollama(self):
        config = parse_provider_config({"model": "llama3:8b"})
        assert isinstance(config, OllamaProviderConfig)
        assert config.model == "llama3:8b"

    @pytest.mark.parametrize("blob", ["{not json", "[1, 2]", {"provider": "carrier-pigeon"}, {"provider": "zai", "temperature": 9}])
    def test_malformed_blob_falls_back(self, blob):
        assert parse_provider_config(blob) == OllamaProviderConfig()

    def test_empty_blob(self):
        assert parse_provider_config(None) == OllamaProviderConfig()
        assert parse_provider_config("") == OllamaProviderConfig()

    def test_base_url_validated_and_trimmed(self):
        config = parse_provider_config({"provider": "ollama", "baseUrl": "http://gpu-box:11434/"})
        assert config.base_url == "http://gpu-box:11434"


class TestCharacterProfile:

    def test_camel_case_fields_and_model_config_alias(self):
        profile = CharacterProfile.model_validate({
            "id": "ai_expert",
            "name": "AI专家",
            "systemPrompt": "你是专家",
            "participationLevel": 0.9,
            "interestThreshold": 0.4,
            "isActive": False,
            "modelConfig": json.dumps({"provider": "zai", "temperature": 0.5}),
        })
        assert profile.system_prompt == "你是专家"
        assert profile.participation_level == 0.9
        assert profile.is_active is False
        assert isinstance(profile.provider_config, ZAIProviderConfig)
        assert profile.provider_config.temperature == 0.5

    def test_levels_are_clamped(self):
        profile = CharacterProfile(id="x", name="X", participation_level=1.7, interest_threshold=-0.5)
        assert profile.participation_level == 1.0
        assert profile.interest_threshold == 0.0

    def test_defaults(self):
        profile = CharacterProfile(id="x", name="X")
        assert profile.participation_level == 0.5
        assert profile.interest_threshold == 0.5
        assert isinstance(profile.provider_config, OllamaProviderConfig)

    def test_id_must_be_file_safe(self):
        with pytest.raises(ValidationError):
            CharacterProfile(id="../etc", name="X")


class TestCredentials:

    def test_placeholders_are_not_real(self):
        assert not is_real_api_key(None)
        assert not is_real_api_key("")
        assert not is_real_api_key("demo-key-for-testing")
        assert not is_real_api_key("demo-openai-key-for-testing")
        assert is_real_api_key("sk-live")

    def test_demo_mode(self):
        assert ApiCredentials(zai_api_key="demo-key-for-testing").demo_mode
        assert not ApiCredentials(zai_api_key="zai-live").demo_mode
        assert not ApiCredentials().demo_mode

    def test_environment_wins_over_file(self, tmp_path):
        (tmp_path / "api-config-user.json").write_text(json.dumps({
            "zaiApiKey": "file-zai",
            "openaiApiKey": "file-openai",
            "ollamaModel": "llama3:8b",
        }), encoding="utf-8")
        environ = {"ZAI_API_KEY": "env-zai"}

        credentials = ConfigLoader(tmp_path).load_credentials(environ)

        assert credentials.zai_api_key == "env-zai"
        assert credentials.openai_api_key == "file-openai"
        assert credentials.ollama_model == "llama3:8b"
        assert credentials.anthropic_api_key is None
        assert environ == {"ZAI_API_KEY": "env-zai"}

    def test_config_subdirectory_and_bad_file(self, tmp_path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "api-config-user.json").write_text('{"anthropicApiKey": "ak"}', encoding="utf-8")
        assert ConfigLoader(tmp_path).load_credentials({}).anthropic_api_key == "ak"

        (tmp_path / "api-config-user.json").write_text("{broken", encoding="utf-8")
        assert ConfigLoader(tmp_path).load_credentials({}).anthropic_api_key is None


class TestConfigLoader:

    def test_missing_system_config_uses_defaults(self, tmp_path):
        config = ConfigLoader(tmp_path).load_system_config()
        assert config == SystemConfig()
        assert config.repetition.window_size == 3
        assert config.repetition.similarity_threshold == 0.6
        assert config.interest.secondary_model == "gpt-3.5-turbo"

    def test_system_config_overrides(self, tmp_path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "system.yaml").write_text(
            "repetition:\n  max_regenerations: 2\nparticipation:\n  min_participants: 3\n",
            encoding="utf-8",
        )
        config = ConfigLoader(tmp_path).load_system_config()
        assert config.repetition.max_regenerations == 2
        assert config.participation.min_participants == 3
        assert config.generation.relevant_memory_limit == 3

    def test_invalid_system_config(self, tmp_path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "system.yaml").write_text(
            "repetition:\n  similarity_threshold: 3.5\n", encoding="utf-8"
        )
        with pytest.raises(ConfigValidationError, match="similarity_threshold"):
            ConfigLoader(tmp_path).load_system_config()

    def test_load_all_characters_skips_template_and_invalid(self, tmp_path):
        characters = tmp_path / "characters"
        characters.mkdir()
        (characters / "template.yaml").write_text("name: Template\n", encoding="utf-8")
        (characters / "ai_expert.yaml").write_text(
            "name: AI专家\nsystemPrompt: 你是专家\nmodelConfig:\n  provider: zai\n", encoding="utf-8"
        )
        (characters / "broken.yaml").write_text("name: [unclosed\n", encoding="utf-8")
        (characters / "wrong_id.yaml").write_text("id: someone_else\nname: X\n", encoding="utf-8")

        loaded = ConfigLoader(tmp_path).load_all_characters()

        assert list(loaded) == ["ai_expert"]
        assert loaded["ai_expert"].name == "AI专家"
        assert isinstance(loaded["ai_expert"].provider_config, ZAIProviderConfig)
