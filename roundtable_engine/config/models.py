"""Pydantic models for configuration validation."""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

# Placeholder credentials shipped with demo deployments. The Z.AI one doubles
# as the switch for offline demo mode.
DEMO_ZAI_API_KEY = "demo-key-for-testing"
DEMO_OPENAI_API_KEY = "demo-openai-key-for-testing"
PLACEHOLDER_API_KEYS = {DEMO_ZAI_API_KEY, DEMO_OPENAI_API_KEY}


def is_real_api_key(key: Optional[str]) -> bool:
    """True when a key is set and is not one of the demo placeholders."""
    return bool(key) and key not in PLACEHOLDER_API_KEYS


# Provider configuration (per character)

class _ProviderConfigBase(BaseModel):
    """Fields shared by every provider configuration."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    model: Optional[str] = None
    api_key: Optional[str] = Field(default=None, validation_alias=AliasChoices('api_key', 'apiKey'))
    base_url: Optional[str] = Field(default=None, validation_alias=AliasChoices('base_url', 'baseUrl'))
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0, validation_alias=AliasChoices('max_tokens', 'maxTokens'))

    @field_validator('base_url')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Ensure URL is properly formatted."""
        if v is None or v == "":
            return None
        if not v.startswith(('http://', 'https://')):
            raise ValueError('base_url must start with http:// or https://')
        return v.rstrip('/')


class ZAIProviderConfig(_ProviderConfigBase):
    provider: Literal["zai"] = "zai"


class OpenAIProviderConfig(_ProviderConfigBase):
    provider: Literal["openai"] = "openai"


class AnthropicProviderConfig(_ProviderConfigBase):
    provider: Literal["anthropic"] = "anthropic"


class CustomProviderConfig(_ProviderConfigBase):
    """Any OpenAI-shaped endpoint; base_url is the full completions URL."""
    provider: Literal["custom"] = "custom"


class OllamaProviderConfig(_ProviderConfigBase):
    provider: Literal["ollama"] = "ollama"


ProviderConfig = Annotated[
    Union[
        ZAIProviderConfig,
        OpenAIProviderConfig,
        AnthropicProviderConfig,
        CustomProviderConfig,
        OllamaProviderConfig,
    ],
    Field(discriminator="provider"),
]

_provider_config_adapter = TypeAdapter(ProviderConfig)


def parse_provider_config(blob: Any) -> ProviderConfig:
    """
    Parse a character's stored provider blob into a typed configuration.

    Accepts a JSON string, a mapping, an already-parsed config or None.
    Anything that fails to parse yields the default local Ollama config;
    malformed configuration is never raised to the caller.
    """
    if isinstance(blob, _ProviderConfigBase):
        return blob
    if blob is None or blob == "":
        return OllamaProviderConfig()

    try:
        data = json.loads(blob) if isinstance(blob, (str, bytes)) else dict(blob)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        data.setdefault("provider", "ollama")
        return _provider_config_adapter.validate_python(data)
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Invalid provider config, using local defaults: {e}")
        return OllamaProviderConfig()


class CharacterProfile(BaseModel):
    """
    A character as handed to the engine by the surrounding application.

    Consumed read-only. participation_level and interest_threshold are
    clamped into [0, 1]; the provider blob is validated once here.
    """

    model_config = ConfigDict(extra='ignore', populate_by_name=True, alias_generator=to_camel)

    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    system_prompt: str = ""
    participation_level: float = Field(default=0.5, ge=0.0, le=1.0)
    interest_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    is_active: bool = True
    provider_config: ProviderConfig = Field(
        default_factory=OllamaProviderConfig,
        validation_alias=AliasChoices('provider_config', 'providerConfig', 'modelConfig', 'llm'),
    )

    @field_validator('id')
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure ID is safe to use as a file name."""
        if any(ch in v for ch in ('/', '\\', '\0')) or v in ('.', '..'):
            raise ValueError('Character ID must not contain path separators')
        return v

    @field_validator('participation_level', 'interest_threshold', mode='before')
    @classmethod
    def clamp_unit_interval(cls, v: Any) -> Any:
        """Keep aggressiveness and threshold values inside [0, 1]."""
        if v is None:
            return 0.5
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return min(1.0, max(0.0, float(v)))
        return v

    @field_validator('provider_config', mode='before')
    @classmethod
    def parse_blob(cls, v: Any) -> Any:
        return parse_provider_config(v)


# System configuration

class ProviderEndpoint(BaseModel):
    """Endpoint defaults for one LLM provider."""

    base_url: str
    model: Optional[str] = None
    timeout_seconds: int = Field(default=60, gt=0)

    @field_validator('base_url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure URL is properly formatted."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('base_url must start with http:// or https://')
        return v.rstrip('/')


class ProvidersConfig(BaseModel):
    """Endpoint defaults for every supported provider."""

    zai: ProviderEndpoint = Field(default_factory=lambda: ProviderEndpoint(
        base_url="https://api.z.ai/api/paas/v4", model="glm-4.5"
    ))
    openai: ProviderEndpoint = Field(default_factory=lambda: ProviderEndpoint(
        base_url="https://api.openai.com/v1", model="gpt-3.5-turbo"
    ))
    anthropic: ProviderEndpoint = Field(default_factory=lambda: ProviderEndpoint(
        base_url="https://api.anthropic.com/v1", model="claude-3-sonnet-20240229"
    ))
    ollama: ProviderEndpoint = Field(default_factory=lambda: ProviderEndpoint(
        base_url="http://127.0.0.1:11434", model=None, timeout_seconds=120
    ))
    custom_timeout_seconds: int = Field(default=60, gt=0)


class InterestConfig(BaseModel):
    """Interest evaluation settings."""

    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, gt=0)
    secondary_model: str = "gpt-3.5-turbo"
    fallback_threshold_relaxation: float = Field(default=0.1, ge=0.0, le=1.0)
    fallback_threshold_floor: float = Field(default=0.3, ge=0.0, le=1.0)


class GenerationConfig(BaseModel):
    """Reply generation settings."""

    relevant_memory_limit: int = Field(default=3, ge=0)
    recent_history_limit: int = Field(default=2, ge=0)
    random_cue_window: int = Field(default=5, gt=0)
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    default_max_tokens: int = Field(default=2048, gt=0)
    context_summary_chars: int = Field(default=200, gt=0)
    key_memory_importance: float = Field(default=0.7, ge=0.0, le=1.0)


class RepetitionConfig(BaseModel):
    """Repetition guard tuning. Defaults match the historical constants."""

    window_size: int = Field(default=3, ge=2)
    similarity_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    max_regenerations: int = Field(default=1, ge=0, le=5)
    redirect_phrases: list[str] = Field(default_factory=lambda: [
        '换个角度思考一下，',
        '我们来聊聊别的吧，',
        '你觉得这个怎么样？',
        '这让我想到了一个问题：',
    ])
    marker: str = "(系统检测到重复，已尝试调整话题) "

    @field_validator('redirect_phrases')
    @classmethod
    def validate_phrases(cls, v: list[str]) -> list[str]:
        """At least one redirect phrase is needed to break a loop."""
        phrases = [p for p in v if p.strip()]
        if not phrases:
            raise ValueError('redirect_phrases must contain at least one phrase')
        return phrases


class ParticipationConfig(BaseModel):
    """Participant selection settings."""

    min_participants: int = Field(default=2, ge=0)
    reply_delay_seconds: float = Field(default=0.0, ge=0.0)


class PathsConfig(BaseModel):
    """File path configuration."""

    memory_banks: Path = Path("storage/memory_banks")
    characters: Path = Path("characters")
    debug_logs: Path = Path("data/debug_logs/llm")

    @field_validator('memory_banks', 'characters', 'debug_logs')
    @classmethod
    def validate_path(cls, v: Path) -> Path:
        """Ensure paths are cross-platform."""
        return Path(v)


class SystemConfig(BaseModel):
    """Top-level system configuration."""

    model_config = ConfigDict(extra='ignore')

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    interest: InterestConfig = Field(default_factory=InterestConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    repetition: RepetitionConfig = Field(default_factory=RepetitionConfig)
    participation: ParticipationConfig = Field(default_factory=ParticipationConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    debug: bool = False


class ApiCredentials(BaseModel):
    """Provider credentials resolved from the environment and the user config file."""

    zai_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    ollama_base_url: Optional[str] = None
    ollama_model: Optional[str] = None

    @property
    def demo_mode(self) -> bool:
        """Offline demo deployments are flagged by the Z.AI placeholder key."""
        return self.zai_api_key == DEMO_ZAI_API_KEY

    def key_for(self, provider: str) -> Optional[str]:
        return {
            "zai": self.zai_api_key,
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
        }.get(provider)

    def has_real_key(self, provider: str) -> bool:
        return is_real_api_key(self.key_for(provider))
