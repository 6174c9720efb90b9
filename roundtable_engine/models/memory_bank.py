"""Memory bank document models.

One MemoryBank document is stored per character. Field names serialize as
camelCase so the JSON on disk stays readable by other tooling.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra='ignore')


class PersonalityTraits(_Document):
    """Big-five trait scores, each in [0, 1]."""

    openness: float = Field(default=0.7, ge=0.0, le=1.0)
    conscientiousness: float = Field(default=0.6, ge=0.0, le=1.0)
    extraversion: float = Field(default=0.5, ge=0.0, le=1.0)
    agreeableness: float = Field(default=0.7, ge=0.0, le=1.0)
    neuroticism: float = Field(default=0.3, ge=0.0, le=1.0)


MemoryKind = Literal["opinion", "fact", "experience", "preference"]


class KeyMemory(_Document):
    """A single importance-weighted fact or opinion held by a character."""

    kind: MemoryKind = "opinion"
    topic: str
    content: str
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)


class ConversationHistoryEntry(_Document):
    """What a character said about a topic, and in which context."""

    topic: str
    view_expressed: str
    context_summary: str = ""
    timestamp: datetime = Field(default_factory=utc_now)


class MemoryBank(_Document):
    """Persistent per-character record: traits, self-summary, memories, history."""

    character_id: str
    character_name: str
    system_prompt: str = ""
    personality_summary: str = ""
    personality_traits: PersonalityTraits = Field(default_factory=PersonalityTraits)
    key_memories: list[KeyMemory] = Field(default_factory=list)
    conversation_history: list[ConversationHistoryEntry] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utc_now)
