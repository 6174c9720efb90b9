"""Ephemeral conversation models (never persisted by the engine)."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from roundtable_engine.config.models import CharacterProfile


class ChatMessage(BaseModel):
    """A visible message in a room, as supplied by the surrounding application."""

    sender_type: Literal["user", "character", "system"] = "user"
    content: str
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    topic: Optional[str] = None


class InterestEvaluation(BaseModel):
    """Scored decision of whether a character engages with a topic."""

    score: float = Field(ge=0.0, le=1.0)
    reason: str
    should_participate: bool
    # uninitialized | demo | <provider name> | fallback
    source: str = "fallback"


class GeneratedReply(BaseModel):
    """A reply plus the exact memory context used to produce it."""

    text: str
    memory_snapshot: dict[str, Any] = Field(default_factory=dict)
    provider: str = "offline"
    regenerations: int = 0


class ParticipantSelection(BaseModel):
    """A character chosen to speak in the current round."""

    character: CharacterProfile
    evaluation: InterestEvaluation
    forced: bool = False
    reason: str = ""
