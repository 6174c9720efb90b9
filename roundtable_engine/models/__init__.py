"""Models package for Roundtable Engine."""

from .memory_bank import (
    MemoryBank,
    KeyMemory,
    ConversationHistoryEntry,
    PersonalityTraits,
)
from .chat import ChatMessage, InterestEvaluation, GeneratedReply, ParticipantSelection

__all__ = [
    "MemoryBank",
    "KeyMemory",
    "ConversationHistoryEntry",
    "PersonalityTraits",
    "ChatMessage",
    "InterestEvaluation",
    "GeneratedReply",
    "ParticipantSelection",
]
