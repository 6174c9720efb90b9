"""Engine services."""

from .memory_bank_manager import MemoryBankManager
from .interest_evaluator import InterestEvaluator
from .participant_selection import select_participants
from .provider_chain import ChainResult, ProviderChain, ProviderOutcome, ProviderStep
from .repetition_guard import RepetitionGuard
from .response_generator import MemoryBankMissingError, ResponseGenerator
from .conversation_orchestrator import ConversationOrchestrator, RoundResult, CharacterReply
from .topic_extraction import extract_key_opinion, extract_topic

__all__ = [
    "MemoryBankManager",
    "InterestEvaluator",
    "select_participants",
    "ChainResult",
    "ProviderChain",
    "ProviderOutcome",
    "ProviderStep",
    "RepetitionGuard",
    "MemoryBankMissingError",
    "ResponseGenerator",
    "ConversationOrchestrator",
    "RoundResult",
    "CharacterReply",
    "extract_key_opinion",
    "extract_topic",
]
