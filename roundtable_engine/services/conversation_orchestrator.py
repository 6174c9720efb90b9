"""
Conversation Orchestrator

Runs one round of a multi-character conversation:
message -> evaluate every active character -> select speakers ->
generate replies one after another -> memory updated by the generator.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import httpx

from roundtable_engine.config.models import ApiCredentials, CharacterProfile, SystemConfig
from roundtable_engine.models.chat import (
    ChatMessage,
    GeneratedReply,
    InterestEvaluation,
    ParticipantSelection,
)
from roundtable_engine.repositories.memory_bank_repository import (
    MemoryBankRepository,
    MemoryStoreError,
)
from roundtable_engine.services.interest_evaluator import InterestEvaluator
from roundtable_engine.services.memory_bank_manager import MemoryBankManager
from roundtable_engine.services.participant_selection import select_participants
from roundtable_engine.services.repetition_guard import RepetitionGuard
from roundtable_engine.services.response_generator import (
    MemoryBankMissingError,
    ResponseGenerator,
)
from roundtable_engine.services.topic_extraction import extract_topic

logger = logging.getLogger(__name__)

# Messages rendered into the interest evaluation context
EVALUATION_CONTEXT_MESSAGES = 10


@dataclass
class CharacterReply:
    """A reply produced during a round."""
    selection: ParticipantSelection
    reply: GeneratedReply
    message: ChatMessage


@dataclass
class RoundResult:
    """Everything that happened in one round."""
    topic: str
    evaluations: Dict[str, InterestEvaluation] = field(default_factory=dict)
    participants: List[ParticipantSelection] = field(default_factory=list)
    replies: List[CharacterReply] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


def render_evaluation_context(
    messages: Sequence[ChatMessage],
    character: CharacterProfile,
    limit: int = EVALUATION_CONTEXT_MESSAGES,
) -> str:
    """
    Render recent messages (newest first) as chronological text from one
    character's point of view; other characters appear as '其他角色'.
    """
    lines = []
    for msg in reversed(list(messages)[:limit]):
        if msg.sender_type == "user":
            lines.append(f"用户: {msg.content}")
        elif msg.sender_type == "character":
            speaker = character.name if msg.sender_id == character.id else "其他角色"
            lines.append(f"{speaker}: {msg.content}")
        else:
            lines.append(f"系统: {msg.content}")
    return "\n".join(lines)


class ConversationOrchestrator:
    """Coordinates interest evaluation, speaker selection and reply generation."""

    def __init__(
        self,
        memory_manager: MemoryBankManager,
        evaluator: InterestEvaluator,
        generator: ResponseGenerator,
        system_config: Optional[SystemConfig] = None,
    ):
        self.memory_manager = memory_manager
        self.evaluator = evaluator
        self.generator = generator
        self.system_config = system_config or SystemConfig()

    @classmethod
    def from_config(
        cls,
        system_config: SystemConfig,
        credentials: ApiCredentials,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ) -> "ConversationOrchestrator":
        """Wire the full engine from configuration."""
        rng = rng or random.Random()
        repository = MemoryBankRepository(system_config.paths.memory_banks)
        memory_manager = MemoryBankManager(repository)
        evaluator = InterestEvaluator(
            memory_manager, credentials, system_config, transport=transport, rng=rng,
        )
        generator = ResponseGenerator(
            memory_manager,
            credentials,
            system_config,
            repetition_guard=RepetitionGuard(system_config.repetition, rng=rng),
            transport=transport,
            rng=rng,
        )
        return cls(memory_manager, evaluator, generator, system_config)

    async def warm_up(self, characters: Sequence[CharacterProfile]) -> List[str]:
        """
        Make sure every character has a memory bank.

        Returns:
            IDs of characters whose bank was created now
        """
        await self.memory_manager.initialize_storage()
        created = []
        for character in characters:
            _, was_created = await self.memory_manager.ensure_memory_bank(
                character.id, character.name, character.system_prompt
            )
            if was_created:
                created.append(character.id)
        if created:
            logger.info(f"Initialized memory banks for {len(created)} character(s)")
        return created

    async def evaluate_all(
        self,
        characters: Sequence[CharacterProfile],
        message: str,
        recent_messages: Sequence[ChatMessage],
    ) -> List[InterestEvaluation]:
        """Evaluate every character concurrently, in input order."""
        return await asyncio.gather(*(
            self.evaluator.evaluate_interest(
                character, message, render_evaluation_context(recent_messages, character)
            )
            for character in characters
        ))

    async def handle_message(
        self,
        characters: Sequence[CharacterProfile],
        message: str,
        room_id: str = "default",
        recent_messages: Optional[Sequence[ChatMessage]] = None,
        temperature_override: Optional[float] = None,
    ) -> RoundResult:
        """
        Run a full round for a user message.

        Args:
            characters: Characters present in the room
            message: The user's message
            room_id: Conversation identifier
            recent_messages: Visible history, newest first, excluding `message`
            temperature_override: Applied to every reply in this round

        Returns:
            RoundResult; empty when no character is active
        """
        topic = extract_topic(message)
        result = RoundResult(topic=topic)

        active = [c for c in characters if c.is_active]
        if not active:
            logger.debug("No active characters; skipping round")
            return result

        visible: List[ChatMessage] = list(recent_messages or [])
        evaluations = await self.evaluate_all(active, message, visible)
        result.evaluations = {c.id: e for c, e in zip(active, evaluations)}

        result.participants = select_participants(
            list(zip(active, evaluations)),
            self.system_config.participation.min_participants,
        )
        logger.info(
            f"Round in {room_id}: {len(result.participants)} of {len(active)} character(s) will reply"
        )

        visible.insert(0, ChatMessage(sender_type="user", content=message, topic=topic))
        delay = self.system_config.participation.reply_delay_seconds

        for index, selection in enumerate(result.participants):
            character = selection.character
            if index and delay:
                await asyncio.sleep(delay)
            try:
                reply = await self.generator.generate_response(
                    character,
                    message,
                    message,
                    visible,
                    temperature_override=temperature_override,
                    room_id=room_id,
                )
            except (MemoryBankMissingError, MemoryStoreError) as e:
                logger.error(f"Skipping {character.name} this round: {e}")
                result.failures[character.id] = str(e)
                continue

            reply_message = ChatMessage(
                sender_type="character",
                content=reply.text,
                sender_id=character.id,
                sender_name=character.name,
                topic=topic,
            )
            # Later speakers see earlier replies
            visible.insert(0, reply_message)
            result.replies.append(CharacterReply(selection=selection, reply=reply, message=reply_message))

        return result
