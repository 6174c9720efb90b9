"""
Response Generator

Composes the character prompt from persona, memory and visible history,
sends it through the provider chain, breaks repetition loops and records
the final reply back into the character's memory bank.
"""

import logging
import random
from typing import Callable, List, Optional

import httpx

from roundtable_engine.config.models import (
    AnthropicProviderConfig,
    ApiCredentials,
    CharacterProfile,
    OpenAIProviderConfig,
    SystemConfig,
    ZAIProviderConfig,
)
from roundtable_engine.llm.client import create_llm_client
from roundtable_engine.llm.offline import OfflineResponder
from roundtable_engine.llm.text_normalization import clean_reply_text
from roundtable_engine.models.chat import ChatMessage, GeneratedReply
from roundtable_engine.models.memory_bank import (
    ConversationHistoryEntry,
    KeyMemory,
    MemoryBank,
)
from roundtable_engine.services.memory_bank_manager import MemoryBankManager
from roundtable_engine.services.provider_chain import ProviderChain, ProviderStep
from roundtable_engine.services.repetition_guard import RepetitionGuard
from roundtable_engine.services.topic_extraction import extract_key_opinion, extract_topic

logger = logging.getLogger(__name__)

GENERATION_SYSTEM_PROMPT = (
    "你是一个智能助手，能够根据用户的提示词生成符合角色设定的回复。请严格按照角色设定来回答问题。"
)
NO_CUE_TEXT = "无可用对话线索。"

# Providers tried after the configured one, in order, when a real key exists
ALTERNATE_PROVIDERS = (
    ("zai", ZAIProviderConfig),
    ("openai", OpenAIProviderConfig),
    ("anthropic", AnthropicProviderConfig),
)


class MemoryBankMissingError(Exception):
    """Raised when a reply is requested for a character with no memory bank."""

    def __init__(self, character_id: str):
        super().__init__(f"Memory bank not found for character '{character_id}'")
        self.character_id = character_id


def _reject_empty(text: str) -> str:
    cleaned = clean_reply_text(text)
    if not cleaned:
        raise ValueError("empty reply after cleanup")
    return cleaned


class ResponseGenerator:
    """Generates in-character replies with memory and repetition control."""

    def __init__(
        self,
        memory_manager: MemoryBankManager,
        credentials: ApiCredentials,
        system_config: Optional[SystemConfig] = None,
        repetition_guard: Optional[RepetitionGuard] = None,
        offline_responder: Optional[OfflineResponder] = None,
        client_factory: Callable = create_llm_client,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize generator.

        Args:
            memory_manager: Memory bank access
            credentials: Resolved provider credentials
            system_config: System configuration (defaults when omitted)
            repetition_guard: Shared guard; one is created when omitted
            offline_responder: Terminal responder of the provider chain
            client_factory: Builds LLM clients from provider configs
            transport: Optional httpx transport handed to every client
            rng: Random source for conversation cues and Ollama model choice
        """
        self.memory_manager = memory_manager
        self.credentials = credentials
        self.system_config = system_config or SystemConfig()
        self.rng = rng or random.Random()
        self.repetition_guard = repetition_guard or RepetitionGuard(self.system_config.repetition, rng=self.rng)
        self.offline_responder = offline_responder or OfflineResponder()
        self.client_factory = client_factory
        self.transport = transport

    async def generate_response(
        self,
        character: CharacterProfile,
        message: str,
        context: str,
        recent_messages: List[ChatMessage],
        temperature_override: Optional[float] = None,
        room_id: str = "default",
    ) -> GeneratedReply:
        """
        Generate a reply for a character.

        Args:
            character: Speaking character
            message: Triggering message text
            context: Conversation context passed into the prompt
            recent_messages: Visible messages, newest first
            temperature_override: Beats the character's configured temperature
            room_id: Conversation the reply belongs to (keys repetition state)

        Returns:
            GeneratedReply with the text and the memory context used

        Raises:
            MemoryBankMissingError: If the character has no memory bank
            MemoryStoreError: If the memory bank cannot be read or written
        """
        bank = await self.memory_manager.get_memory_bank(character.id)
        if bank is None:
            raise MemoryBankMissingError(character.id)

        settings = self.system_config.generation
        topic = extract_topic(message)
        relevant_memories = await self.memory_manager.get_relevant_memories(
            character.id, topic, settings.relevant_memory_limit
        )
        recent_history = await self.memory_manager.get_recent_conversation_history(
            character.id, settings.recent_history_limit
        )

        provider_config = character.provider_config
        if temperature_override is not None:
            temperature = temperature_override
        elif provider_config.temperature is not None:
            temperature = provider_config.temperature
        else:
            temperature = settings.default_temperature
        max_tokens = provider_config.max_tokens or settings.default_max_tokens

        # Prompt history reads oldest to newest
        chronological = list(reversed(recent_messages))

        guard = self.repetition_guard
        repetition = self.system_config.repetition
        window = guard.key(character.id, room_id)

        chain = self._build_chain(character, message, temperature, max_tokens)
        try:
            regenerations = 0
            redirect = ""
            stuck_text: Optional[str] = None
            while True:
                prompt = self.build_prompt(
                    character, bank, message, context, chronological,
                    relevant_memories, recent_history, redirect,
                )
                result = await chain.run(
                    prompt,
                    system_prompt=GENERATION_SYSTEM_PROMPT,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    accept=_reject_empty,
                    character_id=character.id,
                    interaction_type="generation",
                )
                text = result.value
                provider = result.provider

                stuck = guard.record(window, text)
                if stuck_text is not None and guard.is_similar(text, stuck_text):
                    stuck = True
                if not stuck:
                    break

                if regenerations >= repetition.max_regenerations:
                    logger.warning(f"{character.name} is still repeating after {regenerations} regeneration(s)")
                    guard.clear(window)
                    break

                logger.warning(f"Repetition detected for {character.name} in room {room_id}; regenerating")
                guard.clear(window)
                stuck_text = text
                redirect = guard.pick_redirect()
                regenerations += 1
        finally:
            await chain.aclose()

        reply_text = text
        if stuck:
            reply_text = repetition.marker + text

        await self.memory_manager.record_exchange(
            character.id,
            KeyMemory(
                kind="opinion",
                topic=topic,
                content=extract_key_opinion(text),
                importance=settings.key_memory_importance,
            ),
            ConversationHistoryEntry(
                topic=topic,
                view_expressed=text,
                context_summary=context[: settings.context_summary_chars] + "...",
            ),
        )

        return GeneratedReply(
            text=reply_text,
            memory_snapshot={
                "relevant_memories": [m.model_dump(mode="json") for m in relevant_memories],
                "recent_history": [h.model_dump(mode="json") for h in recent_history],
                "personality_traits": bank.personality_traits.model_dump(),
                "system_prompt": character.system_prompt,
            },
            provider=provider,
            regenerations=regenerations,
        )

    def _build_chain(
        self, character: CharacterProfile, message: str, temperature: float, max_tokens: int
    ) -> ProviderChain:
        endpoints = self.system_config.providers
        configured = character.provider_config

        steps = [ProviderStep(configured.provider, self.client_factory(
            configured, self.credentials, endpoints,
            temperature=temperature, max_tokens=max_tokens,
            transport=self.transport, rng=self.rng,
        ))]
        for name, config_class in ALTERNATE_PROVIDERS:
            if name == configured.provider or not self.credentials.has_real_key(name):
                continue
            steps.append(ProviderStep(name, self.client_factory(
                config_class(), self.credentials, endpoints,
                temperature=temperature, max_tokens=max_tokens,
                transport=self.transport, rng=self.rng,
            )))

        # The offline responder keys off the user's message, not the full
        # prompt, whose boilerplate would match every keyword set
        return ProviderChain(
            steps,
            terminal=lambda _prompt: self.offline_responder.respond(message),
            terminal_name=self.offline_responder.provider_name,
        )

    def _message_line(self, msg: ChatMessage, character: CharacterProfile) -> str:
        if msg.sender_type == "user":
            speaker = "用户"
        elif msg.sender_type == "system":
            speaker = "系统"
        else:
            speaker = msg.sender_name or character.name
        return f"{speaker}: {msg.content} (话题: {msg.topic or '未知'})"

    def _random_cue(self, chronological: List[ChatMessage], character: CharacterProfile) -> str:
        if not chronological:
            return NO_CUE_TEXT
        window = chronological[-self.system_config.generation.random_cue_window:]
        return self._message_line(self.rng.choice(window), character)

    def build_prompt(
        self,
        character: CharacterProfile,
        bank: MemoryBank,
        message: str,
        context: str,
        chronological: List[ChatMessage],
        relevant_memories: List[KeyMemory],
        recent_history: List[ConversationHistoryEntry],
        redirect: str = "",
    ) -> str:
        """Render the generation prompt. A redirect phrase, if any, leads it."""
        memories = "\n".join(f"- {m.content}" for m in relevant_memories)
        history = "\n".join(self._message_line(m, character) for m in chronological)
        views = "\n".join(f"- 关于{h.topic}：{h.view_expressed}" for h in recent_history)

        prompt = f"""
你是一个名为{character.name}的AI角色。请基于以下信息生成回复：

角色设定：
{character.system_prompt}

个人总结：
{bank.personality_summary}

相关记忆：
{memories}

完整对话历史：
{history}

随机选择的对话线索：
{self._random_cue(chronological, character)}

最近对话历史（记忆）：
{views}

当前话题：{extract_topic(message)}
对话上下文：{context}
用户消息：{message}

请以{character.name}的身份回复这条消息。要求：
1. 保持与角色设定的一致性
2. 考虑相关的历史记忆和观点
3. 确保回复逻辑连贯，不与之前的观点矛盾
4. 体现角色的性格特征
5. 回复要自然、流畅，符合对话场景

请直接回复内容，不要包含任何解释或思考过程。
"""
        if redirect:
            prompt = f"{redirect} {prompt}"
        return prompt
