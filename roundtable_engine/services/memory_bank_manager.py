"""
Memory Bank Manager

CRUD and retrieval ranking over per-character memory banks.

A missing bank is never an error here: reads return None or an empty list
and appends are silent no-ops, so callers can treat absence as "character
not warmed up yet". Only storage failures raise (MemoryStoreError).

Every read-modify-write for a character runs under that character's lock,
so concurrent updates for one character are serialized instead of lost.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from roundtable_engine.models.memory_bank import (
    ConversationHistoryEntry,
    KeyMemory,
    MemoryBank,
    PersonalityTraits,
    utc_now,
)
from roundtable_engine.repositories.memory_bank_repository import MemoryBankRepository

logger = logging.getLogger(__name__)


class MemoryBankManager:
    """Manages memory bank lifecycle and memory retrieval for characters."""

    def __init__(self, repository: MemoryBankRepository):
        """
        Initialize the manager.

        Args:
            repository: Storage backend for memory bank documents
        """
        self.repository = repository
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def initialize_storage(self) -> None:
        await self.repository.initialize_storage()

    def _lock_for(self, character_id: str) -> asyncio.Lock:
        return self._locks[character_id]

    # Lifecycle

    def _new_bank(self, character_id: str, character_name: str, system_prompt: str) -> MemoryBank:
        return MemoryBank(
            character_id=character_id,
            character_name=character_name,
            system_prompt=system_prompt,
            personality_summary=f"我是{character_name}，一个具有独特个性的AI角色。",
            personality_traits=PersonalityTraits(),
        )

    async def create_memory_bank(
        self,
        character_id: str,
        character_name: str,
        system_prompt: str,
    ) -> MemoryBank:
        """
        Create and persist a fresh memory bank with default traits.

        Replaces any stored bank for the character; use ensure_memory_bank
        to keep an existing one.

        Args:
            character_id: Character ID (storage key)
            character_name: Display name used in the self-summary
            system_prompt: Persona instructions

        Returns:
            The new memory bank
        """
        bank = self._new_bank(character_id, character_name, system_prompt)
        async with self._lock_for(character_id):
            await self._save(bank)
        logger.info(f"Created memory bank for '{character_name}' ({character_id})")
        return bank

    async def ensure_memory_bank(
        self,
        character_id: str,
        character_name: str,
        system_prompt: str,
    ) -> Tuple[MemoryBank, bool]:
        """
        Return the existing bank, creating a default one on first touch.

        The existence check and the create happen under the character's
        lock, so a bank written concurrently is never replaced.

        Returns:
            (bank, created) where created is True if the bank was new
        """
        async with self._lock_for(character_id):
            bank = await self.repository.load(character_id)
            if bank is not None:
                return bank, False
            bank = self._new_bank(character_id, character_name, system_prompt)
            await self._save(bank)
        logger.info(f"Created memory bank for '{character_name}' ({character_id})")
        return bank, True

    async def get_memory_bank(self, character_id: str) -> Optional[MemoryBank]:
        """Return the character's memory bank, or None if it does not exist yet."""
        return await self.repository.load(character_id)

    async def save_memory_bank(self, character_id: str, bank: MemoryBank) -> None:
        """Overwrite the stored bank. Always stamps last_updated."""
        if bank.character_id != character_id:
            bank = bank.model_copy(update={"character_id": character_id})
        async with self._lock_for(character_id):
            await self._save(bank)

    async def _save(self, bank: MemoryBank) -> None:
        bank.last_updated = utc_now()
        await self.repository.save(bank)

    # Appends and updates

    async def add_key_memory(self, character_id: str, memory: KeyMemory) -> None:
        """Append a key memory. No-op if the bank does not exist."""
        async with self._lock_for(character_id):
            bank = await self.repository.load(character_id)
            if bank is None:
                logger.debug(f"No memory bank for {character_id}; key memory dropped")
                return
            bank.key_memories.append(memory.model_copy(update={"timestamp": utc_now()}))
            await self._save(bank)

    async def add_conversation_history(self, character_id: str, entry: ConversationHistoryEntry) -> None:
        """Append a conversation history entry. No-op if the bank does not exist."""
        async with self._lock_for(character_id):
            bank = await self.repository.load(character_id)
            if bank is None:
                logger.debug(f"No memory bank for {character_id}; history entry dropped")
                return
            bank.conversation_history.append(entry.model_copy(update={"timestamp": utc_now()}))
            await self._save(bank)

    async def record_exchange(
        self,
        character_id: str,
        memory: KeyMemory,
        entry: ConversationHistoryEntry,
    ) -> bool:
        """
        Append a key memory and a history entry in a single write.

        Returns:
            False if the bank does not exist (nothing written)
        """
        async with self._lock_for(character_id):
            bank = await self.repository.load(character_id)
            if bank is None:
                return False
            now = utc_now()
            bank.key_memories.append(memory.model_copy(update={"timestamp": now}))
            bank.conversation_history.append(entry.model_copy(update={"timestamp": now}))
            await self._save(bank)
            return True

    async def update_personality_summary(self, character_id: str, summary: str) -> None:
        """Replace the self-summary. No-op if the bank does not exist."""
        async with self._lock_for(character_id):
            bank = await self.repository.load(character_id)
            if bank is None:
                return
            bank.personality_summary = summary
            await self._save(bank)

    async def update_personality_traits(self, character_id: str, traits: Dict[str, float]) -> None:
        """
        Merge partial trait scores into the bank. Unknown trait names are
        ignored and values are clamped to [0, 1].
        """
        async with self._lock_for(character_id):
            bank = await self.repository.load(character_id)
            if bank is None:
                return
            current = bank.personality_traits.model_dump()
            for name, value in traits.items():
                if name in current:
                    current[name] = min(1.0, max(0.0, float(value)))
                else:
                    logger.warning(f"Ignoring unknown personality trait '{name}'")
            bank.personality_traits = PersonalityTraits(**current)
            await self._save(bank)

    # Retrieval

    async def get_relevant_memories(
        self,
        character_id: str,
        topic: str,
        limit: int = 5,
    ) -> List[KeyMemory]:
        """
        Rank key memories by keyword overlap with a topic.

        The topic is split on whitespace (case-insensitive); each memory
        scores one point per topic token found in its content. Only memories
        scoring above zero are kept, highest first, ties in insertion order.

        Returns:
            Up to `limit` memories; empty when nothing is relevant
        """
        bank = await self.get_memory_bank(character_id)
        if bank is None or limit <= 0:
            return []

        keywords = topic.lower().split()
        if not keywords:
            return []

        scored = []
        for memory in bank.key_memories:
            text = memory.content.lower()
            score = sum(1 for keyword in keywords if keyword in text)
            if score > 0:
                scored.append((score, memory))

        # sort() is stable, so equal scores keep insertion order
        scored.sort(key=lambda item: item[0], reverse=True)
        return [memory for _, memory in scored[:limit]]

    async def get_recent_conversation_history(
        self,
        character_id: str,
        limit: int = 3,
    ) -> List[ConversationHistoryEntry]:
        """The last `limit` history entries, newest first."""
        bank = await self.get_memory_bank(character_id)
        if bank is None or limit <= 0:
            return []
        return list(reversed(bank.conversation_history[-limit:]))

    async def list_character_ids(self) -> List[str]:
        return await self.repository.list_character_ids()
