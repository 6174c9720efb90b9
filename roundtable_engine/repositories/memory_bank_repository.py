"""Repository for memory bank documents (one JSON file per character)."""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from roundtable_engine.models.memory_bank import MemoryBank

logger = logging.getLogger(__name__)


class MemoryStoreError(Exception):
    """Storage I/O failed or a stored document is unreadable."""
    pass


class MemoryBankRepository:
    """
    Durable key-value store of memory banks keyed by character ID.

    Pure data access: no business rules live here. File I/O runs in a worker
    thread so the event loop is never blocked.
    """

    def __init__(self, storage_path: Path = Path("storage/memory_banks")):
        self.storage_path = Path(storage_path)

    async def initialize_storage(self) -> None:
        """Create the storage directory if needed."""
        try:
            await asyncio.to_thread(self.storage_path.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise MemoryStoreError(f"Failed to create memory bank storage {self.storage_path}: {e}")

    def path_for(self, character_id: str) -> Path:
        """
        Document path for a character.

        Raises:
            MemoryStoreError: The ID is empty or would leave the storage directory
        """
        if (
            not character_id
            or any(ch in character_id for ch in ('/', '\\', '\0'))
            or character_id in ('.', '..')
        ):
            raise MemoryStoreError(f"Invalid character ID for memory bank storage: {character_id!r}")
        return self.storage_path / f"{character_id}.json"

    async def load(self, character_id: str) -> Optional[MemoryBank]:
        """
        Load a character's memory bank.

        Returns:
            The memory bank, or None if no document exists yet

        Raises:
            MemoryStoreError: Reading failed or the document is corrupt
        """
        file_path = self.path_for(character_id)
        try:
            raw = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Failed to read memory bank {file_path}: {e}")
            raise MemoryStoreError(f"Failed to read memory bank for '{character_id}': {e}")

        try:
            return MemoryBank.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Corrupt memory bank document {file_path}: {e}")
            raise MemoryStoreError(f"Corrupt memory bank for '{character_id}': {e}")

    async def save(self, bank: MemoryBank) -> None:
        """
        Persist a memory bank, replacing any previous document atomically.

        Raises:
            MemoryStoreError: Writing failed
        """
        file_path = self.path_for(bank.character_id)
        payload = json.dumps(bank.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2)
        try:
            await asyncio.to_thread(self._write_atomic, file_path, payload)
        except OSError as e:
            logger.error(f"Failed to write memory bank {file_path}: {e}")
            raise MemoryStoreError(f"Failed to write memory bank for '{bank.character_id}': {e}")
        logger.debug(f"Saved memory bank: {file_path}")

    async def list_character_ids(self) -> List[str]:
        """IDs of every character with a stored memory bank."""
        if not self.storage_path.exists():
            return []
        paths = await asyncio.to_thread(lambda: sorted(self.storage_path.glob("*.json")))
        return [p.stem for p in paths]

    @staticmethod
    def _write_atomic(file_path: Path, payload: str) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
