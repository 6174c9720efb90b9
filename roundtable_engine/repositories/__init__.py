"""Repository layer for data access."""

from .memory_bank_repository import MemoryBankRepository, MemoryStoreError

__all__ = [
    "MemoryBankRepository",
    "MemoryStoreError",
]
