"""Semantic memory coordinator."""

from memsync.domain.memory.service import MemoryStore

__all__ = ["MemoryStore"]
