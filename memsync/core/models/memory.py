"""
Memory record model for MemSync.

A MemoryRecord is owned by the relational store. The vector index only keeps a
point with the same id, so ``vector_id`` is either ``None`` (not indexed yet, or
indexing failed and is waiting for a reindex) or equal to ``id``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

DEFAULT_MEMORY_TYPE = "general"


class MemoryRecord(BaseModel):
    """A semantic memory stored in the relational store."""

    id: str
    content: str
    type: str = DEFAULT_MEMORY_TYPE
    user_id: str | None = None
    vector_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_indexed(self) -> bool:
        return self.vector_id is not None

    def to_payload(self) -> dict[str, Any]:
        """Denormalized fields stored alongside the vector point."""
        return {
            "record_id": self.id,
            "content": self.content,
            "type": self.type,
            "user_id": self.user_id,
        }
