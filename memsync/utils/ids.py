"""
ID generation utilities for MemSync.

Record ids double as vector point ids, and Qdrant only accepts unsigned
integers or UUIDs, so every id is a canonical UUID string.
"""

from __future__ import annotations

import uuid


def generate_id() -> str:
    """Generate a new record identifier.

    Example:
        >>> generate_id()
        '3f2b8c1e-5d7a-4e0f-9b1c-2a6d8e4f7c90'
    """
    return str(uuid.uuid4())


def is_valid_id(record_id: str) -> bool:
    """Check if a string is a canonical UUID record id."""
    try:
        return str(uuid.UUID(record_id)) == record_id
    except (ValueError, TypeError, AttributeError):
        return False
