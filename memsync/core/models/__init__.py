"""
Record models shared by the adapters and coordinators.
"""

from memsync.core.models.memory import MemoryRecord, DEFAULT_MEMORY_TYPE
from memsync.core.models.calendar import (
    CalendarEvent,
    CalendarEventCreate,
    CalendarEventPatch,
    EventSearchResult,
    ProviderEvent,
    SyncStatus,
)

__all__ = [
    "MemoryRecord",
    "DEFAULT_MEMORY_TYPE",
    "CalendarEvent",
    "CalendarEventCreate",
    "CalendarEventPatch",
    "EventSearchResult",
    "ProviderEvent",
    "SyncStatus",
]
