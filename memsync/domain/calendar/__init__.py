"""Calendar sync coordinator and reconciliation helpers."""

from memsync.domain.calendar.reconcile import merge_by_start, unmirrored
from memsync.domain.calendar.service import CalendarSyncService

__all__ = ["CalendarSyncService", "merge_by_start", "unmirrored"]
