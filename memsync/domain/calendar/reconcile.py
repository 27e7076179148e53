"""
Reconciliation helpers for calendar sync.

Pure functions over already-fetched events; no store access.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from memsync.core.models import CalendarEvent, ProviderEvent


def unmirrored(remote: Sequence[ProviderEvent], mirrored_external_ids: Iterable[str]) -> list[ProviderEvent]:
    """Provider events with no local row yet, each external id at most once."""
    seen = set(mirrored_external_ids)
    missing = []
    for event in remote:
        if event.external_event_id in seen:
            continue
        seen.add(event.external_event_id)
        missing.append(event)
    return missing


def merge_by_start(user_id: str, *groups: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    """Merge event groups for one user: one entry per id, sorted by start.

    Events of any other user are dropped.
    """
    merged: dict[str, CalendarEvent] = {}
    for group in groups:
        for event in group:
            if event.user_id == user_id:
                merged.setdefault(event.id, event)
    return sorted(merged.values(), key=lambda event: (event.start, event.id))
