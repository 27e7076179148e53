"""
External calendar provider and credential protocols for MemSync.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from memsync.core.models import ProviderEvent


@runtime_checkable
class CalendarProvider(Protocol):
    """Per-credential list/create/update/delete against an external calendar."""

    async def list_events(self, access_token: str, start: datetime, end: datetime) -> list[ProviderEvent]:
        ...

    async def create_event(
        self,
        access_token: str,
        title: str,
        start: datetime,
        end: datetime,
        description: str | None = None,
        location: str | None = None,
        is_all_day: bool = False,
    ) -> ProviderEvent:
        """Create the event remotely and return it with its provider-assigned id."""
        ...

    async def update_event(
        self,
        access_token: str,
        external_event_id: str,
        title: str,
        start: datetime,
        end: datetime,
        description: str | None = None,
        location: str | None = None,
        is_all_day: bool = False,
    ) -> ProviderEvent:
        ...

    async def delete_event(self, access_token: str, external_event_id: str) -> None:
        """Delete remotely. An already-deleted event is not an error."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class CredentialProvider(Protocol):
    """Supplies a user's provider access token.

    ``None`` means provider sync is unavailable for that user, which is not an error.
    """

    async def get_access_token(self, user_id: str) -> str | None:
        ...
