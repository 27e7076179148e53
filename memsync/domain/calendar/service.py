"""
CalendarSyncService for MemSync.

Reconciles calendar events between the relational store (authoritative), the
external calendar provider (best-effort mirror) and the vector index (derived,
used for semantic event search).

Conflicting edits made remotely to an event that is already mirrored locally
are not pulled back; the local row wins until it is next pushed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from memsync.core.errors import AuthorizationError, DependencyError, ValidationError
from memsync.core.models import (
    CalendarEvent,
    CalendarEventCreate,
    CalendarEventPatch,
    EventSearchResult,
    ProviderEvent,
)
from memsync.domain.calendar.reconcile import merge_by_start, unmirrored
from memsync.infrastructure.calendar.base import CalendarProvider, CredentialProvider
from memsync.infrastructure.embeddings.base import Embedder
from memsync.infrastructure.persistence import DuckDBStore
from memsync.infrastructure.vector.base import VectorIndex
from memsync.utils.dates import ensure_utc
from memsync.utils.logging import log_error, log_operation

logger = logging.getLogger(__name__)

# Fields that may be patched but never cleared
REQUIRED_FIELDS = ("title", "start", "end", "is_all_day")


def _validation_error(error: PydanticValidationError) -> ValidationError:
    first = error.errors()[0] if error.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(error))
    return ValidationError(f"Invalid event: {location + ': ' if location else ''}{message}", field=location or None)


class CalendarSyncService:
    """Coordinator for calendar events across store, provider and vector index."""

    def __init__(
        self,
        store: DuckDBStore,
        embedder: Embedder,
        vector_index: VectorIndex,
        provider: CalendarProvider,
        credentials: CredentialProvider,
        collection: str = "calendar_events",
        distance: str = "cosine",
    ):
        """Initialize the coordinator.

        Args:
            store: Relational store (ground truth)
            embedder: Embedding adapter
            vector_index: Vector index adapter
            provider: External calendar provider
            credentials: Supplies per-user provider access tokens
            collection: Vector collection holding event points
            distance: Distance metric for the collection
        """
        self.store = store
        self.embedder = embedder
        self.vector_index = vector_index
        self.provider = provider
        self.credentials = credentials
        self.collection = collection
        self.distance = distance

    async def ensure_ready(self) -> None:
        """Open the relational store and create the vector collection. Idempotent."""
        await self.store.connect()
        await self._ensure_collection()

    async def _ensure_collection(self) -> None:
        await self.vector_index.ensure_collection(self.collection, self.embedder.dimension, self.distance)

    # ========== Internal helpers ==========

    async def _index_event(self, event: CalendarEvent, vector: list[float] | None = None) -> None:
        """Upsert the event's vector point. Raises DependencyError on failure."""
        if vector is None:
            vector = await self.embedder.embed(event.embedding_text())
        await self._ensure_collection()
        await self.vector_index.upsert(self.collection, event.id, vector, event.to_payload())

    async def _try_index_event(self, event: CalendarEvent) -> None:
        try:
            await self._index_event(event)
        except DependencyError as e:
            log_error(logger, "index event", e, {"event_id": event.id}, level=logging.WARNING)

    async def _token(self, user_id: str) -> str | None:
        try:
            return await self.credentials.get_access_token(user_id)
        except DependencyError as e:
            log_error(logger, "get access token", e, {"user_id": user_id}, level=logging.WARNING)
            return None

    async def _list_remote(self, user_id: str, start: datetime, end: datetime) -> list[ProviderEvent]:
        token = await self._token(user_id)
        if token is None:
            logger.debug(f"No provider credential for {user_id}; skipping remote fetch")
            return []
        try:
            return await self.provider.list_events(token, start, end)
        except DependencyError as e:
            log_error(logger, "fetch provider events", e, {"user_id": user_id}, level=logging.WARNING)
            return []

    @staticmethod
    def _authorize(event: CalendarEvent, user_id: str) -> None:
        if event.user_id != user_id:
            raise AuthorizationError(
                f"Event {event.id} does not belong to user {user_id}",
                record_id=event.id,
                user_id=user_id,
            )

    # ========== Read paths ==========

    async def fetch_events(self, start: datetime, end: datetime, user_id: str) -> list[CalendarEvent]:
        """Events of ``user_id`` overlapping [start, end], sorted by start.

        Local rows and provider events are fetched concurrently. Provider
        events with no local row are inserted and indexed. Provider failures
        only cost the pull; local results are still returned.
        """
        start, end = ensure_utc(start), ensure_utc(end)
        if end < start:
            raise ValidationError("end must not be before start", field="end")

        try:
            local, remote = await asyncio.gather(
                self.store.find_events_in_range(user_id, start, end),
                self._list_remote(user_id, start, end),
            )
        except DependencyError as e:
            log_error(logger, "fetch local events", e, {"user_id": user_id}, level=logging.WARNING)
            return []

        if not remote:
            return merge_by_start(user_id, local)

        try:
            mirrored = await self.store.find_events_by_external_ids(
                user_id, [event.external_event_id for event in remote]
            )
        except DependencyError as e:
            log_error(logger, "match provider events", e, {"user_id": user_id}, level=logging.WARNING)
            return merge_by_start(user_id, local)

        pulled: list[CalendarEvent] = []
        for remote_event in unmirrored(remote, (event.external_event_id for event in mirrored)):
            try:
                event, created = await self.store.insert_pulled_event(remote_event, user_id)
            except DependencyError as e:
                log_error(
                    logger, "insert pulled event", e,
                    {"external_event_id": remote_event.external_event_id}, level=logging.WARNING,
                )
                continue
            if created:
                await self._try_index_event(event)
            pulled.append(event)

        if pulled:
            log_operation(logger, "Pulled provider events", {"user_id": user_id, "count": len(pulled)})
        return merge_by_start(user_id, local, pulled)

    async def get_event(self, event_id: str, user_id: str) -> CalendarEvent | None:
        """Get an event owned by ``user_id``. None when it does not exist."""
        event = await self.store.get_event(event_id)
        if event is None:
            return None
        self._authorize(event, user_id)
        return event

    async def search_events(self, query: str, user_id: str, limit: int = 5) -> list[EventSearchResult]:
        """Semantic search over one user's events, best match first.

        Results are rebuilt from the index payload and not re-checked against
        the relational store.
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit")

        try:
            vector = await self.embedder.embed(query)
            await self._ensure_collection()
            hits = await self.vector_index.search(self.collection, vector, limit, filters={"user_id": user_id})
        except DependencyError as e:
            log_error(logger, "search events", e, {"user_id": user_id}, level=logging.WARNING)
            return []

        results = []
        for hit in hits:
            try:
                results.append(EventSearchResult.from_payload(hit.id, hit.payload, hit.score))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping event point {hit.id} with unreadable payload: {e}")
        return results

    # ========== Write paths ==========

    async def create_event(
        self,
        data: CalendarEventCreate | dict[str, Any],
        user_id: str,
    ) -> CalendarEvent:
        """Create an event locally, push it to the provider if possible, and index it.

        Raises:
            ValidationError: missing fields or end not after start (nothing stored)
            RelationalStoreError: the row could not be inserted
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")
        if not isinstance(data, CalendarEventCreate):
            try:
                data = CalendarEventCreate.model_validate(data)
            except PydanticValidationError as e:
                raise _validation_error(e) from e

        event = await self.store.insert_event(data, user_id)

        token = await self._token(user_id)
        if token is not None:
            try:
                remote = await self.provider.create_event(
                    token,
                    title=event.title,
                    start=event.start,
                    end=event.end,
                    description=event.description,
                    location=event.location,
                    is_all_day=event.is_all_day,
                )
                event = await self.store.update_event(
                    event.id,
                    {
                        "external_event_id": remote.external_event_id,
                        "external_calendar_id": remote.external_calendar_id,
                        "synced": True,
                    },
                ) or event
            except DependencyError as e:
                log_error(logger, "push new event", e, {"event_id": event.id}, level=logging.WARNING)

        await self._try_index_event(event)
        log_operation(logger, "Created event", {"id": event.id, "status": event.sync_status.value})
        return event

    async def update_event(
        self,
        event_id: str,
        patch: CalendarEventPatch | dict[str, Any],
        user_id: str,
    ) -> CalendarEvent | None:
        """Apply a partial update to an event owned by ``user_id``.

        The relational update is authoritative. A synced event is pushed to the
        provider; if that is not possible the row is flagged ``remote_stale``
        until a later push succeeds.

        Returns:
            The updated event, or None when it does not exist

        Raises:
            AuthorizationError: the event belongs to another user (nothing mutated)
            ValidationError: invalid patch (nothing mutated)
            EmbeddingError: the new embedding could not be computed (nothing mutated)
        """
        if not isinstance(patch, CalendarEventPatch):
            try:
                patch = CalendarEventPatch.model_validate(patch)
            except PydanticValidationError as e:
                raise _validation_error(e) from e

        existing = await self.store.get_event(event_id)
        if existing is None:
            return None
        self._authorize(existing, user_id)

        changes = patch.changes()
        for field_name in REQUIRED_FIELDS:
            if field_name in changes and changes[field_name] is None:
                raise ValidationError(f"{field_name} cannot be cleared", field=field_name)
        if not changes:
            return existing

        proposed = existing.model_copy(update=changes)
        if proposed.end <= proposed.start:
            raise ValidationError("end must be strictly after start", field="end")

        vector = await self.embedder.embed(proposed.embedding_text())

        updated = await self.store.update_event(event_id, changes)
        if updated is None:
            return None

        if updated.external_event_id:
            updated = await self._push_update(updated)

        try:
            await self._index_event(updated, vector)
        except DependencyError as e:
            log_error(logger, "refresh event vector", e, {"event_id": event_id}, level=logging.WARNING)

        log_operation(logger, "Updated event", {"id": event_id, "remote_stale": updated.remote_stale})
        return updated

    async def _push_update(self, event: CalendarEvent) -> CalendarEvent:
        """Push a local update to the provider, maintaining ``remote_stale``."""
        token = await self._token(event.user_id)
        stale = True
        if token is None:
            logger.warning(f"No provider credential for {event.user_id}; remote copy of {event.id} is stale")
        else:
            try:
                await self.provider.update_event(
                    token,
                    event.external_event_id,
                    title=event.title,
                    start=event.start,
                    end=event.end,
                    description=event.description,
                    location=event.location,
                    is_all_day=event.is_all_day,
                )
                stale = False
            except DependencyError as e:
                log_error(logger, "push event update", e, {"event_id": event.id}, level=logging.WARNING)

        if stale == event.remote_stale:
            return event
        try:
            return await self.store.update_event(event.id, {"remote_stale": stale}) or event
        except DependencyError as e:
            log_error(logger, "flag remote_stale", e, {"event_id": event.id})
            return event

    async def delete_event(self, event_id: str, user_id: str) -> bool:
        """Delete an event owned by ``user_id`` everywhere.

        The provider copy is removed best-effort, then the relational row, then
        the vector point.

        Returns:
            True when the row was deleted and the point is gone, False when the
            event does not exist or a store step failed

        Raises:
            AuthorizationError: the event belongs to another user (nothing mutated)
        """
        try:
            existing = await self.store.get_event(event_id)
        except DependencyError as e:
            log_error(logger, "load event", e, {"event_id": event_id})
            return False
        if existing is None:
            return False
        self._authorize(existing, user_id)

        if existing.external_event_id:
            token = await self._token(user_id)
            if token is not None:
                try:
                    await self.provider.delete_event(token, existing.external_event_id)
                except DependencyError as e:
                    log_error(logger, "delete provider event", e, {"event_id": event_id}, level=logging.WARNING)

        try:
            deleted = await self.store.delete_event(event_id)
        except DependencyError as e:
            log_error(logger, "delete event row", e, {"event_id": event_id})
            return False
        if not deleted:
            return False

        try:
            await self.vector_index.delete(self.collection, [event_id])
        except DependencyError as e:
            log_error(logger, "delete event vector", e, {"event_id": event_id, "orphan": True})
            return False

        log_operation(logger, "Deleted event", {"id": event_id})
        return True
