"""Test doubles shared by the MemSync test-suite."""

from __future__ import annotations

import hashlib
import itertools
import math
import re
from datetime import datetime
from typing import Any, Sequence

from memsync.core.errors import CalendarProviderError, EmbeddingError, ValidationError, VectorIndexError
from memsync.core.models import ProviderEvent
from memsync.infrastructure.vector.base import VectorHit
from memsync.utils.dates import ensure_utc

TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


class HashingEmbedder:
    """Deterministic bag-of-words embedder.

    Each token is hashed into a bucket; bucket 0 is always set so no vector is
    ever zero. Texts sharing words get a higher cosine similarity.
    """

    def __init__(self, dimension: int = 64):
        self._dimension = dimension
        self.calls: list[str] = []
        self.fail = False

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Cannot embed empty text", field="text")
        if self.fail:
            raise EmbeddingError("embedding service unavailable")

        self.calls.append(text)
        vector = [0.0] * self._dimension
        vector[0] = 1.0
        for token in TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            bucket = 1 + int.from_bytes(digest[:4], "big") % (self._dimension - 1)
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector]

    async def close(self) -> None:
        pass


class FlakyVectorIndex:
    """Wraps a real VectorIndex and fails selected operations on demand."""

    def __init__(self, inner):
        self.inner = inner
        self.fail_upsert = False
        self.fail_search = False
        self.fail_delete = False

    async def ensure_collection(self, name: str, dimension: int, distance: str = "cosine") -> None:
        await self.inner.ensure_collection(name, dimension, distance)

    async def upsert(self, collection: str, point_id: str, vector: Sequence[float], payload: dict[str, Any]) -> None:
        if self.fail_upsert:
            raise VectorIndexError("upsert unavailable")
        await self.inner.upsert(collection, point_id, vector, payload)

    async def search(
        self,
        collection: str,
        vector: Sequence[float],
        limit: int,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        if self.fail_search:
            raise VectorIndexError("search unavailable")
        return await self.inner.search(collection, vector, limit, filters)

    async def delete(self, collection: str, ids: Sequence[str]) -> None:
        if self.fail_delete:
            raise VectorIndexError("delete unavailable")
        await self.inner.delete(collection, ids)

    async def list_ids(self, collection: str) -> list[str]:
        return await self.inner.list_ids(collection)

    async def close(self) -> None:
        await self.inner.close()


class FakeCalendarProvider:
    """In-memory calendar provider keyed by external event id."""

    def __init__(self, calendar_id: str = "primary"):
        self.calendar_id = calendar_id
        self.events: dict[str, ProviderEvent] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail: set[str] = set()
        self._ids = itertools.count(1)

    def add_remote(
        self,
        title: str,
        start: datetime,
        end: datetime,
        description: str | None = None,
        external_event_id: str | None = None,
    ) -> ProviderEvent:
        event = ProviderEvent(
            external_event_id=external_event_id or f"g-{next(self._ids)}",
            external_calendar_id=self.calendar_id,
            title=title,
            start=start,
            end=end,
            description=description,
        )
        self.events[event.external_event_id] = event
        return event

    def _check(self, operation: str, access_token: str) -> None:
        self.calls.append((operation, access_token))
        if operation in self.fail:
            raise CalendarProviderError(f"{operation} unavailable", status_code=503)

    async def list_events(self, access_token: str, start: datetime, end: datetime) -> list[ProviderEvent]:
        self._check("list", access_token)
        start, end = ensure_utc(start), ensure_utc(end)
        return sorted(
            (event for event in self.events.values() if event.start <= end and event.end >= start),
            key=lambda event: event.start,
        )

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
        self._check("create", access_token)
        event = self.add_remote(title, start, end, description)
        event = event.model_copy(update={"location": location, "is_all_day": is_all_day})
        self.events[event.external_event_id] = event
        return event

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
        self._check("update", access_token)
        event = ProviderEvent(
            external_event_id=external_event_id,
            external_calendar_id=self.calendar_id,
            title=title,
            start=start,
            end=end,
            description=description,
            location=location,
            is_all_day=is_all_day,
        )
        self.events[external_event_id] = event
        return event

    async def delete_event(self, access_token: str, external_event_id: str) -> None:
        self._check("delete", access_token)
        self.events.pop(external_event_id, None)

    async def close(self) -> None:
        pass
