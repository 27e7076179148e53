"""
Calendar event models for MemSync.

The relational store owns an event's identity (``id``). A provider copy, when
one exists, is linked through ``external_event_id``. Sync status follows:

    local_only --(provider create succeeds)--> synced
    synced     --(provider update fails)-----> synced, remote_stale=True
    any        --(delete)--------------------> row removed
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from memsync.utils.dates import ensure_utc, parse_iso


# ============================================================================
# Enums
# ============================================================================


class SyncStatus(str, Enum):
    """Relationship between a local event and its provider copy."""
    LOCAL_ONLY = "local_only"
    SYNCED = "synced"


# ============================================================================
# Stored event
# ============================================================================


class CalendarEvent(BaseModel):
    """A calendar event row from the relational store."""

    id: str
    title: str
    start: datetime
    end: datetime
    description: str | None = None
    location: str | None = None
    is_all_day: bool = False
    user_id: str
    external_event_id: str | None = None
    external_calendar_id: str | None = None
    synced: bool = False
    remote_stale: bool = False

    @property
    def sync_status(self) -> SyncStatus:
        if self.synced and self.external_event_id:
            return SyncStatus.SYNCED
        return SyncStatus.LOCAL_ONLY

    def embedding_text(self) -> str:
        """Text embedded into the vector index for this event."""
        return f"{self.title} {self.description or ''}".strip()

    def to_payload(self) -> dict[str, Any]:
        """Denormalized, filterable fields stored with the vector point."""
        return {
            "record_id": self.id,
            "title": self.title,
            "description": self.description or "",
            "location": self.location or "",
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "is_all_day": self.is_all_day,
            "user_id": self.user_id,
            "type": "calendar_event",
        }


# ============================================================================
# Inputs
# ============================================================================


class CalendarEventCreate(BaseModel):
    """Validated input for creating an event."""

    title: str = Field(min_length=1)
    start: datetime
    end: datetime
    description: str | None = None
    location: str | None = None
    is_all_day: bool = False

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value.strip()

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> "CalendarEventCreate":
        if self.end <= self.start:
            raise ValueError("end must be strictly after start")
        return self


class CalendarEventPatch(BaseModel):
    """Partial update for an event. Only explicitly set fields are applied."""

    title: str | None = Field(default=None, min_length=1)
    start: datetime | None = None
    end: datetime | None = None
    description: str | None = None
    location: str | None = None
    is_all_day: bool | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("title must not be blank")
        return value.strip() if value is not None else None

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ============================================================================
# Search results
# ============================================================================


class EventSearchResult(BaseModel):
    """An event reconstructed from a vector payload, with its similarity score.

    Built from the index alone, so it may describe an event deleted after the
    last successful index write.
    """

    id: str
    title: str
    start: datetime
    end: datetime
    description: str | None = None
    location: str | None = None
    is_all_day: bool = False
    user_id: str
    score: float

    @classmethod
    def from_payload(cls, point_id: str, payload: dict[str, Any], score: float) -> "EventSearchResult":
        return cls(
            id=payload.get("record_id", point_id),
            title=payload.get("title", ""),
            start=parse_iso(payload["start"]),
            end=parse_iso(payload["end"]),
            description=payload.get("description") or None,
            location=payload.get("location") or None,
            is_all_day=bool(payload.get("is_all_day", False)),
            user_id=payload["user_id"],
            score=score,
        )


# ============================================================================
# Provider shape
# ============================================================================


class ProviderEvent(BaseModel):
    """An event as reported by the external calendar provider, normalized."""

    external_event_id: str
    external_calendar_id: str
    title: str
    start: datetime
    end: datetime
    description: str | None = None
    location: str | None = None
    is_all_day: bool = False

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)
