"""
Google Calendar provider for MemSync.

Talks to the Calendar v3 REST API with per-user bearer tokens. Every call takes
the access token explicitly; the client itself holds no credentials.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from memsync.core.errors import CalendarProviderError, ProviderAuthenticationError
from memsync.core.models import ProviderEvent
from memsync.utils.dates import ensure_utc, parse_iso

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


class GoogleCalendarProvider:
    """Calendar v3 REST client implementing the CalendarProvider protocol."""

    DEFAULT_BASE_URL = "https://www.googleapis.com/calendar/v3"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        calendar_id: str = "primary",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the provider.

        Args:
            base_url: Calendar API base URL
            calendar_id: Calendar to operate on ('primary' is the user's main calendar)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.calendar_id = calendar_id
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def events_path(self) -> str:
        return f"/calendars/{quote(self.calendar_id, safe='')}/events"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def _extract_error_message(self, response: httpx.Response) -> str:
        try:
            error_data = response.json()
            return error_data.get("error", {}).get("message", str(error_data))
        except (json.JSONDecodeError, AttributeError):
            return (response.text or "")[:500] or f"HTTP {response.status_code}"

    def _handle_error(self, response: httpx.Response) -> None:
        """Handle API error responses."""
        error_message = self._extract_error_message(response)

        if response.status_code == 401:
            raise ProviderAuthenticationError(
                f"Calendar authentication failed: {error_message}",
                status_code=response.status_code,
            )
        raise CalendarProviderError(
            f"Calendar API error: {error_message}",
            status_code=response.status_code,
        )

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        params: dict | None = None,
        body: dict | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(
                method,
                path,
                params=params,
                json=body,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise CalendarProviderError(f"Calendar request failed: {e}") from e

    # ========== Conversion ==========

    def _to_provider_event(self, item: dict[str, Any]) -> ProviderEvent:
        start = item.get("start", {})
        end = item.get("end", {})
        return ProviderEvent(
            external_event_id=item["id"],
            external_calendar_id=self.calendar_id,
            title=item.get("summary") or UNTITLED,
            start=parse_iso(start.get("dateTime") or start["date"]),
            end=parse_iso(end.get("dateTime") or end["date"]),
            description=item.get("description") or None,
            location=item.get("location") or None,
            # Events without a dateTime are all-day events
            is_all_day="dateTime" not in start,
        )

    @staticmethod
    def _to_body(
        title: str,
        start: datetime,
        end: datetime,
        description: str | None,
        location: str | None,
        is_all_day: bool,
    ) -> dict[str, Any]:
        start, end = ensure_utc(start), ensure_utc(end)
        if is_all_day:
            start_field = {"date": start.date().isoformat()}
            end_field = {"date": end.date().isoformat()}
        else:
            start_field = {"dateTime": start.isoformat()}
            end_field = {"dateTime": end.isoformat()}
        return {
            "summary": title,
            "description": description or "",
            "location": location or "",
            "start": start_field,
            "end": end_field,
        }

    # ========== Operations ==========

    async def list_events(self, access_token: str, start: datetime, end: datetime) -> list[ProviderEvent]:
        """List single (expanded) events between start and end, following pagination."""
        params: dict[str, Any] = {
            "timeMin": ensure_utc(start).isoformat(),
            "timeMax": ensure_utc(end).isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        events: list[ProviderEvent] = []

        while True:
            response = await self._request("GET", self.events_path, access_token, params=params)
            if response.status_code >= 400:
                self._handle_error(response)

            data = response.json()
            for item in data.get("items", []):
                if item.get("status") == "cancelled":
                    continue
                try:
                    events.append(self._to_provider_event(item))
                except (KeyError, ValueError) as e:
                    logger.warning(f"Skipping malformed calendar item {item.get('id')}: {e}")

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}

        logger.debug(f"Listed {len(events)} provider events")
        return events

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
        body = self._to_body(title, start, end, description, location, is_all_day)
        response = await self._request("POST", self.events_path, access_token, body=body)
        if response.status_code >= 400:
            self._handle_error(response)

        created = self._to_provider_event(response.json())
        logger.info(f"Created provider event {created.external_event_id}")
        return created

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
        body = self._to_body(title, start, end, description, location, is_all_day)
        path = f"{self.events_path}/{quote(external_event_id, safe='')}"
        response = await self._request("PUT", path, access_token, body=body)
        if response.status_code >= 400:
            self._handle_error(response)
        return self._to_provider_event(response.json())

    async def delete_event(self, access_token: str, external_event_id: str) -> None:
        path = f"{self.events_path}/{quote(external_event_id, safe='')}"
        response = await self._request("DELETE", path, access_token)
        if response.status_code in (404, 410):
            logger.info(f"Provider event {external_event_id} already deleted")
            return
        if response.status_code >= 400:
            self._handle_error(response)

    # ========== Lifecycle ==========

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
