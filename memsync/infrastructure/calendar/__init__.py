"""
External calendar adapters - provider client and credential suppliers.
"""

from memsync.infrastructure.calendar.base import CalendarProvider, CredentialProvider
from memsync.infrastructure.calendar.credentials import StaticCredentialProvider
from memsync.infrastructure.calendar.google_calendar import GoogleCalendarProvider

__all__ = [
    "CalendarProvider",
    "CredentialProvider",
    "StaticCredentialProvider",
    "GoogleCalendarProvider",
]
