import logging
from typing import Protocol

from roboshop.integrations.google_calendar import CalendarEvent, GoogleCalendarClient

logger = logging.getLogger(__name__)


class CalendarClientSource(Protocol):
    def ready(self) -> bool:
        ...

    def current_client(self) -> GoogleCalendarClient:
        ...


class CalendarSyncExecutor:
    """Applies one classified action to the remote calendar.

    Stores nothing: callers persist the returned id after ``create`` and clear
    theirs after ``delete``. Failures surface as ``ExternalServiceError``;
    a vanished event as ``ExternalEventMissingError``.
    """

    def __init__(self, provider: CalendarClientSource):
        self.provider = provider

    async def create(self, event: CalendarEvent) -> str:
        client = self.provider.current_client()
        return await client.insert_event(event.calendar_id, event.to_google_event())

    async def update(self, event_id: str, event: CalendarEvent) -> None:
        client = self.provider.current_client()
        await client.patch_event(event.calendar_id, event_id, event.to_google_event())

    async def delete(self, event_id: str, calendar_id: str) -> None:
        client = self.provider.current_client()
        await client.delete_event(calendar_id, event_id)
