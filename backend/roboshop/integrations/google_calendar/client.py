"""Thin async client for the Google Calendar v3 events API"""

import asyncio
import logging
from typing import Any, Callable, Optional
from urllib.parse import quote
from uuid import uuid4

import aiohttp
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from roboshop.core.config import CALENDAR_MAX_ATTEMPTS, CALENDAR_TIMEOUT_SECONDS
from roboshop.core.errors import ExternalEventMissingError, ExternalServiceError

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class TransientCalendarError(ExternalServiceError):
    """Timeouts, connection failures, 429 and 5xx. Worth another attempt."""


class GoogleCalendarClient:
    """Insert, patch and delete events with one bearer token.

    aiohttp errors never leave this class: every failure is an
    ``ExternalServiceError`` (404/410 as ``ExternalEventMissingError``).
    """

    def __init__(
        self,
        access_token: str,
        timeout: float = CALENDAR_TIMEOUT_SECONDS,
        session_factory: Callable[..., Any] = aiohttp.ClientSession,
    ):
        self.access_token = access_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session_factory = session_factory

    async def insert_event(self, calendar_id: str, event: dict) -> str:
        """Create an event under an id chosen here.

        The POST is retried on transient failures, so an attempt that timed out
        may still have created the event. Google answers 409 to a repeated id,
        which then means the event already exists.
        """
        event_id = event.get("id") or uuid4().hex
        try:
            data = await self._send(
                "POST", self._events_path(calendar_id), json={**event, "id": event_id}
            )
        except ExternalServiceError as e:
            if e.status != 409:
                raise
            logger.info(f"Event {event_id} already exists in calendar {calendar_id}")
            return event_id
        event_id = (data or {}).get("id") or event_id
        logger.info(f"Created event {event_id} in calendar {calendar_id}")
        return event_id

    async def patch_event(self, calendar_id: str, event_id: str, event: dict) -> None:
        await self._send(
            "PATCH", f"{self._events_path(calendar_id)}/{quote(event_id, safe='')}", json=event
        )
        logger.info(f"Updated event {event_id} in calendar {calendar_id}")

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        await self._send("DELETE", f"{self._events_path(calendar_id)}/{quote(event_id, safe='')}")
        logger.info(f"Deleted event {event_id} from calendar {calendar_id}")

    @staticmethod
    def _events_path(calendar_id: str) -> str:
        return f"/calendars/{quote(calendar_id, safe='')}/events"

    @retry(
        stop=stop_after_attempt(CALENDAR_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.2, max=2),
        retry=retry_if_exception_type(TransientCalendarError),
        reraise=True,
    )
    async def _send(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
    ) -> Optional[dict]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            async with self._session_factory(timeout=self.timeout) as session:
                async with session.request(
                    method, f"{GOOGLE_CALENDAR_API}{path}", headers=headers, json=json
                ) as resp:
                    if resp.status in (404, 410):
                        raise ExternalEventMissingError(
                            f"{method} {path}: event not found", status=resp.status
                        )
                    if resp.status == 429 or resp.status >= 500:
                        error_text = await resp.text()
                        logger.warning(f"Calendar {method} {path} returned {resp.status}: {error_text}")
                        raise TransientCalendarError(
                            f"Calendar service error {resp.status}", status=resp.status
                        )
                    if resp.status >= 400:
                        error_text = await resp.text()
                        logger.error(f"Calendar {method} {path} rejected ({resp.status}): {error_text}")
                        raise ExternalServiceError(
                            f"Calendar rejected request: {resp.status}", status=resp.status
                        )
                    if resp.status == 204:
                        return None
                    return await resp.json()
        except asyncio.TimeoutError as e:
            logger.warning(f"Calendar {method} {path} timed out")
            raise TransientCalendarError("Calendar request timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"Calendar {method} {path} failed: {e}")
            raise TransientCalendarError(f"Calendar unreachable: {e}") from e
