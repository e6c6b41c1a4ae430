"""Google Calendar Integration"""

from .client import GoogleCalendarClient
from .models import CalendarEvent
from .oauth import CalendarClientProvider

__all__ = ["CalendarClientProvider", "CalendarEvent", "GoogleCalendarClient"]
