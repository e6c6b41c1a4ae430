"""Calendar event data models"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from roboshop.core.config import CALENDAR_TIMEZONE
from roboshop.core.dates import local_date, to_shop_time


@dataclass
class CalendarEvent:
    """Everything needed to create or patch one Google Calendar event"""

    calendar_id: str                # Bucket for the entity kind
    summary: str                    # "Maintenance: Robot X"
    description: str                # Plain-text details
    start: datetime                 # Naive values are UTC
    end: Optional[datetime] = None  # Defaults to start
    all_day: bool = True
    attendees: list[str] = field(default_factory=list)
    location: Optional[str] = None

    @property
    def effective_end(self) -> datetime:
        return self.end or self.start

    def to_google_event(self) -> dict:
        """Convert to Google Calendar API event format"""
        if self.all_day:
            # Google's all-day end date is exclusive
            start = {"date": local_date(self.start).isoformat(), "timeZone": CALENDAR_TIMEZONE}
            end_day = local_date(self.effective_end) + timedelta(days=1)
            end = {"date": end_day.isoformat(), "timeZone": CALENDAR_TIMEZONE}
        else:
            start = {
                "dateTime": to_shop_time(self.start).isoformat(),
                "timeZone": CALENDAR_TIMEZONE,
            }
            end = {
                "dateTime": to_shop_time(self.effective_end).isoformat(),
                "timeZone": CALENDAR_TIMEZONE,
            }

        event = {
            "summary": self.summary,
            "description": self.description,
            "start": start,
            "end": end,
            "attendees": [{"email": email} for email in self.attendees],
        }
        if self.location:
            event["location"] = self.location
        return event
