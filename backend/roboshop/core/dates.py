from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from roboshop.core.config import CALENDAR_TIMEZONE


def shop_timezone() -> ZoneInfo:
    return ZoneInfo(CALENDAR_TIMEZONE)


def to_shop_time(value: datetime) -> datetime:
    """Convert to the shop's zone. Naive values are stored as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(shop_timezone())


def local_date(value: datetime) -> date:
    """Calendar day of ``value`` in the shop's zone."""
    return to_shop_time(value).date()


def utc_naive(value: datetime) -> datetime:
    """Normalize to the naive-UTC form the database columns store."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_now() -> datetime:
    return datetime.now(shop_timezone())
