"""Overlap guard for rentals of a single machine.

Intervals are compared as closed ranges of calendar days in the shop's zone:
a rental returned on day N and one starting on day N overlap.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Protocol, TYPE_CHECKING

from roboshop.core.dates import local_date

if TYPE_CHECKING:
    from roboshop.repositories.base import RentalRepository


class BookedInterval(Protocol):
    id: int
    start_date: datetime
    end_date: Optional[datetime]


def effective_days(start: datetime, end: Optional[datetime]) -> tuple[date, date]:
    return local_date(start), local_date(end or start)


def has_overlap(
    bookings: Iterable[BookedInterval],
    start: datetime,
    end: Optional[datetime],
    exclude_id: Optional[int] = None,
) -> bool:
    candidate_start, candidate_end = effective_days(start, end)
    for booking in bookings:
        if exclude_id is not None and booking.id == exclude_id:
            continue
        booked_start, booked_end = effective_days(booking.start_date, booking.end_date)
        if candidate_start <= booked_end and booked_start <= candidate_end:
            return True
    return False


async def is_rental_overlapping(
    rentals: "RentalRepository",
    machine_id: int,
    start: datetime,
    end: Optional[datetime],
    exclude_id: Optional[int] = None,
) -> bool:
    """Check a candidate interval against the machine's stored rentals.

    Must run inside the transaction holding the machine lock, otherwise two
    requests can both pass the check.
    """
    existing = await rentals.list_for_machine(machine_id)
    return has_overlap(existing, start, end, exclude_id=exclude_id)


def booked_days(bookings: Iterable[BookedInterval]) -> list[date]:
    """Every calendar day already claimed by a rental, sorted."""
    days: set[date] = set()
    for booking in bookings:
        first, last = effective_days(booking.start_date, booking.end_date)
        day = first
        while day <= last:
            days.add(day)
            day += timedelta(days=1)
    return sorted(days)


async def machine_booked_days(rentals: "RentalRepository", machine_id: int) -> list[date]:
    return booked_days(await rentals.list_for_machine(machine_id))
