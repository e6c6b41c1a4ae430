"""Daily maintenance reminder emails"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from roboshop.core.config import (
    MAINTENANCE_REMINDER_DAYS_AHEAD,
    MAINTENANCE_REMINDER_EMAILS,
    MAINTENANCE_REMINDER_HOUR,
)
from roboshop.core.dates import local_date, local_now, shop_timezone
from roboshop.integrations.notifications import Notifier
from roboshop.models import Machine, MaintenanceType
from roboshop.repositories.base import UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass
class ReminderReport:
    late: int = 0
    upcoming: int = 0


def _describe(machine: Machine, today, late: bool) -> str:
    due_day = local_date(machine.next_maintenance_at)
    cycle = (
        "by elapsed days"
        if machine.maintenance_type == MaintenanceType.BY_CALENDAR_DAYS.value
        else "by number of rentals"
    )
    lines = [
        f"Machine: {machine.name}",
        f"Next maintenance: {due_day.isoformat()}",
        f"Maintenance cycle: {cycle}",
    ]
    if late:
        lines.append(f"Days late: {(today - due_day).days}")
    else:
        lines.append(f"Days remaining: {max(0, (due_day - today).days)}")
    return "\n".join(lines)


async def send_maintenance_reminders(
    uow_factory: UnitOfWorkFactory,
    notifier: Notifier,
    now: Optional[datetime] = None,
    days_ahead: int = MAINTENANCE_REMINDER_DAYS_AHEAD,
    default_recipients: Iterable[str] = MAINTENANCE_REMINDER_EMAILS,
) -> ReminderReport:
    """Email about machines whose maintenance is late or due within ``days_ahead``."""
    now = now or datetime.utcnow()
    horizon = now + timedelta(days=days_ahead)
    today = local_date(now)

    async with uow_factory() as uow:
        machines = await uow.machines.list_due_before(horizon)

    report = ReminderReport()
    for machine in machines:
        late = machine.next_maintenance_at < now
        recipients = list(dict.fromkeys([*default_recipients, *(machine.guests or [])]))
        if not recipients:
            logger.warning(f"No reminder recipients for machine {machine.id}")
            continue

        logger.info(f"Sending {'late' if late else 'upcoming'} maintenance reminder for {machine.name}")
        await notifier.notify(
            recipients,
            f"Maintenance reminder for {machine.name}",
            _describe(machine, today, late),
        )
        if late:
            report.late += 1
        else:
            report.upcoming += 1
    return report


def seconds_until(hour: int, now: Optional[datetime] = None) -> float:
    """Seconds from ``now`` to the next ``hour``:00 in the shop's zone."""
    now = now or local_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=shop_timezone())
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def run_reminder_loop(
    uow_factory: UnitOfWorkFactory,
    notifier: Notifier,
    hour: int = MAINTENANCE_REMINDER_HOUR,
) -> None:
    """Send reminders every day at ``hour``; runs until cancelled."""
    logger.info(f"Maintenance reminders scheduled daily at {hour:02d}:00")
    while True:
        try:
            await asyncio.sleep(seconds_until(hour))
            report = await send_maintenance_reminders(uow_factory, notifier)
            logger.info(
                f"Maintenance reminders sent: {report.late} late, {report.upcoming} upcoming"
            )
        except asyncio.CancelledError:
            logger.info("Maintenance reminder loop cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in maintenance reminder loop: {e}")
            # Avoid a tight loop on repeated failures
            await asyncio.sleep(60)
