"""Per-kind knowledge plugged into the reconciliation engine.

An adapter says where an entity's schedule lives, which calendar it goes to
and how its event reads. The classifier, executor and orchestrator stay the
same for every kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Protocol

from roboshop.core.config import (
    GOOGLE_CALENDAR_MAINTENANCE_ID,
    GOOGLE_CALENDAR_PHONE_CALLBACKS_ID,
    GOOGLE_CALENDAR_PURCHASE_ORDERS_ID,
    GOOGLE_CALENDAR_RENTAL_ID,
)
from roboshop.core.dates import local_date
from roboshop.integrations.google_calendar import CalendarEvent
from roboshop.models import (
    CALLBACK_REASON_LABELS,
    CallbackReason,
    InstallationAppointment,
    Machine,
    PhoneCallback,
    Rental,
)
from roboshop.repositories.base import EntityRepository, UnitOfWork
from roboshop.services.maintenance import MaintenanceConfig
from roboshop.services.pricing import compute_rental_price, current_shipping_fee, format_price
from roboshop.services.reconciliation.classifier import EventSnapshot

CALLBACK_DURATION = timedelta(minutes=30)


class EntityKind(str, Enum):
    MACHINE = "machine"
    RENTAL = "rental"
    INSTALLATION = "installation"
    CALLBACK = "callback"


@dataclass
class RenderedEvent:
    summary: str
    description: str
    location: Optional[str] = None


class EventAdapter(Protocol):
    kind: EntityKind
    calendar_id: str
    all_day: bool

    def repository(self, uow: UnitOfWork) -> EntityRepository:
        ...

    def schedule(self, entity: Any) -> tuple[Optional[datetime], Optional[datetime]]:
        """(start, end) of the event, start None when nothing is scheduled."""
        ...

    async def render(self, uow: UnitOfWork, entity: Any) -> RenderedEvent:
        ...

    async def snapshot(self, uow: UnitOfWork, entity: Any) -> EventSnapshot:
        ...

    async def build_event(self, uow: UnitOfWork, entity: Any) -> Optional[CalendarEvent]:
        ...

    def notification(self, entity: Any, rendered: RenderedEvent) -> tuple[str, str]:
        """(subject, body) sent to newly added guests."""
        ...


class _BaseAdapter:
    kind: EntityKind
    all_day = True

    def __init__(self, calendar_id: str):
        self.calendar_id = calendar_id

    def repository(self, uow: UnitOfWork) -> EntityRepository:
        raise NotImplementedError

    def schedule(self, entity: Any) -> tuple[Optional[datetime], Optional[datetime]]:
        raise NotImplementedError

    async def render(self, uow: UnitOfWork, entity: Any) -> RenderedEvent:
        raise NotImplementedError

    def label(self, entity: Any, rendered: RenderedEvent) -> Any:
        # Day-level end matters too: moving a return date must reach the calendar
        _, end = self.schedule(entity)
        end_day = local_date(end) if end and self.all_day else end
        return (
            rendered.summary,
            rendered.description,
            rendered.location,
            tuple(sorted(entity.guests or [])),
            end_day,
        )

    def cycle(self, entity: Any) -> Optional[tuple]:
        return None

    def serviced_at(self, entity: Any) -> Optional[datetime]:
        return None

    async def snapshot(self, uow: UnitOfWork, entity: Any) -> EventSnapshot:
        rendered = await self.render(uow, entity)
        start, _ = self.schedule(entity)
        return EventSnapshot(
            label=self.label(entity, rendered),
            due_at=start,
            event_id=entity.event_id,
            cycle=self.cycle(entity),
            serviced_at=self.serviced_at(entity),
        )

    async def build_event(self, uow: UnitOfWork, entity: Any) -> Optional[CalendarEvent]:
        start, end = self.schedule(entity)
        if start is None:
            return None
        rendered = await self.render(uow, entity)
        return CalendarEvent(
            calendar_id=self.calendar_id,
            summary=rendered.summary,
            description=rendered.description,
            start=start,
            end=end,
            all_day=self.all_day,
            attendees=list(entity.guests or []),
            location=rendered.location,
        )

    def notification(self, entity: Any, rendered: RenderedEvent) -> tuple[str, str]:
        return rendered.summary, rendered.description


class MaintenanceAdapter(_BaseAdapter):
    """Machine maintenance: one all-day event on the next due date."""

    kind = EntityKind.MACHINE

    def __init__(self, calendar_id: str = GOOGLE_CALENDAR_MAINTENANCE_ID):
        super().__init__(calendar_id)

    def repository(self, uow: UnitOfWork) -> EntityRepository:
        return uow.machines

    def schedule(self, machine: Machine):
        return machine.next_maintenance_at, machine.next_maintenance_at

    async def render(self, uow: UnitOfWork, machine: Machine) -> RenderedEvent:
        return RenderedEvent(
            summary=f"Maintenance {machine.name}",
            description=f"Maintenance for machine {machine.name}",
        )

    def label(self, machine: Machine, rendered: RenderedEvent) -> Any:
        return machine.name

    def cycle(self, machine: Machine) -> Optional[tuple]:
        return MaintenanceConfig.from_machine(machine).cycle

    def serviced_at(self, machine: Machine) -> Optional[datetime]:
        return machine.last_serviced_at

    def notification(self, machine: Machine, rendered: RenderedEvent) -> tuple[str, str]:
        return (
            f"You were added to maintenance notifications for {machine.name}",
            f"{rendered.description}.\nYou will receive the maintenance reminders for this machine.",
        )


class RentalAdapter(_BaseAdapter):
    """Rental booking: all-day event spanning start to return date."""

    kind = EntityKind.RENTAL

    def __init__(self, calendar_id: str = GOOGLE_CALENDAR_RENTAL_ID):
        super().__init__(calendar_id)

    def repository(self, uow: UnitOfWork) -> EntityRepository:
        return uow.rentals

    def schedule(self, rental: Rental):
        return rental.start_date, rental.end_date or rental.start_date

    async def price(self, uow: UnitOfWork, rental: Rental, machine: Optional[Machine] = None) -> Decimal:
        machine = machine or await uow.machines.get(rental.machine_id)
        if machine is None:
            return compute_rental_price(rental.start_date, None, 0, False, 0)
        return compute_rental_price(
            rental.start_date,
            rental.end_date,
            machine.price_per_day,
            bool(rental.with_shipping),
            await current_shipping_fee(uow.config),
        )

    async def render(self, uow: UnitOfWork, rental: Rental) -> RenderedEvent:
        machine = await uow.machines.get(rental.machine_id)
        machine_name = machine.name if machine else "Unknown"
        client = f"{rental.client_first_name} {rental.client_last_name}"
        price = await self.price(uow, rental, machine)

        lines = [
            f"Rental of {machine_name} by {client} ({rental.client_phone or 'no phone'}).",
            "Deposit to be paid." if rental.deposit_to_pay else "Deposit already paid.",
            "Payment already received." if rental.paid else "Payment pending.",
            f"Deposit: {format_price(machine.deposit if machine else 0)}.",
            f"Rental price: {format_price(price)}.",
        ]
        if rental.with_shipping:
            address = ", ".join(
                part for part in (rental.client_address, rental.client_postal, rental.client_city) if part
            )
            lines.append(f"Delivery to: {address or 'unknown address'}.")
        return RenderedEvent(
            summary=f"Rental {machine_name}",
            description="\n".join(lines),
        )

    def notification(self, rental: Rental, rendered: RenderedEvent) -> tuple[str, str]:
        period = f"From {local_date(rental.start_date).isoformat()}"
        period += f" to {local_date(rental.end_date).isoformat()}" if rental.end_date else " (return date not set)"
        return (
            f"Rental notification: {rendered.summary.removeprefix('Rental ')}",
            f"{period}\n{rendered.description}",
        )


class InstallationAdapter(_BaseAdapter):
    """Robot installation for a purchase order: all-day event once dated."""

    kind = EntityKind.INSTALLATION

    def __init__(self, calendar_id: str = GOOGLE_CALENDAR_PURCHASE_ORDERS_ID):
        super().__init__(calendar_id)

    def repository(self, uow: UnitOfWork) -> EntityRepository:
        return uow.installations

    def schedule(self, appointment: InstallationAppointment):
        return appointment.installation_date, appointment.installation_date

    async def render(self, uow: UnitOfWork, appointment: InstallationAppointment) -> RenderedEvent:
        client = f"{appointment.client_first_name} {appointment.client_last_name}"
        description = (
            f"Installation of robot {appointment.robot_name} for {client}\n"
            f"Address: {appointment.client_address or ''}\n"
            f"Phone: {appointment.client_phone or ''}"
        )
        if appointment.order_reference:
            description += f"\nOrder: {appointment.order_reference}"
        return RenderedEvent(
            summary=f"Robot installation - {client}",
            description=description,
            location=appointment.client_address,
        )


class CallbackAdapter(_BaseAdapter):
    """Phone callback reminder: 30-minute timed event."""

    kind = EntityKind.CALLBACK
    all_day = False

    def __init__(self, calendar_id: str = GOOGLE_CALENDAR_PHONE_CALLBACKS_ID):
        super().__init__(calendar_id)

    def repository(self, uow: UnitOfWork) -> EntityRepository:
        return uow.callbacks

    def schedule(self, callback: PhoneCallback):
        if callback.scheduled_at is None:
            return None, None
        return callback.scheduled_at, callback.scheduled_at + CALLBACK_DURATION

    async def render(self, uow: UnitOfWork, callback: PhoneCallback) -> RenderedEvent:
        reason = CALLBACK_REASON_LABELS.get(CallbackReason(callback.reason), callback.reason)
        summary = f"Callback: {callback.client_name} - {reason}"
        if callback.completed:
            summary = f"[Done] {summary}"
        description = "\n".join(
            [
                f"Phone callback for {callback.client_name}",
                f"Number: {callback.phone_number}",
                f"Reason: {reason}",
                f"Description: {callback.description}",
                f"Responsible: {callback.responsible_person}",
                f"Callback ID: {callback.id}",
            ]
        )
        return RenderedEvent(summary=summary, description=description)


_ADAPTERS: dict[EntityKind, EventAdapter] = {
    EntityKind.MACHINE: MaintenanceAdapter(),
    EntityKind.RENTAL: RentalAdapter(),
    EntityKind.INSTALLATION: InstallationAdapter(),
    EntityKind.CALLBACK: CallbackAdapter(),
}


def default_adapters() -> dict[EntityKind, EventAdapter]:
    return dict(_ADAPTERS)
