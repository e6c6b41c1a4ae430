"""Entity mutations paired with their calendar events.

Every public operation follows the same sequence: open a unit of work, take
the previous snapshot, apply and validate the change, re-derive computed
fields, classify, commit, then run the calendar step and store the resulting
event id. Newly added guests are notified last.

Dual-write policy:

* create/update commit the business change first. If the calendar call then
  fails the caller gets ``ConsistencyError`` and ``resync(kind, id)`` retries
  just the calendar step.
* delete removes the remote event before the row and commits the cleared
  reference straight away. If the remote call fails that entity is left
  untouched and ``ExternalServiceError`` propagates, so no stored reference
  is ever dropped while its event still exists, and none survives its event.
  Deleting a machine commits each of its rentals on its own.
* a remote event that vanished is recreated on update and counted as already
  gone on delete.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Union

from roboshop.core.dates import utc_naive
from roboshop.core.errors import (
    ConflictError,
    ConsistencyError,
    ExternalEventMissingError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from roboshop.integrations.google_calendar import CalendarEvent
from roboshop.integrations.notifications import Notifier
from roboshop.models import (
    InstallationAppointment,
    Machine,
    MaintenanceRecord,
    PhoneCallback,
    Rental,
)
from roboshop.repositories.base import UnitOfWork, UnitOfWorkFactory
from roboshop.schemas import (
    CallbackCreate,
    CallbackUpdate,
    InstallationCreate,
    InstallationUpdate,
    MachineCreate,
    MachineUpdate,
    RentalCreate,
    RentalUpdate,
    field_values,
    parse_payload,
)
from roboshop.services.guests import added_guests
from roboshop.services.maintenance import (
    MaintenanceConfig,
    derive_next_maintenance,
    merge_maintenance_config,
    validate_maintenance_config,
)
from roboshop.services.overlap import is_rental_overlapping
from roboshop.services.reconciliation.adapters import (
    EntityKind,
    EventAdapter,
    default_adapters,
)
from roboshop.services.reconciliation.classifier import (
    EventAction,
    EventSnapshot,
    OperationKind,
    classify,
)
from roboshop.services.reconciliation.executor import CalendarSyncExecutor

logger = logging.getLogger(__name__)

Payload = Union[dict, Any]


@dataclass
class ReconcileResult:
    kind: EntityKind
    entity: Any
    action: EventAction
    price: Optional[Decimal] = None  # rentals only


@dataclass
class PendingSync:
    """A classified calendar step waiting for the business change to commit."""

    adapter: EventAdapter
    entity: Any
    action: EventAction
    previous: Optional[EventSnapshot]
    event: Optional[CalendarEvent]


class ReconciliationOrchestrator:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        executor: CalendarSyncExecutor,
        notifier: Optional[Notifier] = None,
        adapters: Optional[dict[EntityKind, EventAdapter]] = None,
    ):
        self.uow_factory = uow_factory
        self.executor = executor
        self.notifier = notifier
        self.adapters = adapters or default_adapters()

    # ==================== MACHINES ====================

    async def create_machine(self, data: Payload) -> ReconcileResult:
        values = field_values(parse_payload(MachineCreate, data))
        machine = Machine(**values)
        config = MaintenanceConfig.from_machine(machine)
        validate_maintenance_config(config)
        machine.next_maintenance_at = derive_next_maintenance(config)

        async def record_first_service(uow: UnitOfWork, machine: Machine) -> None:
            if machine.last_serviced_at is not None:
                await uow.maintenance_records.add(
                    MaintenanceRecord(machine_id=machine.id, performed_at=machine.last_serviced_at)
                )

        return await self._create(EntityKind.MACHINE, machine, on_added=record_first_service)

    async def update_machine(self, machine_id: int, data: Payload) -> ReconcileResult:
        changes = field_values(parse_payload(MachineUpdate, data), only_set=True)
        if "maintenance_history" not in changes:
            return await self._update_machine(machine_id, changes)

        performed = sorted(changes.pop("maintenance_history"))

        async def replace_history(uow: UnitOfWork, machine: Machine) -> None:
            for record in await uow.maintenance_records.list_for_machine(machine.id):
                await uow.maintenance_records.delete(record)
            for performed_at in performed:
                await uow.maintenance_records.add(
                    MaintenanceRecord(machine_id=machine.id, performed_at=performed_at)
                )

        return await self._update_machine(machine_id, changes, history=replace_history)

    async def record_maintenance(
        self,
        machine_id: int,
        performed_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> ReconcileResult:
        """Record a service on a machine.

        The latest recorded service starts the current maintenance cycle, so
        recording one after it opens a new cycle (and a new calendar event),
        while backfilling an older one leaves the cycle as it is.
        """
        performed_at = utc_naive(performed_at) if performed_at else datetime.utcnow()

        async def append(uow: UnitOfWork, machine: Machine) -> None:
            await uow.maintenance_records.add(
                MaintenanceRecord(machine_id=machine.id, performed_at=performed_at, notes=notes)
            )

        return await self._update_machine(machine_id, {}, history=append)

    async def delete_maintenance_record(self, record_id: int) -> ReconcileResult:
        """Remove a recorded service; the cycle falls back to the previous one."""
        async with self.uow_factory() as uow:
            record = await uow.maintenance_records.get(record_id)
            if record is None:
                raise NotFoundError(f"maintenance record {record_id} not found")
            machine_id = record.machine_id

        async def remove(uow: UnitOfWork, machine: Machine) -> None:
            record = await uow.maintenance_records.get(record_id)
            if record is None:
                raise NotFoundError(f"maintenance record {record_id} not found")
            await uow.maintenance_records.delete(record)

        return await self._update_machine(machine_id, {}, history=remove)

    async def list_maintenance_records(self, machine_id: int) -> list[MaintenanceRecord]:
        async with self.uow_factory() as uow:
            await self._get(uow, self.adapters[EntityKind.MACHINE], machine_id)
            return await uow.maintenance_records.list_for_machine(machine_id)

    async def delete_machine(self, machine_id: int) -> ReconcileResult:
        adapter = self.adapters[EntityKind.MACHINE]
        async with self.uow_factory() as uow:
            await uow.lock_machine(machine_id)
            machine = await self._get(uow, adapter, machine_id)

            # Rentals go first so none of their events is left behind. Each
            # one is committed as soon as its event is gone: a failure further
            # down must not roll a deleted event's reference back in.
            rental_adapter = self.adapters[EntityKind.RENTAL]
            for rental in await uow.rentals.list_for_machine(machine_id):
                await self._delete_with_event(uow, rental_adapter, rental)
                await uow.commit()
                await uow.lock_machine(machine_id)

            for record in await uow.maintenance_records.list_for_machine(machine_id):
                await uow.maintenance_records.delete(record)
            action = await self._delete_with_event(uow, adapter, machine)
            await uow.commit()
        return ReconcileResult(EntityKind.MACHINE, machine, action)

    async def _update_machine(
        self,
        machine_id: int,
        changes: dict,
        history: Optional[Callable[[UnitOfWork, Machine], Awaitable[None]]] = None,
    ) -> ReconcileResult:
        """Apply column changes and, when given, a change to the service history.

        ``last_serviced_at`` is never set directly: it follows the latest
        recorded service once ``history`` has run.
        """
        adapter = self.adapters[EntityKind.MACHINE]
        async with self.uow_factory() as uow:
            await uow.lock_machine(machine_id)
            machine = await self._get(uow, adapter, machine_id)

            config = merge_maintenance_config(MaintenanceConfig.from_machine(machine), changes)
            validate_maintenance_config(config)

            previous = await adapter.snapshot(uow, machine)
            previous_guests = list(machine.guests or [])
            for key, value in changes.items():
                setattr(machine, key, value)
            if history is not None:
                await history(uow, machine)
                machine.last_serviced_at = await self._latest_service(uow, machine.id)
            await self._rederive_maintenance(uow, machine)
            await uow.machines.save(machine)

            pending = await self._plan(uow, adapter, machine, previous, OperationKind.UPDATE)
            await uow.commit()
            await self._finish(uow, [pending], adapter, machine, previous_guests)
        return ReconcileResult(EntityKind.MACHINE, machine, pending.action)

    async def _latest_service(self, uow: UnitOfWork, machine_id: int) -> Optional[datetime]:
        records = await uow.maintenance_records.list_for_machine(machine_id)
        return records[0].performed_at if records else None

    async def _rederive_maintenance(self, uow: UnitOfWork, machine: Machine) -> None:
        starts = [rental.start_date for rental in await uow.rentals.list_for_machine(machine.id)]
        machine.next_maintenance_at = derive_next_maintenance(
            MaintenanceConfig.from_machine(machine), starts
        )

    async def _refresh_machine(
        self,
        uow: UnitOfWork,
        machine: Machine,
        previous: EventSnapshot,
    ) -> PendingSync:
        """Re-derive a machine's due date after one of its rentals changed."""
        await self._rederive_maintenance(uow, machine)
        await uow.machines.save(machine)
        return await self._plan(
            uow, self.adapters[EntityKind.MACHINE], machine, previous, OperationKind.UPDATE
        )

    # ==================== RENTALS ====================

    async def create_rental(self, machine_id: int, data: Payload) -> ReconcileResult:
        values = field_values(parse_payload(RentalCreate, data))
        self._check_interval(values["start_date"], values["end_date"])
        adapter = self.adapters[EntityKind.RENTAL]
        machine_adapter = self.adapters[EntityKind.MACHINE]

        async with self.uow_factory() as uow:
            # Held until commit: the overlap check and the insert must not interleave
            await uow.lock_machine(machine_id)
            machine = await self._get(uow, machine_adapter, machine_id)
            if await is_rental_overlapping(
                uow.rentals, machine_id, values["start_date"], values["end_date"]
            ):
                raise ConflictError(f"Machine {machine_id} is already rented on these dates")

            machine_previous = await machine_adapter.snapshot(uow, machine)
            rental = await uow.rentals.add(Rental(machine_id=machine_id, **values))
            pendings = [
                await self._plan(uow, adapter, rental, None, OperationKind.CREATE),
                await self._refresh_machine(uow, machine, machine_previous),
            ]
            await uow.commit()
            price = await adapter.price(uow, rental)
            await self._finish(uow, pendings, adapter, rental, [])
        return ReconcileResult(EntityKind.RENTAL, rental, pendings[0].action, price=price)

    async def update_rental(self, rental_id: int, data: Payload) -> ReconcileResult:
        changes = field_values(parse_payload(RentalUpdate, data), only_set=True)
        adapter = self.adapters[EntityKind.RENTAL]
        machine_adapter = self.adapters[EntityKind.MACHINE]

        async with self.uow_factory() as uow:
            rental = await self._get(uow, adapter, rental_id)
            await uow.lock_machine(rental.machine_id)

            start = changes.get("start_date", rental.start_date)
            end = changes["end_date"] if "end_date" in changes else rental.end_date
            self._check_interval(start, end)
            if "start_date" in changes or "end_date" in changes:
                if await is_rental_overlapping(
                    uow.rentals, rental.machine_id, start, end, exclude_id=rental.id
                ):
                    raise ConflictError(
                        f"Machine {rental.machine_id} is already rented on these dates"
                    )

            previous = await adapter.snapshot(uow, rental)
            previous_guests = list(rental.guests or [])
            machine = await uow.machines.get(rental.machine_id)
            machine_previous = await machine_adapter.snapshot(uow, machine) if machine else None

            for key, value in changes.items():
                setattr(rental, key, value)
            await uow.rentals.save(rental)

            pendings = [await self._plan(uow, adapter, rental, previous, OperationKind.UPDATE)]
            if machine is not None:
                pendings.append(await self._refresh_machine(uow, machine, machine_previous))
            await uow.commit()
            price = await adapter.price(uow, rental)
            await self._finish(uow, pendings, adapter, rental, previous_guests)
        return ReconcileResult(EntityKind.RENTAL, rental, pendings[0].action, price=price)

    async def delete_rental(self, rental_id: int) -> ReconcileResult:
        adapter = self.adapters[EntityKind.RENTAL]
        machine_adapter = self.adapters[EntityKind.MACHINE]

        async with self.uow_factory() as uow:
            rental = await self._get(uow, adapter, rental_id)
            await uow.lock_machine(rental.machine_id)
            machine = await uow.machines.get(rental.machine_id)
            machine_previous = await machine_adapter.snapshot(uow, machine) if machine else None

            action = await self._delete_with_event(uow, adapter, rental)
            await uow.lock_machine(rental.machine_id)
            pendings = []
            if machine is not None:
                pendings.append(await self._refresh_machine(uow, machine, machine_previous))
            await uow.commit()
            await self._sync(uow, pendings)
        return ReconcileResult(EntityKind.RENTAL, rental, action)

    @staticmethod
    def _check_interval(start: datetime, end: Optional[datetime]) -> None:
        if end is not None and end < start:
            raise ValidationError("end_date must not be before start_date")

    # ==================== INSTALLATIONS ====================

    async def create_installation(self, data: Payload) -> ReconcileResult:
        values = field_values(parse_payload(InstallationCreate, data))
        return await self._create(EntityKind.INSTALLATION, InstallationAppointment(**values))

    async def update_installation(self, appointment_id: int, data: Payload) -> ReconcileResult:
        changes = field_values(parse_payload(InstallationUpdate, data), only_set=True)
        return await self._update(EntityKind.INSTALLATION, appointment_id, changes)

    async def delete_installation(self, appointment_id: int) -> ReconcileResult:
        return await self._delete(EntityKind.INSTALLATION, appointment_id)

    # ==================== PHONE CALLBACKS ====================

    async def create_callback(self, data: Payload) -> ReconcileResult:
        values = field_values(parse_payload(CallbackCreate, data))
        values["scheduled_at"] = values.get("scheduled_at") or datetime.utcnow()
        return await self._create(EntityKind.CALLBACK, PhoneCallback(**values))

    async def update_callback(self, callback_id: int, data: Payload) -> ReconcileResult:
        changes = field_values(parse_payload(CallbackUpdate, data), only_set=True)
        return await self._update(EntityKind.CALLBACK, callback_id, changes)

    async def delete_callback(self, callback_id: int) -> ReconcileResult:
        return await self._delete(EntityKind.CALLBACK, callback_id)

    # ==================== RESYNC ====================

    async def resync(self, kind: Union[EntityKind, str], entity_id: int) -> ReconcileResult:
        """Push an entity's current state to its calendar again.

        The safe retry after ``ConsistencyError``: no business field changes,
        only the event and its stored id.
        """
        try:
            kind = EntityKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown entity kind: {kind}") from e
        adapter = self.adapters[kind]

        async with self.uow_factory() as uow:
            entity = await self._get(uow, adapter, entity_id)
            if kind == EntityKind.MACHINE:
                await self._rederive_maintenance(uow, entity)
                await uow.machines.save(entity)
                await uow.commit()

            pendings = [await self._resync_step(uow, adapter, entity)]
            if kind == EntityKind.RENTAL:
                machine = await uow.machines.get(entity.machine_id)
                if machine is not None:
                    pendings.append(
                        await self._resync_step(uow, self.adapters[EntityKind.MACHINE], machine)
                    )
            await self._sync(uow, pendings)
        return ReconcileResult(kind, entity, pendings[0].action)

    async def _resync_step(self, uow: UnitOfWork, adapter: EventAdapter, entity: Any) -> PendingSync:
        current = await adapter.snapshot(uow, entity)
        if current.due_at is None:
            action = EventAction.DELETE if current.event_id else EventAction.NONE
        elif current.event_id is None:
            action = EventAction.CREATE
        else:
            action = EventAction.UPDATE
        event = await adapter.build_event(uow, entity)
        logger.info(f"Resync {adapter.kind.value} {entity.id}: calendar {action.value}")
        return PendingSync(adapter, entity, action, current, event)

    # ==================== GENERIC FLOWS ====================

    async def _create(
        self,
        kind: EntityKind,
        entity: Any,
        on_added: Optional[Callable[[UnitOfWork, Any], Awaitable[None]]] = None,
    ) -> ReconcileResult:
        adapter = self.adapters[kind]
        async with self.uow_factory() as uow:
            await adapter.repository(uow).add(entity)
            if on_added is not None:
                await on_added(uow, entity)
            pending = await self._plan(uow, adapter, entity, None, OperationKind.CREATE)
            await uow.commit()
            await self._finish(uow, [pending], adapter, entity, [])
        return ReconcileResult(kind, entity, pending.action)

    async def _update(self, kind: EntityKind, entity_id: int, changes: dict) -> ReconcileResult:
        adapter = self.adapters[kind]
        async with self.uow_factory() as uow:
            entity = await self._get(uow, adapter, entity_id)
            previous = await adapter.snapshot(uow, entity)
            previous_guests = list(entity.guests or [])
            for key, value in changes.items():
                setattr(entity, key, value)
            await adapter.repository(uow).save(entity)

            pending = await self._plan(uow, adapter, entity, previous, OperationKind.UPDATE)
            await uow.commit()
            await self._finish(uow, [pending], adapter, entity, previous_guests)
        return ReconcileResult(kind, entity, pending.action)

    async def _delete(self, kind: EntityKind, entity_id: int) -> ReconcileResult:
        adapter = self.adapters[kind]
        async with self.uow_factory() as uow:
            entity = await self._get(uow, adapter, entity_id)
            action = await self._delete_with_event(uow, adapter, entity)
            await uow.commit()
        return ReconcileResult(kind, entity, action)

    async def _get(self, uow: UnitOfWork, adapter: EventAdapter, entity_id: int) -> Any:
        entity = await adapter.repository(uow).get(entity_id)
        if entity is None:
            raise NotFoundError(f"{adapter.kind.value} {entity_id} not found")
        return entity

    async def _plan(
        self,
        uow: UnitOfWork,
        adapter: EventAdapter,
        entity: Any,
        previous: Optional[EventSnapshot],
        operation: OperationKind,
    ) -> PendingSync:
        next_ = await adapter.snapshot(uow, entity)
        action = classify(previous, next_, operation)
        event = None
        if action in (EventAction.CREATE, EventAction.UPDATE):
            event = await adapter.build_event(uow, entity)
        logger.info(
            f"{adapter.kind.value} {entity.id}: {operation.value} -> calendar {action.value}"
        )
        return PendingSync(adapter, entity, action, previous, event)

    async def _delete_with_event(self, uow: UnitOfWork, adapter: EventAdapter, entity: Any) -> EventAction:
        """Delete the remote event, then the row.

        Once the event is gone the cleared reference is committed on its own,
        which also releases any lock the unit of work held. The row delete is
        left for the caller to commit.
        """
        previous = await adapter.snapshot(uow, entity)
        action = classify(previous, None, OperationKind.DELETE)
        if action == EventAction.DELETE:
            try:
                await self.executor.delete(previous.event_id, adapter.calendar_id)
            except ExternalEventMissingError:
                logger.warning(
                    f"Event {previous.event_id} of {adapter.kind.value} {entity.id} was already gone"
                )
            await self._store_event_id(uow, adapter, entity, None)
        await adapter.repository(uow).delete(entity)
        return action

    async def _finish(
        self,
        uow: UnitOfWork,
        pendings: list[PendingSync],
        adapter: EventAdapter,
        entity: Any,
        previous_guests: list[str],
    ) -> None:
        try:
            await self._sync(uow, pendings)
        finally:
            await self._notify_new_guests(uow, adapter, entity, previous_guests)

    # ==================== CALENDAR STEP ====================

    async def _sync(self, uow: UnitOfWork, pendings: list[PendingSync]) -> None:
        """Run committed calendar steps; report the first failure after trying all."""
        failures: list[ConsistencyError] = []
        for pending in pendings:
            try:
                await self._execute(uow, pending)
            except ConsistencyError as e:
                failures.append(e)
        if failures:
            raise failures[0]

    async def _execute(self, uow: UnitOfWork, pending: PendingSync) -> None:
        adapter, entity, action = pending.adapter, pending.entity, pending.action
        if action == EventAction.NONE:
            return

        stored_id = pending.previous.event_id if pending.previous else entity.event_id
        try:
            if action == EventAction.CREATE:
                if entity.event_id:
                    logger.info(
                        f"{adapter.kind.value} {entity.id} starts a new event; "
                        f"{entity.event_id} stays in the calendar"
                    )
                event_id = await self.executor.create(pending.event)
                await self._store_event_id(uow, adapter, entity, event_id)

            elif action == EventAction.UPDATE:
                if pending.event is None or stored_id is None:
                    logger.info(f"{adapter.kind.value} {entity.id}: no scheduled event to update")
                    return
                try:
                    await self.executor.update(stored_id, pending.event)
                except ExternalEventMissingError:
                    logger.warning(
                        f"Event {stored_id} of {adapter.kind.value} {entity.id} vanished; recreating"
                    )
                    event_id = await self.executor.create(pending.event)
                    await self._store_event_id(uow, adapter, entity, event_id)

            elif action == EventAction.DELETE:
                if stored_id:
                    try:
                        await self.executor.delete(stored_id, adapter.calendar_id)
                    except ExternalEventMissingError:
                        logger.warning(f"Event {stored_id} was already gone")
                await self._store_event_id(uow, adapter, entity, None)

        except ExternalServiceError as e:
            logger.error(
                f"Calendar {action.value} failed for {adapter.kind.value} {entity.id}: {e}"
            )
            raise ConsistencyError(adapter.kind.value, entity.id, action.value, e) from e

    async def _store_event_id(
        self,
        uow: UnitOfWork,
        adapter: EventAdapter,
        entity: Any,
        event_id: Optional[str],
    ) -> None:
        entity.event_id = event_id
        try:
            await adapter.repository(uow).save(entity)
            await uow.commit()
        except Exception:
            logger.error(
                f"Could not store event reference {event_id!r} on {adapter.kind.value} {entity.id}"
            )
            raise

    # ==================== NOTIFICATIONS ====================

    async def _notify_new_guests(
        self,
        uow: UnitOfWork,
        adapter: EventAdapter,
        entity: Any,
        previous_guests: list[str],
    ) -> None:
        if self.notifier is None:
            return
        added = added_guests(previous_guests, entity.guests)
        if not added:
            return
        try:
            rendered = await adapter.render(uow, entity)
            subject, body = adapter.notification(entity, rendered)
            await self.notifier.notify(added, subject, body)
        except Exception:
            # Never fatal: the business change is already committed
            logger.exception(f"Guest notification failed for {adapter.kind.value} {entity.id}")
