import asyncio
from collections import defaultdict
from itertools import count

import pytest

from roboshop.core.errors import ExternalServiceError
from roboshop.services.reconciliation import EntityKind, ReconciliationOrchestrator
from roboshop.services.reconciliation.adapters import (
    CallbackAdapter,
    InstallationAdapter,
    MaintenanceAdapter,
    RentalAdapter,
)


class FakeStore:
    """Shared state behind every FakeUnitOfWork of one test."""

    def __init__(self):
        self.tables = defaultdict(dict)
        self.ids = defaultdict(lambda: count(1))
        self.config = {}
        self.locks = defaultdict(asyncio.Lock)
        self.commits = 0


class FakeRepository:
    table = ""

    def __init__(self, uow):
        self.uow = uow
        self.rows = uow.store.tables[self.table]

    async def get(self, entity_id):
        await asyncio.sleep(0)
        return self.rows.get(entity_id)

    async def list_all(self):
        return sorted(self.rows.values(), key=lambda entity: entity.id)

    async def add(self, entity):
        if entity.id is None:
            entity.id = next(self.uow.store.ids[self.table])
        self.rows[entity.id] = entity
        self.uow.added.append((self.rows, entity))
        return entity

    async def save(self, entity):
        self.rows[entity.id] = entity
        return entity

    async def delete(self, entity):
        self.rows.pop(entity.id, None)
        self.uow.deleted.append((self.rows, entity))


class FakeMachineRepository(FakeRepository):
    table = "machines"

    async def list_due_before(self, moment):
        due = [
            machine for machine in self.rows.values()
            if machine.next_maintenance_at is not None and machine.next_maintenance_at < moment
        ]
        return sorted(due, key=lambda machine: machine.next_maintenance_at)


class FakeRentalRepository(FakeRepository):
    table = "rentals"

    async def list_for_machine(self, machine_id):
        # Yield so concurrent requests get a chance to interleave
        await asyncio.sleep(0)
        rentals = [rental for rental in self.rows.values() if rental.machine_id == machine_id]
        return sorted(rentals, key=lambda rental: rental.start_date)


class FakeMaintenanceRecordRepository(FakeRepository):
    table = "maintenance_records"

    async def list_for_machine(self, machine_id):
        records = [record for record in self.rows.values() if record.machine_id == machine_id]
        return sorted(records, key=lambda record: record.performed_at, reverse=True)


class FakeInstallationRepository(FakeRepository):
    table = "installations"


class FakeCallbackRepository(FakeRepository):
    table = "callbacks"


class FakeConfigRepository:
    def __init__(self, store):
        self.store = store

    async def get_value(self, key):
        return self.store.config.get(key)

    async def set_value(self, key, value):
        self.store.config[key] = value


class FakeUnitOfWork:
    """In-memory unit of work: adds and deletes are undone on rollback and
    ``lock_machine`` holds a per-machine asyncio lock until commit/rollback."""

    def __init__(self, store):
        self.store = store
        self.added = []
        self.deleted = []
        self._held = []

    async def __aenter__(self):
        self.machines = FakeMachineRepository(self)
        self.rentals = FakeRentalRepository(self)
        self.maintenance_records = FakeMaintenanceRecordRepository(self)
        self.installations = FakeInstallationRepository(self)
        self.callbacks = FakeCallbackRepository(self)
        self.config = FakeConfigRepository(self.store)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            await self.rollback()
        self._release()

    async def lock_machine(self, machine_id):
        lock = self.store.locks[machine_id]
        if lock not in self._held:
            await lock.acquire()
            self._held.append(lock)

    async def commit(self):
        self.store.commits += 1
        self.added.clear()
        self.deleted.clear()
        self._release()

    async def rollback(self):
        for rows, entity in self.added:
            rows.pop(entity.id, None)
        for rows, entity in self.deleted:
            rows[entity.id] = entity
        self.added.clear()
        self.deleted.clear()
        self._release()

    def _release(self):
        while self._held:
            self._held.pop().release()


class FakeExecutor:
    """Records calendar calls.

    ``errors[action]`` makes that action raise; ``errors[(action, calendar_id)]``
    only on that calendar.
    """

    def __init__(self):
        self.calls = []
        self.errors = {}
        self._ids = count(1)

    def _maybe_fail(self, action, calendar_id):
        error = self.errors.get((action, calendar_id)) or self.errors.get(action)
        if error is not None:
            raise error

    async def create(self, event):
        self.calls.append(("create", event))
        self._maybe_fail("create", event.calendar_id)
        return f"evt-{next(self._ids)}"

    async def update(self, event_id, event):
        self.calls.append(("update", event_id, event))
        self._maybe_fail("update", event.calendar_id)

    async def delete(self, event_id, calendar_id):
        self.calls.append(("delete", event_id, calendar_id))
        self._maybe_fail("delete", calendar_id)

    @property
    def actions(self):
        return [call[0] for call in self.calls]


class FakeNotifier:
    name = "fake"

    def __init__(self):
        self.sent = []
        self.error = None

    async def notify(self, addresses, subject, body):
        if self.error is not None:
            raise self.error
        self.sent.append((list(addresses), subject, body))


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def uow_factory(store):
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def adapters():
    """Adapters with distinct calendar ids so calls can be told apart"""
    return {
        EntityKind.MACHINE: MaintenanceAdapter("maintenance-cal"),
        EntityKind.RENTAL: RentalAdapter("rental-cal"),
        EntityKind.INSTALLATION: InstallationAdapter("orders-cal"),
        EntityKind.CALLBACK: CallbackAdapter("callbacks-cal"),
    }


@pytest.fixture
def orchestrator(uow_factory, executor, notifier, adapters):
    return ReconciliationOrchestrator(
        uow_factory=uow_factory,
        executor=executor,
        notifier=notifier,
        adapters=adapters,
    )


@pytest.fixture
def calendar_down():
    return ExternalServiceError("calendar unreachable")

