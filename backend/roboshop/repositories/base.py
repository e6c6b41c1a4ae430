from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Protocol, TypeVar

from roboshop.models import (
    InstallationAppointment,
    Machine,
    MaintenanceRecord,
    PhoneCallback,
    Rental,
)

EntityT = TypeVar("EntityT")


class EntityRepository(Protocol[EntityT]):
    """find/create/update/delete for one entity kind.

    Nothing here commits; the enclosing unit of work owns the transaction.
    ``add`` and ``save`` flush so generated ids are available right away.
    """

    async def get(self, entity_id: int) -> Optional[EntityT]:
        ...

    async def list_all(self) -> list[EntityT]:
        ...

    async def add(self, entity: EntityT) -> EntityT:
        ...

    async def save(self, entity: EntityT) -> EntityT:
        ...

    async def delete(self, entity: EntityT) -> None:
        ...


class MachineRepository(EntityRepository[Machine], Protocol):
    async def list_due_before(self, moment: datetime) -> list[Machine]:
        """Machines whose next maintenance falls before ``moment``."""
        ...


class RentalRepository(EntityRepository[Rental], Protocol):
    async def list_for_machine(self, machine_id: int) -> list[Rental]:
        ...


class MaintenanceRecordRepository(EntityRepository[MaintenanceRecord], Protocol):
    async def list_for_machine(self, machine_id: int) -> list[MaintenanceRecord]:
        """Services of one machine, latest first."""
        ...


class InstallationRepository(EntityRepository[InstallationAppointment], Protocol):
    ...


class CallbackRepository(EntityRepository[PhoneCallback], Protocol):
    ...


class ConfigRepository(Protocol):
    async def get_value(self, key: str) -> Optional[str]:
        ...

    async def set_value(self, key: str, value: str) -> None:
        ...


class UnitOfWork(Protocol):
    """One database transaction plus the repositories bound to it.

    Used as ``async with uow_factory() as uow``; leaving the block with an
    exception rolls back whatever was not committed.
    """

    machines: MachineRepository
    rentals: RentalRepository
    maintenance_records: MaintenanceRecordRepository
    installations: InstallationRepository
    callbacks: CallbackRepository
    config: ConfigRepository

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(self, exc_type, exc, tb) -> None:
        ...

    async def lock_machine(self, machine_id: int) -> None:
        """Serialize booking writes for one machine until commit/rollback."""
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


UnitOfWorkFactory = Callable[[], UnitOfWork]
