import logging
from datetime import datetime
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roboshop.core.database import AsyncSessionLocal
from roboshop.models import (
    ConfigEntry,
    InstallationAppointment,
    Machine,
    MaintenanceRecord,
    PhoneCallback,
    Rental,
)

logger = logging.getLogger(__name__)

# First key of pg_advisory_xact_lock(int, int); the second is the machine id
MACHINE_LOCK_NAMESPACE = 7301

ModelT = TypeVar("ModelT")


class SqlRepository(Generic[ModelT]):
    """Session-bound CRUD for one model. Never commits."""

    model: Type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, entity_id: int) -> Optional[ModelT]:
        result = await self.session.execute(
            select(self.model).where(self.model.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[ModelT]:
        result = await self.session.execute(select(self.model).order_by(self.model.id))
        return list(result.scalars().all())

    async def add(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def save(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)
        await self.session.flush()


class SqlMachineRepository(SqlRepository[Machine]):
    model = Machine

    async def list_due_before(self, moment: datetime) -> list[Machine]:
        result = await self.session.execute(
            select(Machine)
            .where(Machine.next_maintenance_at.is_not(None))
            .where(Machine.next_maintenance_at < moment)
            .order_by(Machine.next_maintenance_at)
        )
        return list(result.scalars().all())


class SqlRentalRepository(SqlRepository[Rental]):
    model = Rental

    async def list_for_machine(self, machine_id: int) -> list[Rental]:
        result = await self.session.execute(
            select(Rental)
            .where(Rental.machine_id == machine_id)
            .order_by(Rental.start_date)
        )
        return list(result.scalars().all())


class SqlMaintenanceRecordRepository(SqlRepository[MaintenanceRecord]):
    model = MaintenanceRecord

    async def list_for_machine(self, machine_id: int) -> list[MaintenanceRecord]:
        result = await self.session.execute(
            select(MaintenanceRecord)
            .where(MaintenanceRecord.machine_id == machine_id)
            .order_by(MaintenanceRecord.performed_at.desc())
        )
        return list(result.scalars().all())


class SqlInstallationRepository(SqlRepository[InstallationAppointment]):
    model = InstallationAppointment


class SqlCallbackRepository(SqlRepository[PhoneCallback]):
    model = PhoneCallback


class SqlConfigRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_value(self, key: str) -> Optional[str]:
        result = await self.session.execute(
            select(ConfigEntry.value).where(ConfigEntry.key == key)
        )
        return result.scalar_one_or_none()

    async def set_value(self, key: str, value: str) -> None:
        result = await self.session.execute(
            select(ConfigEntry).where(ConfigEntry.key == key)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            self.session.add(ConfigEntry(key=key, value=value))
        else:
            entry.value = value
        await self.session.flush()


class SqlUnitOfWork:
    """Unit of work over one ``AsyncSession``.

    The session is opened on enter and closed on exit. After ``commit`` the
    same unit of work can keep going; SQLAlchemy begins a new transaction on
    the next statement.
    """

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SqlUnitOfWork":
        self.session = self._session_factory()
        self.machines = SqlMachineRepository(self.session)
        self.rentals = SqlRentalRepository(self.session)
        self.maintenance_records = SqlMaintenanceRecordRepository(self.session)
        self.installations = SqlInstallationRepository(self.session)
        self.callbacks = SqlCallbackRepository(self.session)
        self.config = SqlConfigRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None:
                await self.rollback()
        finally:
            await self.session.close()

    async def lock_machine(self, machine_id: int) -> None:
        if self.session.bind.dialect.name == "postgresql":
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(:namespace, :machine_id)"),
                {"namespace": MACHINE_LOCK_NAMESPACE, "machine_id": machine_id},
            )
        else:
            # Row lock where supported; SQLite ignores it and serializes writers itself
            await self.session.execute(
                select(Machine.id).where(Machine.id == machine_id).with_for_update()
            )
        logger.debug(f"Locked machine {machine_id} for booking")

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
