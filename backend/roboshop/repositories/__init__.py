"""Persistence access for the reconciliation engine"""

from .base import (
    CallbackRepository,
    ConfigRepository,
    EntityRepository,
    InstallationRepository,
    MachineRepository,
    MaintenanceRecordRepository,
    RentalRepository,
    UnitOfWork,
    UnitOfWorkFactory,
)
from .sql import SqlUnitOfWork

__all__ = [
    "CallbackRepository",
    "ConfigRepository",
    "EntityRepository",
    "InstallationRepository",
    "MachineRepository",
    "MaintenanceRecordRepository",
    "RentalRepository",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "SqlUnitOfWork",
]
