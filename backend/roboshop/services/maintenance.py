from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from roboshop.core.errors import ValidationError
from roboshop.models import Machine, MaintenanceType


@dataclass(frozen=True)
class MaintenanceConfig:
    maintenance_type: MaintenanceType
    interval_days: Optional[int] = None
    interval_rental_count: Optional[int] = None
    last_serviced_at: Optional[datetime] = None

    @classmethod
    def from_machine(cls, machine: Machine) -> "MaintenanceConfig":
        return cls(
            maintenance_type=MaintenanceType(machine.maintenance_type),
            interval_days=machine.interval_days,
            interval_rental_count=machine.interval_rental_count,
            last_serviced_at=machine.last_serviced_at,
        )

    @property
    def cycle(self) -> tuple:
        """The part of the config that defines the cycle length."""
        if self.maintenance_type == MaintenanceType.BY_CALENDAR_DAYS:
            return (self.maintenance_type.value, self.interval_days)
        return (self.maintenance_type.value, self.interval_rental_count)


def validate_maintenance_config(config: MaintenanceConfig) -> None:
    if config.maintenance_type == MaintenanceType.BY_CALENDAR_DAYS:
        if not config.interval_days or config.interval_days <= 0:
            raise ValidationError(
                "interval_days must be a positive number for BY_CALENDAR_DAYS maintenance"
            )
    elif config.maintenance_type == MaintenanceType.BY_RENTAL_COUNT:
        if not config.interval_rental_count or config.interval_rental_count <= 0:
            raise ValidationError(
                "interval_rental_count must be a positive number for BY_RENTAL_COUNT maintenance"
            )
    else:
        raise ValidationError(f"Unknown maintenance type: {config.maintenance_type}")


def rentals_since_service(
    config: MaintenanceConfig,
    rental_starts: Iterable[datetime],
) -> list[datetime]:
    starts = sorted(rental_starts)
    if config.last_serviced_at is None:
        return starts
    return [start for start in starts if start >= config.last_serviced_at]


def derive_next_maintenance(
    config: MaintenanceConfig,
    rental_starts: Iterable[datetime] = (),
) -> Optional[datetime]:
    """Next maintenance date for a machine.

    By calendar days: last service + interval (unknown until a first service
    is recorded). By rental count: the start of the rental that reaches the
    threshold since the last service, or None while under it.
    """
    if config.maintenance_type == MaintenanceType.BY_CALENDAR_DAYS:
        if config.last_serviced_at is None or not config.interval_days:
            return None
        return config.last_serviced_at + timedelta(days=config.interval_days)

    if not config.interval_rental_count:
        return None
    counted = rentals_since_service(config, rental_starts)
    if len(counted) < config.interval_rental_count:
        return None
    return counted[config.interval_rental_count - 1]


CONFIG_FIELDS = ("maintenance_type", "interval_days", "interval_rental_count", "last_serviced_at")


def merge_maintenance_config(config: MaintenanceConfig, changes: dict) -> MaintenanceConfig:
    """Config as it will be once ``changes`` (column name -> value) are applied."""
    fields = {name: changes[name] for name in CONFIG_FIELDS if name in changes}
    if "maintenance_type" in fields:
        fields["maintenance_type"] = MaintenanceType(fields["maintenance_type"])
    return replace(config, **fields)
