"""Input payloads accepted by the reconciliation operations"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from roboshop.core.dates import utc_naive
from roboshop.core.errors import ValidationError
from roboshop.models import CallbackReason, MaintenanceType

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def normalize_guests(guests: Optional[list[str]]) -> list[str]:
    """Trim, lowercase and deduplicate addresses, keeping first-seen order."""
    seen: list[str] = []
    for guest in guests or []:
        address = guest.strip().lower()
        if not address:
            continue
        if "@" not in address:
            raise ValueError(f"Invalid email address: {guest}")
        if address not in seen:
            seen.append(address)
    return seen


class _Payload(BaseModel):
    # Columns an update may leave out but never clear
    non_nullable: ClassVar[frozenset] = frozenset()

    @field_validator("guests", check_fields=False)
    @classmethod
    def _dedupe_guests(cls, value):
        if value is None:
            return value
        return normalize_guests(value)

    @field_validator("*", mode="after")
    @classmethod
    def _naive_utc(cls, value):
        if isinstance(value, datetime):
            return utc_naive(value)
        if isinstance(value, list):
            return [utc_naive(item) if isinstance(item, datetime) else item for item in value]
        return value


# ==================== MACHINES ====================

class MachineCreate(_Payload):
    name: str = Field(..., min_length=1)
    price_per_day: Decimal = Field(default=Decimal("0"), ge=0)
    deposit: Decimal = Field(default=Decimal("0"), ge=0)
    maintenance_type: MaintenanceType
    interval_days: Optional[int] = None
    interval_rental_count: Optional[int] = None
    last_serviced_at: Optional[datetime] = None
    guests: list[str] = Field(default_factory=list)


class MachineUpdate(_Payload):
    non_nullable = frozenset({"name", "price_per_day", "deposit", "maintenance_type"})

    name: Optional[str] = Field(default=None, min_length=1)
    price_per_day: Optional[Decimal] = Field(default=None, ge=0)
    deposit: Optional[Decimal] = Field(default=None, ge=0)
    maintenance_type: Optional[MaintenanceType] = None
    interval_days: Optional[int] = None
    interval_rental_count: Optional[int] = None
    # Replaces every recorded service; the latest one becomes last_serviced_at
    maintenance_history: Optional[list[datetime]] = None
    guests: Optional[list[str]] = None


# ==================== RENTALS ====================

class RentalCreate(_Payload):
    start_date: datetime
    end_date: Optional[datetime] = None
    with_shipping: bool = False
    client_first_name: str = Field(..., min_length=1)
    client_last_name: str = Field(..., min_length=1)
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    client_postal: Optional[str] = None
    client_city: Optional[str] = None
    deposit_to_pay: bool = True
    paid: bool = False
    guests: list[str] = Field(default_factory=list)


class RentalUpdate(_Payload):
    non_nullable = frozenset({"start_date", "client_first_name", "client_last_name"})

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    with_shipping: Optional[bool] = None
    client_first_name: Optional[str] = Field(default=None, min_length=1)
    client_last_name: Optional[str] = Field(default=None, min_length=1)
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    client_postal: Optional[str] = None
    client_city: Optional[str] = None
    deposit_to_pay: Optional[bool] = None
    paid: Optional[bool] = None
    guests: Optional[list[str]] = None


# ==================== INSTALLATIONS ====================

class InstallationCreate(_Payload):
    order_reference: Optional[str] = None
    client_first_name: str = Field(..., min_length=1)
    client_last_name: str = Field(..., min_length=1)
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    robot_name: str = Field(..., min_length=1)
    installation_date: Optional[datetime] = None
    guests: list[str] = Field(default_factory=list)


class InstallationUpdate(_Payload):
    non_nullable = frozenset({"client_first_name", "client_last_name", "robot_name"})

    order_reference: Optional[str] = None
    client_first_name: Optional[str] = Field(default=None, min_length=1)
    client_last_name: Optional[str] = Field(default=None, min_length=1)
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    robot_name: Optional[str] = Field(default=None, min_length=1)
    installation_date: Optional[datetime] = None
    guests: Optional[list[str]] = None


# ==================== PHONE CALLBACKS ====================

class CallbackCreate(_Payload):
    phone_number: str = Field(..., min_length=1)
    client_name: str = Field(..., min_length=1)
    reason: CallbackReason
    description: str = ""
    responsible_person: str = Field(..., min_length=1)
    completed: bool = False
    scheduled_at: Optional[datetime] = None
    guests: list[str] = Field(default_factory=list)


class CallbackUpdate(_Payload):
    non_nullable = frozenset(
        {"phone_number", "client_name", "reason", "description", "responsible_person", "scheduled_at"}
    )

    phone_number: Optional[str] = Field(default=None, min_length=1)
    client_name: Optional[str] = Field(default=None, min_length=1)
    reason: Optional[CallbackReason] = None
    description: Optional[str] = None
    responsible_person: Optional[str] = Field(default=None, min_length=1)
    completed: Optional[bool] = None
    scheduled_at: Optional[datetime] = None
    guests: Optional[list[str]] = None


def parse_payload(schema: Type[PayloadT], data: Union[PayloadT, dict[str, Any]]) -> PayloadT:
    """Accept a payload model or a plain dict; pydantic errors become ValidationError."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e


def field_values(payload: BaseModel, only_set: bool = False) -> dict[str, Any]:
    """Payload fields as column values (enums unwrapped).

    With ``only_set`` only the fields the caller actually sent are returned,
    which is what partial updates apply.
    """
    values = payload.model_dump(exclude_unset=only_set)
    if only_set:
        cleared = sorted(key for key in payload.non_nullable if key in values and values[key] is None)
        if cleared:
            raise ValidationError(f"Fields cannot be cleared: {', '.join(cleared)}")
        if "guests" in values and values["guests"] is None:
            values["guests"] = []
        if "maintenance_history" in values and values["maintenance_history"] is None:
            values["maintenance_history"] = []
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in values.items()
    }
