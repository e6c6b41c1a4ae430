from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, TYPE_CHECKING, Union

from roboshop.core.config import DEFAULT_SHIPPING_FEE, SHIPPING_PRICE_CONFIG_KEY
from roboshop.core.dates import local_date

if TYPE_CHECKING:
    from roboshop.repositories.base import ConfigRepository

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Amount]) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their printed value
    return Decimal(str(value))


def rental_days(start: datetime, end: datetime) -> int:
    """Number of calendar days covered by [start, end], both ends included."""
    return (local_date(end) - local_date(start)).days + 1


def compute_rental_price(
    start: datetime,
    end: Optional[datetime],
    daily_rate: Amount,
    with_shipping: bool,
    shipping_fee: Amount,
) -> Decimal:
    """Price of a rental.

    Open rentals (no end date) are not priced yet and cost 0. The interval
    must already be validated (``end >= start``).
    """
    if end is None:
        return Decimal("0").quantize(CENTS)

    amount = rental_days(start, end) * to_decimal(daily_rate)
    if with_shipping:
        amount += to_decimal(shipping_fee)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_price(amount: Amount) -> str:
    return f"{to_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)} €"


async def current_shipping_fee(config: "ConfigRepository") -> Decimal:
    """Flat shipping fee from the settings table, else the configured default."""
    raw = await config.get_value(SHIPPING_PRICE_CONFIG_KEY)
    if raw is None:
        return DEFAULT_SHIPPING_FEE
    try:
        return to_decimal(raw.replace(",", "."))
    except InvalidOperation:
        logger.warning(f"Ignoring malformed shipping price setting: {raw!r}")
        return DEFAULT_SHIPPING_FEE
