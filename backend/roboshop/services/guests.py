from __future__ import annotations

from typing import Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from roboshop.repositories.base import UnitOfWork


def added_guests(previous: Optional[Iterable[str]], current: Optional[Iterable[str]]) -> list[str]:
    """Addresses present now that were not there before. Removals never notify."""
    before = {guest.lower() for guest in previous or []}
    added: list[str] = []
    for guest in current or []:
        if guest.lower() not in before and guest not in added:
            added.append(guest)
    return added


async def known_guest_addresses(uow: "UnitOfWork") -> list[str]:
    """Every address used on a machine or a rental, for autocompletion."""
    addresses: set[str] = set()
    for machine in await uow.machines.list_all():
        addresses.update(machine.guests or [])
    for rental in await uow.rentals.list_all():
        addresses.update(rental.guests or [])
    return sorted(addresses)
