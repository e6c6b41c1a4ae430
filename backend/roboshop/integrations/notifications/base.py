from __future__ import annotations

from typing import Iterable, Protocol


class Notifier(Protocol):
    name: str

    async def notify(self, addresses: Iterable[str], subject: str, body: str) -> None:
        """Deliver a plain-text message. Implementations log failures instead of raising."""
        ...
