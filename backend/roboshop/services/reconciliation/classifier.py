"""Decide which calendar action brings an event in line with its entity.

Pure functions only: no I/O, no clock. This is the one place the
create/update/delete rules live for every entity kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Hashable, Optional


class OperationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EventAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NONE = "none"


# Update with no due date before or after. Kept as "update" for parity with
# the historical behavior; the orchestrator has nothing to push and skips it.
# Product has not confirmed whether this should be NONE.
UNSCHEDULED_FALLBACK_ACTION = EventAction.UPDATE


@dataclass(frozen=True)
class EventSnapshot:
    """What the classifier needs to know about an entity at one moment.

    ``label`` is whatever the event shows besides its date (a machine's name,
    a rental's rendered text). ``cycle`` is the maintenance type and interval,
    None for kinds without a cycle.
    """

    label: Hashable
    due_at: Optional[datetime]
    event_id: Optional[str] = None
    cycle: Optional[Any] = None
    serviced_at: Optional[datetime] = None


def _new_cycle_started(previous: EventSnapshot, next_: EventSnapshot) -> bool:
    if previous.label != next_.label or previous.cycle != next_.cycle:
        return False
    # The first recorded service only moves the existing event's date.
    if previous.serviced_at is None or next_.serviced_at is None or next_.due_at is None:
        return False
    return next_.serviced_at > previous.serviced_at


def classify(
    previous: Optional[EventSnapshot],
    next_: Optional[EventSnapshot],
    operation: OperationKind,
) -> EventAction:
    if operation == OperationKind.CREATE:
        if next_ is not None and next_.due_at is not None:
            return EventAction.CREATE
        return EventAction.NONE

    if operation == OperationKind.DELETE:
        if previous is not None and previous.event_id is not None:
            return EventAction.DELETE
        return EventAction.NONE

    if previous is None or next_ is None:
        raise ValueError("update needs both the previous and next snapshot")

    if previous.label == next_.label and previous.due_at == next_.due_at:
        return EventAction.NONE

    # A fresh service always opens a new event; the old one may already
    # have been acted upon in the calendar.
    if _new_cycle_started(previous, next_):
        return EventAction.CREATE

    if next_.due_at is not None:
        if previous.due_at is not None and previous.event_id is not None:
            return EventAction.UPDATE
        return EventAction.CREATE

    if previous.due_at is not None:
        return EventAction.DELETE
    return UNSCHEDULED_FALLBACK_ACTION
