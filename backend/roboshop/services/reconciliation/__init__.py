"""Keeps internal entities and their Google Calendar events in step"""

from .adapters import EntityKind, default_adapters
from .classifier import (
    UNSCHEDULED_FALLBACK_ACTION,
    EventAction,
    EventSnapshot,
    OperationKind,
    classify,
)
from .executor import CalendarSyncExecutor
from .orchestrator import ReconcileResult, ReconciliationOrchestrator

__all__ = [
    "CalendarSyncExecutor",
    "EntityKind",
    "EventAction",
    "EventSnapshot",
    "OperationKind",
    "ReconcileResult",
    "ReconciliationOrchestrator",
    "UNSCHEDULED_FALLBACK_ACTION",
    "classify",
    "default_adapters",
]
