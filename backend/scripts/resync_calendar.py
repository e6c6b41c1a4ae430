from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure the backend project root (the directory containing the "roboshop" package)
# is on sys.path so this script can be executed from the repo root or backend/.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from roboshop.core.config import LOG_LEVEL
from roboshop.core.errors import RoboshopError
from roboshop.integrations.google_calendar import CalendarClientProvider
from roboshop.repositories import SqlUnitOfWork
from roboshop.services.reconciliation import (
    CalendarSyncExecutor,
    EntityKind,
    ReconciliationOrchestrator,
)


async def resync(kind: str, entity_ids: list[int]) -> int:
    """Push entities to Google Calendar again after a failed calendar step."""
    provider = CalendarClientProvider()
    if not await provider.initialize():
        print("Google Calendar is not authenticated; connect it first.", file=sys.stderr)
        return 1

    orchestrator = ReconciliationOrchestrator(SqlUnitOfWork, CalendarSyncExecutor(provider))
    failures = 0
    for entity_id in entity_ids:
        try:
            result = await orchestrator.resync(kind, entity_id)
        except RoboshopError as e:
            failures += 1
            print(json.dumps({"kind": kind, "id": entity_id, "error": str(e)}))
            continue
        print(json.dumps({
            "kind": kind,
            "id": entity_id,
            "action": result.action.value,
            "event_id": result.entity.event_id,
        }))
    return 1 if failures else 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Retry the calendar step for saved entities.")
    parser.add_argument("kind", choices=[kind.value for kind in EntityKind], help="Entity kind")
    parser.add_argument("ids", nargs="+", type=int, help="Entity ids")
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL)
    args = parse_args()
    sys.exit(asyncio.run(resync(args.kind, args.ids)))


if __name__ == "__main__":
    main()
