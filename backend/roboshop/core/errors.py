"""Error taxonomy shared by the reconciliation engine and its callers."""

from typing import Optional


class RoboshopError(Exception):
    """Base class for every error raised by the backend core."""


class ValidationError(RoboshopError):
    """Malformed or missing fields. Nothing was persisted."""


class ConflictError(RoboshopError):
    """The requested booking overlaps an existing one. Nothing was persisted."""


class NotFoundError(RoboshopError):
    """A referenced entity does not exist. Nothing was persisted."""


class ExternalServiceError(RoboshopError):
    """A calendar call failed: unreachable, rejected, timed out or not authenticated."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ExternalEventMissingError(ExternalServiceError):
    """The remote event referenced by a stored id no longer exists."""


class ConsistencyError(RoboshopError):
    """The database change committed but the paired calendar step failed.

    Retrying ``ReconciliationOrchestrator.resync(kind, entity_id)`` is safe;
    re-running the whole mutation is not needed.
    """

    def __init__(
        self,
        kind: str,
        entity_id: int,
        action: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"{kind} {entity_id} was saved but calendar '{action}' failed: {cause}"
        )
        self.kind = kind
        self.entity_id = entity_id
        self.action = action
        self.cause = cause
