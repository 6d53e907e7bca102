"""Error taxonomy shared by the engine, the coordinator and the transports.

Every error carries a short machine ``code`` (sent to clients in ``room.error``
payloads) and an HTTP ``status`` used by the REST blueprint.
"""

from __future__ import annotations


class SyncTubeError(Exception):
    code = "error"
    status = 500

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, **self.details}


class ValidationError(SyncTubeError):
    """Malformed request (missing field, bad direction, empty name)."""

    code = "invalid"
    status = 400


class NotFoundError(SyncTubeError):
    """Room or queue item is missing, inactive or expired."""

    code = "not_found"
    status = 404


class UnauthorizedError(SyncTubeError):
    """Caller is not allowed to perform the mutation."""

    code = "unauthorized"
    status = 403


class ConflictError(SyncTubeError):
    """Room code collision on creation; the caller regenerates and retries."""

    code = "conflict"
    status = 409


class TransientIOError(SyncTubeError):
    """Storage, lock or network failure; nothing was written."""

    code = "transient_io"
    status = 503


class StuckQueueError(SyncTubeError):
    """advance() found no item with a different source id than the one removed."""

    code = "stuck_queue"
    status = 409


class CatalogExhaustedError(SyncTubeError):
    """Auto-fill found no acceptable catalog candidate within its retry budget."""

    code = "catalog_exhausted"
    status = 503


__all__ = [
    "SyncTubeError",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ConflictError",
    "TransientIOError",
    "StuckQueueError",
    "CatalogExhaustedError",
]
