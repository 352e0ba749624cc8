"""
Exceptions raised by backend implementations.

Every failure of a remote call is raised as a BackendError subclass so the
synchronization layer can catch them at the call site and decide how to
surface them.
"""

from __future__ import annotations

from typing import Any

# PostgREST / Postgres codes meaning "the schema does not know this column"
SCHEMA_MISMATCH_CODES = frozenset({"PGRST204", "42703", "PGRST200"})
# Postgres insufficient_privilege
PERMISSION_DENIED_CODE = "42501"


class BackendError(Exception):
    """Error from a remote store, file store or change feed operation."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.status_code = status_code

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} ({self.code})"
        return self.message


class NotConfiguredError(BackendError):
    """No backend credentials are available."""

    pass


class SchemaMismatchError(BackendError):
    """The remote schema does not recognize a field being written."""

    pass


class StorageError(BackendError):
    """A file bucket operation failed."""

    pass


class StoragePermissionError(StorageError):
    """The bucket policies reject the operation."""

    pass


class RealtimeError(BackendError):
    """The realtime channel could not be joined or broke."""

    pass


def is_schema_mismatch(code: str | None, message: str) -> bool:
    """Classify a database error as an unknown-column error."""
    if code in SCHEMA_MISMATCH_CODES:
        return True
    lowered = message.lower()
    return "schema cache" in lowered or ("column" in lowered and "does not exist" in lowered)


def is_permission_denied(code: str | None, message: str, status_code: int | None = None) -> bool:
    """Classify a storage error as a bucket policy rejection."""
    if code == PERMISSION_DENIED_CODE or status_code == 403:
        return True
    lowered = message.lower()
    return (
        PERMISSION_DENIED_CODE in lowered
        or "owner" in lowered
        or "row-level security" in lowered
    )
