"""
Error types for the Slotbook server.

This module defines all exception types raised by the stores, ledgers and
identity layer:
- SlotbookError: Base exception
- StoreUnavailableError: Document store I/O failure
- VersionConflictError: Conditional write lost against a concurrent writer
- NotFoundError: No availability document for the requested date
- InvalidIndexError: Entry index outside the current list bounds
- ConcurrentModificationError: Optimistic write retries exhausted
- AuthenticationError / ForbiddenError: Identity resolution failures

Invariants:
    - All errors inherit from SlotbookError
    - Error messages are human readable and safe to return to clients
    - Errors include context for debugging in ``details``
"""

from __future__ import annotations

from typing import Any


class SlotbookError(Exception):
    """Base exception for all Slotbook errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SLOTBOOK_ERROR"
        self.details = details or {}


class StoreUnavailableError(SlotbookError):
    """The document store could not complete an operation.

    Raised when:
    - The store is not connected
    - The backend raised an I/O or database error
    """

    def __init__(self, message: str, backend: str | None = None) -> None:
        super().__init__(message, code="STORE_UNAVAILABLE", details={"backend": backend})
        self.backend = backend


class VersionConflictError(SlotbookError):
    """A conditional write found a different document version than expected."""

    def __init__(self, message: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            message,
            code="VERSION_CONFLICT",
            details={
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class NotFoundError(SlotbookError):
    """No availability document exists for the requested date."""

    def __init__(self, user_id: str, date: str) -> None:
        super().__init__(
            "Availability for the specified date not found",
            code="NOT_FOUND",
            details={"user_id": user_id, "date": date},
        )
        self.user_id = user_id
        self.date = date


class InvalidIndexError(SlotbookError):
    """Entry index is outside ``[0, len(entries))``."""

    def __init__(self, index: int, length: int) -> None:
        super().__init__(
            "Invalid index provided",
            code="INVALID_INDEX",
            details={"index": index, "length": length},
        )
        self.index = index
        self.length = length


class ConcurrentModificationError(SlotbookError):
    """A read-modify-write kept losing against concurrent writers."""

    def __init__(self, user_id: str, date: str, attempts: int) -> None:
        super().__init__(
            f"Availability for {date} was modified concurrently; gave up after {attempts} attempts",
            code="CONCURRENT_MODIFICATION",
            details={"user_id": user_id, "date": date, "attempts": attempts},
        )
        self.attempts = attempts


class AuthenticationError(SlotbookError):
    """No usable credentials were presented."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, code="UNAUTHORIZED")


class ForbiddenError(SlotbookError):
    """Credentials were presented but could not be verified."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, code="FORBIDDEN")
