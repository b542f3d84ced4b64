"""
Custom exceptions and error handling for the Morning Deck core.

Provides:
- Typed exception hierarchy for storage and deck failure modes
- Error context preservation for debugging
- Translation of SQLAlchemy/driver exceptions into that hierarchy
"""

from typing import Any

from sqlalchemy import exc as sa_exc

# Postgres SQLSTATE for "undefined_column"
UNDEFINED_COLUMN_SQLSTATE = '42703'


class MorningDeckError(Exception):
    """Base exception for all Morning Deck errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Client Errors
# =============================================================================


class ClientError(MorningDeckError):
    """Base class for client-related errors."""

    pass


class StorageError(ClientError):
    """Error from the relational store."""

    pass


class StorageUnavailable(StorageError):
    """The store could not be reached. Safe to retry."""

    pass


class StorageQueryError(StorageError):
    """Error executing a SQL statement."""

    pass


class StorageConstraintError(StorageError):
    """Constraint violation that was not absorbed by ON CONFLICT."""

    pass


class SchemaDrift(StorageError):
    """An expected optional column is absent from the live schema."""

    def __init__(
        self,
        message: str,
        column: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.column = column


# =============================================================================
# Deck Errors
# =============================================================================


class DeckError(MorningDeckError):
    """Base class for deck-related errors."""

    pass


class ValidationError(DeckError):
    """Input validation failed. Raised before any storage call."""

    pass


class NotFound(DeckError):
    """Run or item does not exist or does not belong to the requesting owner."""

    pass


# =============================================================================
# Error Handling Utilities
# =============================================================================


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, 'orig', None) or exc
    return getattr(orig, 'sqlstate', None) or getattr(orig, 'pgcode', None)


def wrap_storage_error(exc: Exception, context: dict[str, Any] | None = None) -> StorageError:
    """
    Wrap a SQLAlchemy or driver exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging

    Returns:
        Typed StorageError subclass
    """
    if isinstance(exc, StorageError):
        return exc

    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if _sqlstate(exc) == UNDEFINED_COLUMN_SQLSTATE:
        return SchemaDrift(f"Storage schema is missing a column: {exc}", context=ctx)
    if isinstance(exc, (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError)):
        return StorageUnavailable(f"Storage unavailable: {exc}", context=ctx)
    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return StorageUnavailable(f"Storage connection lost: {exc}", context=ctx)
    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return StorageUnavailable(f"Storage unavailable: {exc}", context=ctx)
    if isinstance(exc, sa_exc.IntegrityError):
        return StorageConstraintError(f"Storage constraint violation: {exc}", context=ctx)
    return StorageQueryError(f"Storage query error: {exc}", context=ctx)
