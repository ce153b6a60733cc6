"""Custom exceptions for TetherDB.

Two kinds of error reach callers of the relation services:

- ``ForbiddenError``: the caller may not perform the operation, or the record
  is not visible to them. Both cases share one message so the error never
  reveals whether a relation exists.
- ``InvalidPayloadError``: the request itself is wrong (missing input, unknown
  collection or field, primary key used as foreign key, duplicate relation).

Errors raised by the database inside a transaction are not wrapped.
"""

from __future__ import annotations

from typing import Any


class TetherDBError(Exception):
    """Base exception for all TetherDB errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(TetherDBError):
    """Failed to connect to the database."""

    pass


class ForbiddenError(TetherDBError):
    """Caller lacks access, or the requested record is not visible to them."""

    MESSAGE = "You don't have permission to access this."

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


class InvalidPayloadError(TetherDBError):
    """Request payload failed validation."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, context)
