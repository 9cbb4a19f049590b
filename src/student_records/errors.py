"""
Error types

All errors of the record store derive from RecordStoreError.
The controller catches this base class per menu action, shows the message
and returns to the menu loop.

- ValidationError: invalid input (roll, marks, name, username, role, key)
- NotFoundError: roll, user, student file or backup is missing
- StorageError: file could not be read or written
- PermissionDenied: the role of the session lacks the capability
- AuthenticationError: wrong username or password
"""

from __future__ import annotations


class RecordStoreError(Exception):
    """Base class for all expected errors."""


class ValidationError(RecordStoreError, ValueError):
    """Input was rejected. Nothing was changed."""


class NotFoundError(RecordStoreError):
    """A record, user or file does not exist."""


class StorageError(RecordStoreError):
    """A file could not be opened, read or written."""


class PermissionDenied(RecordStoreError):
    """The active role is not allowed to run the operation."""


class AuthenticationError(RecordStoreError):
    """
    Login failed.
    attempts_left tells the console how many tries remain.
    """

    def __init__(self, message: str, attempts_left: int) -> None:
        super().__init__(message)
        self.attempts_left = attempts_left


class LoginAttemptsExceeded(AuthenticationError):
    """The last allowed login attempt failed."""

    def __init__(self, message: str = "Maximum attempts reached.") -> None:
        super().__init__(message, attempts_left=0)
