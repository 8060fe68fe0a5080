"""Error taxonomy for securegen.

Generation and query code never raises these; they come from the
persistence / auth collaborators and are propagated unchanged by the
lifecycle manager.
"""

from __future__ import annotations


class SecureGenError(Exception):
    """Base class for every securegen failure."""


class InvalidCredentials(SecureGenError):
    """Login failed: unknown user or wrong password."""


class UsernameTaken(SecureGenError):
    """Registration conflict."""


class Unauthorized(SecureGenError):
    """No active session where one is required."""


class NotFound(SecureGenError):
    """A single-record operation targeted a record that does not exist."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record {record_id!r} not found.")
        self.record_id = record_id


class TransportFailure(SecureGenError):
    """The storage or network call itself failed."""


class BadVaultError(TransportFailure):
    """Raised when the vault file is unreadable or corrupt."""
