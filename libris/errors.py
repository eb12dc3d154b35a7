"""
Typed errors raised by the libris services.

Every domain-rule violation surfaces as one of these; persistence failures
are wrapped in PersistenceException with the original OSError chained.
"""

from __future__ import annotations
from typing import Any, Optional


class LibraryServiceException(Exception):
    """Base exception for all libris errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class MandatoryFieldException(LibraryServiceException):
    """A required field is missing, blank or out of range."""

    def __init__(self, field: str, reason: str, value: Any = None):
        super().__init__(
            message=f"{field}: {reason}",
            details={"field": field, "reason": reason, "value": value},
        )
        self.field = field


class InvalidIsbnException(LibraryServiceException):
    """ISBN is malformed or already catalogued."""

    def __init__(self, isbn: str, reason: str):
        super().__init__(
            message=f"Invalid ISBN {isbn!r}: {reason}",
            details={"isbn": isbn, "reason": reason},
        )
        self.isbn = isbn


class InvalidEmailException(LibraryServiceException):
    """Email does not belong to the organizational domain."""

    def __init__(self, email: str, domain: str):
        super().__init__(
            message=f"Invalid email {email!r}: only addresses ending with '{domain}' are accepted",
            details={"email": email, "domain": domain},
        )
        self.email = email


class NoAvailableCopiesException(LibraryServiceException):
    def __init__(self, isbn: str):
        super().__init__(
            message=f"No copies available for book {isbn}",
            details={"isbn": isbn},
        )


class MaxLoansReachedException(LibraryServiceException):
    def __init__(self, code: str, limit: int):
        super().__init__(
            message=f"User {code} already has {limit} active loans",
            details={"code": code, "limit": limit},
        )


class UserHasActiveLoanException(LibraryServiceException):
    """Removal blocked by a loan that is still open."""

    def __init__(self, entity: str, key: str):
        super().__init__(
            message=f"Cannot remove {entity} {key}: active loans exist",
            details={"entity": entity, "key": key},
        )


class PersistenceException(LibraryServiceException):
    """Reading or writing the archive snapshot failed."""

    def __init__(self, operation: str, path: str, reason: Optional[str] = None):
        message = f"Archive {operation} failed for {path}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message=message,
            details={"operation": operation, "path": path, "reason": reason},
        )


class SnapshotFormatException(PersistenceException):
    """The snapshot file exists but does not contain an archive."""

    def __init__(self, path: str, reason: str):
        super().__init__(operation="load", path=path, reason=reason)
