"""Error taxonomy shared by the server and the client library.

Every error carries a stable ``code`` so that client-side operations can
report failures as data (see :class:`OperationResult`) while the HTTP layer
maps the same classes to status codes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class CrumbeloreError(Exception):
    """Base class for all application errors."""

    code = "Error"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        message = message or (self.__class__.__doc__ or self.code).strip()
        super().__init__(message)
        self.message = message


class ValidationError(CrumbeloreError):
    """Missing or malformed required fields."""

    code = "ValidationError"
    status_code = 400

    def __init__(self, message: str = "", fields: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])


class MissingCredentials(ValidationError):
    """Email and password required"""

    code = "MissingCredentials"


class InvalidFormat(ValidationError):
    """Invalid email format"""

    code = "InvalidFormat"


class DuplicateBook(ValidationError):
    """A book with this identifier already exists"""

    code = "DuplicateBook"


class NotFound(CrumbeloreError):
    """Referenced entity not found"""

    code = "NotFound"
    status_code = 404


class Unauthenticated(CrumbeloreError):
    """Please log in to reserve books"""

    code = "Unauthenticated"
    status_code = 401


class Unauthorized(CrumbeloreError):
    """Unauthorized to cancel this reservation"""

    code = "Unauthorized"
    status_code = 403


class NoCopiesAvailable(CrumbeloreError):
    """No copies available for reservation"""

    code = "NoCopiesAvailable"
    status_code = 409


class DuplicateReservation(CrumbeloreError):
    """You already have this book reserved"""

    code = "DuplicateReservation"
    status_code = 409


class AlreadyCancelled(CrumbeloreError):
    """Reservation is already cancelled"""

    code = "AlreadyCancelled"
    status_code = 409


class StoreFailure(CrumbeloreError):
    """Failed to save data"""

    code = "StoreFailure"
    status_code = 500


class StoreInitError(CrumbeloreError):
    """Storage directory could not be created"""

    code = "StoreInitError"


class SyncFailure(CrumbeloreError):
    """Server sync failed"""

    code = "SyncFailure"


@dataclass
class OperationResult:
    """Uniform ``{success, ...}`` outcome of a client-side operation."""

    success: bool
    error: Optional[str] = None
    code: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: CrumbeloreError) -> "OperationResult":
        return cls(success=False, error=exc.message, code=exc.code)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        out.update(self.data)
        if not self.success:
            out["error"] = self.error
            out["code"] = self.code
        return out
