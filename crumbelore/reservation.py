from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from .utils import parse_iso, to_iso

RESERVATION_PERIOD = timedelta(days=7)


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


@dataclass
class Reservation:
    """A claim on one copy of a book.

    User and book fields are snapshots taken when the reservation was made.
    The only transition is ``active -> cancelled``.
    """

    id: str
    book_id: str
    user_id: Any
    user_email: str
    user_name: str
    book_title: str
    book_author: str
    reservation_date: str
    expiry_date: str
    status: ReservationStatus = ReservationStatus.ACTIVE
    cancelled_date: Optional[str] = None
    notes: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    @property
    def reserved_at(self) -> Optional[datetime]:
        return parse_iso(self.reservation_date)

    def cancel(self, when: datetime) -> None:
        self.status = ReservationStatus.CANCELLED
        self.cancelled_date = to_iso(when)

    @classmethod
    def create(cls, id: str, book, user: Dict[str, Any], when: datetime,
               notes: str = "", period: timedelta = RESERVATION_PERIOD) -> "Reservation":
        return cls(
            id=id,
            book_id=book.id,
            user_id=user.get("id"),
            user_email=user.get("email", ""),
            user_name=user.get("name", ""),
            book_title=book.title,
            book_author=book.author,
            reservation_date=to_iso(when),
            expiry_date=to_iso(when + period),
            notes=notes or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "bookId": self.book_id,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "userName": self.user_name,
            "bookTitle": self.book_title,
            "bookAuthor": self.book_author,
            "reservationDate": self.reservation_date,
            "expiryDate": self.expiry_date,
            "status": self.status.value,
            "notes": self.notes,
        }
        if self.cancelled_date:
            data["cancelledDate"] = self.cancelled_date
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reservation":
        try:
            status = ReservationStatus(data.get("status", "active"))
        except ValueError:
            status = ReservationStatus.CANCELLED
        return cls(
            id=str(data.get("id", "")),
            book_id=str(data.get("bookId", "")),
            user_id=data.get("userId"),
            user_email=data.get("userEmail", ""),
            user_name=data.get("userName", ""),
            book_title=data.get("bookTitle", ""),
            book_author=data.get("bookAuthor", ""),
            reservation_date=data.get("reservationDate", ""),
            expiry_date=data.get("expiryDate", ""),
            status=status,
            cancelled_date=data.get("cancelledDate"),
            notes=data.get("notes") or "",
        )
