import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from .auth import AuthSystem
from .catalog import Catalog
from .config import settings
from .errors import (
    AlreadyCancelled,
    CrumbeloreError,
    DuplicateReservation,
    NoCopiesAvailable,
    NotFound,
    OperationResult,
    Unauthenticated,
    Unauthorized,
)
from .reservation import Reservation
from .services.sync import CatalogSync
from .utils import epoch_ms, utc_now

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ReservationManager:
    """Reserve and cancel copies of catalog books for the logged-in user.

    Public operations never raise domain errors; they return an
    :class:`OperationResult` whose ``success`` flag callers must check.
    """

    def __init__(self, catalog: Catalog, auth: AuthSystem, sync: Optional[CatalogSync] = None,
                 clock: Callable[[], datetime] = utc_now, reservation_days: Optional[int] = None) -> None:
        self.catalog = catalog
        self.auth = auth
        self.sync = sync
        self.clock = clock
        if reservation_days is None:
            reservation_days = settings.reservation_days
        self.period = timedelta(days=reservation_days)

    @property
    def reservations(self) -> List[Reservation]:
        return self.catalog.reservations

    def get(self, reservation_id: str) -> Optional[Reservation]:
        for reservation in self.reservations:
            if reservation.id == reservation_id:
                return reservation
        return None

    # ------------------------- Reserve ------------------------- #
    def reserve(self, book_id: str, notes: str = "") -> OperationResult:
        try:
            reservation = self._reserve(book_id, notes)
        except CrumbeloreError as exc:
            logger.info(f"Reservation failed for {book_id}: {exc.message}")
            return OperationResult.fail(exc)

        self._push_to_server()
        return OperationResult.ok(reservationId=reservation.id, expiryDate=reservation.expiry_date)

    def _reserve(self, book_id: str, notes: str) -> Reservation:
        user = self.auth.get_current_user()
        if not user:
            raise Unauthenticated()

        with self.catalog.lock:
            book = self.catalog.get_by_id(book_id)
            if not book:
                raise NotFound("Book not found")

            if book.available_copies <= 0:
                raise NoCopiesAvailable()

            if self._active_for(book_id, user.get("id")):
                raise DuplicateReservation()

            self.catalog.claim_copy(book_id)

            now = self.clock()
            reservation = Reservation.create(
                id=self._next_id(now), book=book, user=user, when=now, notes=notes, period=self.period,
            )
            self.catalog.reservations.append(reservation)
            self.catalog.save()

        logger.info(f"User {user.get('id')} reserved {book_id} until {reservation.expiry_date}")
        return reservation

    def _active_for(self, book_id: str, user_id: Any) -> Optional[Reservation]:
        for reservation in self.reservations:
            if reservation.book_id == book_id and reservation.user_id == user_id and reservation.is_active:
                return reservation
        return None

    def _next_id(self, now: datetime) -> str:
        stamp = epoch_ms(now)
        taken = {r.id for r in self.reservations}
        while f"RES-{stamp}" in taken:
            stamp += 1
        return f"RES-{stamp}"

    def _push_to_server(self) -> None:
        if self.sync is None:
            return
        self.sync.push_later(self.catalog.books_payload(), self.catalog.reservations_payload())

    # ------------------------- Cancel ------------------------- #
    def cancel(self, reservation_id: str) -> OperationResult:
        try:
            self._cancel(reservation_id)
        except CrumbeloreError as exc:
            logger.info(f"Cancellation of {reservation_id} failed: {exc.message}")
            return OperationResult.fail(exc)
        return OperationResult.ok(reservationId=reservation_id)

    def _cancel(self, reservation_id: str) -> None:
        with self.catalog.lock:
            reservation = self.get(reservation_id)
            if not reservation:
                raise NotFound("Reservation not found")

            user = self.auth.get_current_user()
            if not user:
                raise Unauthenticated("Please log in to manage reservations")
            if reservation.user_id != user.get("id"):
                raise Unauthorized()

            if not reservation.is_active:
                raise AlreadyCancelled()

            reservation.cancel(self.clock())
            self.catalog.release_copy(reservation.book_id)
            self.catalog.save()

        logger.info(f"User {user.get('id')} cancelled reservation {reservation_id}")

    # ------------------------- Queries ------------------------- #
    def list_for_user(self, user_id: Any = None) -> List[Reservation]:
        """All of a user's reservations, newest first. Defaults to the current user."""
        if user_id is None:
            user = self.auth.get_current_user()
            user_id = user.get("id") if user else None
        if user_id is None:
            return []

        mine = [r for r in self.reservations if r.user_id == user_id]
        return sorted(mine, key=lambda r: r.reserved_at or _EPOCH, reverse=True)

    def is_available(self, book_id: str) -> bool:
        book = self.catalog.get_by_id(book_id)
        return bool(book and book.available_copies > 0)
