"""Best-effort mirroring of the client's working copy to the server.

A push overwrites the server's ``books`` and ``reservations`` collections
with the client's full sets. Pushes run on a single background thread from
snapshots taken when they are scheduled, so later local mutations never leak
into an in-flight push. Failures are logged and kept in a bounded
dead-letter log; they are never raised to the caller that scheduled them.
"""

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from ..config import settings
from ..errors import SyncFailure
from ..utils import to_iso, utc_now
from .http_client import ApiClient

logger = logging.getLogger(__name__)


@dataclass
class FailedPush:
    failed_at: str
    error: str
    books: List[Dict[str, Any]]
    reservations: List[Dict[str, Any]]


class CatalogSync:
    def __init__(self, client: ApiClient, dead_letter_size: Optional[int] = None) -> None:
        self.client = client
        self.dead_letters: Deque[FailedPush] = deque(maxlen=dead_letter_size or settings.sync_dead_letter_size)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="crumbelore-sync")
        self._pending: List[Future] = []

    def push(self, books: List[Dict[str, Any]], reservations: List[Dict[str, Any]]) -> bool:
        """Push both sets now. Returns False (and dead-letters the payload) on failure."""
        try:
            self.client.sync_books(books)
            self.client.sync_reservations(reservations)
        except SyncFailure as exc:
            logger.warning(f"Server sync failed, continuing offline: {exc}")
            self.dead_letters.append(FailedPush(to_iso(utc_now()), str(exc), books, reservations))
            return False
        logger.info("Data synced with server")
        return True

    def push_later(self, books: List[Dict[str, Any]], reservations: List[Dict[str, Any]]) -> Future:
        """Schedule a push in the background and return immediately."""
        future = self._executor.submit(self.push, books, reservations)
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(future)
        return future

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every scheduled push has finished."""
        for future in list(self._pending):
            future.result(timeout=timeout)
        self._pending = []

    def close(self) -> None:
        self._executor.shutdown(wait=True)
