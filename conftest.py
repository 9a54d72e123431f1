from datetime import datetime, timedelta, timezone

import pytest

from crumbelore.auth import AuthSystem, SessionStorage
from crumbelore.catalog import Catalog
from crumbelore.database import RecordStore
from crumbelore.reservations import ReservationManager


class FakeClock:
    """Manually advanced UTC clock for deterministic timestamps."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path):
    # Each test gets its own directory; no sleeping between retries
    return RecordStore(tmp_path / "client", retries=3, retry_delay=0)


@pytest.fixture
def catalog(store, clock):
    store.initialize()
    return Catalog(store, clock=clock)


@pytest.fixture
def auth(clock):
    return AuthSystem(SessionStorage(), clock=clock)


@pytest.fixture
def logged_in(auth):
    result = auth.login("reader@example.com", "secret")
    assert result.success
    return result.data["user"]


@pytest.fixture
def manager(catalog, auth, clock):
    return ReservationManager(catalog, auth, clock=clock)
