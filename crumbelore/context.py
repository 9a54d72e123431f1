from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from .auth import AuthSystem, SessionStorage
from .catalog import Catalog
from .config import Settings, settings as default_settings
from .database import RecordStore
from .reservations import ReservationManager
from .services.http_client import ApiClient
from .services.sync import CatalogSync

SESSION_FILE = "session.json"


@dataclass
class ClientContext:
    """Everything a client-side UI needs, built once per session."""

    store: RecordStore
    catalog: Catalog
    auth: AuthSystem
    reservations: ReservationManager
    client: Optional[ApiClient] = None
    sync: Optional[CatalogSync] = None

    def close(self) -> None:
        if self.sync is not None:
            self.sync.close()
        if self.client is not None:
            self.client.close()


def build_context(config: Optional[Settings] = None, client: Optional[ApiClient] = None,
                  offline: bool = False, probe: bool = True) -> ClientContext:
    config = config or default_settings
    client_dir = Path(config.client_dir)
    store = RecordStore(client_dir, retries=config.store_retries, retry_delay=config.store_retry_delay)
    store.initialize()

    if offline:
        client = None
    elif client is None:
        client = ApiClient(config.api_base_url)

    auth = AuthSystem(SessionStorage(client_dir / SESSION_FILE), client=client,
                      session_hours=config.session_hours)
    if probe:
        auth.init()
    sync = None
    if client is not None and not auth.is_offline_mode:
        sync = CatalogSync(client, config.sync_dead_letter_size)

    catalog = Catalog(store)
    reservations = ReservationManager(catalog, auth, sync=sync, reservation_days=config.reservation_days)
    return ClientContext(store=store, catalog=catalog, auth=auth, reservations=reservations,
                         client=client, sync=sync)


@contextmanager
def open_context(config: Optional[Settings] = None, **kwargs) -> Iterator[ClientContext]:
    ctx = build_context(config, **kwargs)
    try:
        yield ctx
    finally:
        ctx.close()
