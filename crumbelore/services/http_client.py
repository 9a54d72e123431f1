import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import SyncFailure

logger = logging.getLogger(__name__)


class ApiClient:
    """Small httpx wrapper for the Crumbelore backend.

    An existing ``httpx.Client`` may be injected (FastAPI's ``TestClient`` is
    one), otherwise a client with an explicit timeout is created and owned.
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.Client] = None,
                 transport: Optional[httpx.BaseTransport] = None, timeout: Optional[float] = None) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_client = client is None
        if client is None:
            timeout_cfg = httpx.Timeout(
                timeout=timeout or settings.http_timeout,
                connect=settings.http_connect_timeout,
            )
            client = httpx.Client(base_url=self.base_url, timeout=timeout_cfg, transport=transport)
        self._client = client
        self.token: Optional[str] = settings.sync_token

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, **kwargs) -> httpx.Response:
        return self._client.get(path, headers=self._headers(), **kwargs)

    def post(self, path: str, json: Any = None, **kwargs) -> httpx.Response:
        return self._client.post(path, json=json, headers=self._headers(), **kwargs)

    # ------------------------- Endpoints ------------------------- #
    def health(self) -> bool:
        try:
            return self.get("/health").status_code == 200
        except httpx.RequestError as exc:
            logger.info(f"Server unreachable at {self.base_url}: {exc}")
            return False

    def login(self, email: str, password: str, user_type: str) -> httpx.Response:
        return self.post("/api/auth/login", json={"email": email, "password": password, "userType": user_type})

    def sync_books(self, books: List[Dict[str, Any]]) -> httpx.Response:
        return self._sync("/api/books/sync", {"books": books})

    def sync_reservations(self, reservations: List[Dict[str, Any]]) -> httpx.Response:
        return self._sync("/api/reservations/sync", {"reservations": reservations})

    def _sync(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            response = self.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SyncFailure(f"{path}: {exc}") from exc
        return response

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
