"""Placeholder identity for the client.

This is not a security boundary. Any syntactically valid email/password pair
gets a session; the server's login endpoint does no password verification
either. The session lives in a :class:`SessionStorage` under four keys and
expires after a fixed number of hours.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import httpx

from .config import settings
from .errors import CrumbeloreError, InvalidFormat, MissingCredentials, OperationResult
from .services.http_client import ApiClient
from .utils import email_local_part, epoch_ms, utc_now

logger = logging.getLogger(__name__)

AUTH_TOKEN = "authToken"
CURRENT_USER = "currentUser"
USER_TYPE = "userType"
AUTH_EXPIRY = "authExpiry"
SESSION_KEYS = (AUTH_TOKEN, CURRENT_USER, USER_TYPE, AUTH_EXPIRY)


@dataclass
class User:
    id: Any
    email: str
    name: str
    type: str = "customer"
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "email": self.email, "name": self.name, "type": self.type}
        if self.created_at:
            data["createdAt"] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data.get("id"),
            email=data.get("email", ""),
            name=data.get("name", ""),
            type=data.get("type") or "customer",
            created_at=data.get("createdAt"),
        )


class SessionStorage:
    """String key/value storage for the current session.

    In-memory by default. With ``path`` set, every change is mirrored to a
    JSON file so that separate CLI invocations share one session.
    """

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self.path = Path(path) if path else None
        self._data: Dict[str, str] = {}
        if self.path and self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    self._data = {str(k): str(v) for k, v in loaded.items()}
            except (OSError, ValueError) as exc:
                logger.warning(f"Ignoring unreadable session file {self.path}: {exc}")

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def keys(self):
        return list(self._data)

    def _flush(self) -> None:
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
        except OSError as exc:
            logger.warning(f"Could not persist session to {self.path}: {exc}")


class AuthSystem:
    def __init__(self, storage: Optional[SessionStorage] = None, client: Optional[ApiClient] = None,
                 clock: Callable[[], datetime] = utc_now, session_hours: Optional[int] = None) -> None:
        self.storage = storage or SessionStorage()
        self.client = client
        self.clock = clock
        if session_hours is None:
            session_hours = settings.session_hours
        self.session_lifetime = timedelta(hours=session_hours)
        self.is_offline_mode = client is None
        if client is not None and self.token:
            client.token = self.token

    def init(self) -> bool:
        """Probe the server; switch to offline (demo) mode if it is unreachable."""
        if self.client is None or not self.client.health():
            logger.info("Server offline, switching to demo mode")
            self.is_offline_mode = True
        else:
            logger.info("Server available")
            self.is_offline_mode = False
        return not self.is_offline_mode

    # ------------------------- Login ------------------------- #
    def login(self, email: str, password: str, user_type: str = "customer") -> OperationResult:
        try:
            if not email or not password:
                raise MissingCredentials()
            if self.is_offline_mode:
                user = self._offline_login(email, user_type)
            else:
                user = self._connected_login(email, password, user_type)
        except CrumbeloreError as exc:
            logger.info(f"Login failed for {email!r}: {exc.message}")
            return OperationResult.fail(exc)
        logger.info(f"Logged in {user.email} as {user_type}")
        return OperationResult.ok(user=user.to_dict())

    def _offline_login(self, email: str, user_type: str) -> User:
        if "@" not in email:
            raise InvalidFormat()
        now = self.clock()
        user = User(id=epoch_ms(now), email=email, name=email_local_part(email), type=user_type)
        self.store_session(f"demo-token-{epoch_ms(now)}", user.to_dict(), user_type)
        return user

    def _connected_login(self, email: str, password: str, user_type: str) -> User:
        try:
            response = self.client.login(email, password, user_type)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"Login request failed: {exc}")
            raise CrumbeloreError("Connection failed") from exc
        if not isinstance(data, dict):
            raise CrumbeloreError("Login failed")
        if response.is_error:
            raise CrumbeloreError(data.get("message") or "Login failed")
        if not data.get("token") or not isinstance(data.get("user"), dict):
            raise CrumbeloreError("Login failed")
        self.store_session(data["token"], data["user"], user_type)
        return User.from_dict(data["user"])

    # ------------------------- Session ------------------------- #
    def store_session(self, token: str, user: Dict[str, Any], user_type: str) -> None:
        expiry = self.clock() + self.session_lifetime
        self.storage.set_item(AUTH_TOKEN, token)
        self.storage.set_item(CURRENT_USER, json.dumps(user))
        self.storage.set_item(USER_TYPE, user_type)
        self.storage.set_item(AUTH_EXPIRY, str(epoch_ms(expiry)))
        if self.client is not None:
            self.client.token = token

    def get_current_user(self) -> Optional[Dict[str, Any]]:
        raw = self.storage.get_item(CURRENT_USER)
        if not raw:
            return None

        expiry = self.storage.get_item(AUTH_EXPIRY)
        if expiry:
            try:
                expired = epoch_ms(self.clock()) > int(expiry)
            except ValueError:
                logger.warning(f"Discarding session with unreadable expiry {expiry!r}")
                expired = True
            if expired:
                logger.info("Session expired")
                self.logout()
                return None

        try:
            return json.loads(raw)
        except ValueError:
            self.logout()
            return None

    def is_authenticated(self) -> bool:
        return self.get_current_user() is not None

    @property
    def token(self) -> Optional[str]:
        return self.storage.get_item(AUTH_TOKEN)

    @property
    def user_type(self) -> Optional[str]:
        return self.storage.get_item(USER_TYPE)

    def logout(self) -> None:
        for key in SESSION_KEYS:
            self.storage.remove_item(key)
        if self.client is not None:
            self.client.token = settings.sync_token
