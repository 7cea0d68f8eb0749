"""Sessions and flash messages.

The session keeps its data server-side, keyed by a random id carried in a
cookie signed with ``itsdangerous``. Flash values travel in their own
signed cookie and are readable during the very next request only.
"""

from __future__ import annotations

import logging
import secrets
import threading
from typing import TYPE_CHECKING, Any, Protocol

from itsdangerous import BadSignature, URLSafeSerializer

from signpost.cookies import SetCookie

if TYPE_CHECKING:
    from signpost.request import Request

logger = logging.getLogger("signpost.sessions")

_MISSING = object()


class SessionStore(Protocol):
    """Key-value store a request context reads and writes, then commits."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def clear(self, key: str) -> None: ...

    def commit(self) -> SetCookie | None: ...


class SessionBackend(Protocol):
    def load(self, session_id: str) -> dict[str, Any] | None: ...

    def save(self, session_id: str, data: dict[str, Any]) -> None: ...


class MemorySessionBackend:
    """Process-local session storage. Sessions live until the process exits."""

    __slots__ = ("_data", "_lock")

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def load(self, session_id: str) -> dict[str, Any] | None:
        with self._lock:
            data = self._data.get(session_id)
            return dict(data) if data is not None else None

    def save(self, session_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            self._data[session_id] = dict(data)


class CookieSigner:
    """Signs and verifies cookie payloads with a per-purpose salt."""

    __slots__ = ("_flash", "_session")

    def __init__(self, secret_key: str) -> None:
        self._session = URLSafeSerializer(secret_key, salt="signpost.session")
        self._flash = URLSafeSerializer(secret_key, salt="signpost.flash")

    def dump_session_id(self, session_id: str) -> str:
        return self._session.dumps(session_id)

    def load_session_id(self, value: str) -> str | None:
        try:
            session_id = self._session.loads(value)
        except BadSignature:
            logger.debug("Ignoring session cookie with a bad signature")
            return None
        return session_id if isinstance(session_id, str) else None

    def dump_flash(self, data: dict[str, Any]) -> str:
        return self._flash.dumps(data)

    def load_flash(self, value: str) -> dict[str, Any]:
        try:
            data = self._flash.loads(value)
        except BadSignature:
            logger.debug("Ignoring flash cookie with a bad signature")
            return {}
        return data if isinstance(data, dict) else {}


class Session:
    """Server-side session bound to one request.

    Nothing is loaded until the first access and no cookie is emitted
    unless the data changed.
    """

    __slots__ = ("_backend", "_cookie_name", "_data", "_id", "_is_new", "_modified", "_signer")

    def __init__(self, backend: SessionBackend, signer: CookieSigner, cookie_name: str, request: Request) -> None:
        self._backend = backend
        self._signer = signer
        self._cookie_name = cookie_name
        raw = request.cookies.get(cookie_name)
        self._id = signer.load_session_id(raw) if raw else None
        self._is_new = self._id is None
        self._data: dict[str, Any] | None = None
        self._modified = False

    @property
    def data(self) -> dict[str, Any]:
        if self._data is None:
            loaded = self._backend.load(self._id) if self._id else None
            if loaded is None:
                # unknown or expired id: start over with a fresh one
                self._is_new = True
                self._id = None
            self._data = loaded or {}
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self.clear(key)
            return
        self.data[key] = value
        self._modified = True

    def clear(self, key: str) -> None:
        if self.data.pop(key, _MISSING) is not _MISSING:
            self._modified = True

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def commit(self) -> SetCookie | None:
        """Persist changes; return the cookie to send for a new session."""
        if not self._modified:
            return None
        if self._id is None:
            self._id = secrets.token_urlsafe(32)
        self._backend.save(self._id, self.data)
        if self._is_new:
            return SetCookie(self._cookie_name, self._signer.dump_session_id(self._id))
        return None


class FlashBag:
    """Values set now are readable during the next request only."""

    __slots__ = ("_cookie_name", "_had_cookie", "_incoming", "_outgoing", "_signer")

    def __init__(self, signer: CookieSigner, cookie_name: str, request: Request) -> None:
        self._signer = signer
        self._cookie_name = cookie_name
        raw = request.cookies.get(cookie_name)
        self._had_cookie = raw is not None
        self._incoming = signer.load_flash(raw) if raw else {}
        self._outgoing: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._incoming.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._outgoing[key] = value

    def clear(self, key: str) -> None:
        self._outgoing.pop(key, None)

    def commit(self) -> SetCookie | None:
        if self._outgoing:
            return SetCookie(self._cookie_name, self._signer.dump_flash(self._outgoing))
        if self._had_cookie:
            return SetCookie.expired(self._cookie_name)
        return None
