# src/taskline/session/gate.py

from __future__ import annotations

"""
Session gate.

Holds the bearer token (present / absent) and a broadcast channel for forced logouts.

Any collaborator that sees a 401/403 calls report_unauthorized(reason): the token is cleared
and every current subscriber is told, synchronously and in subscription order. The gate is
created by the composition root and injected; there is no module-level listener set.
"""

import logging
from collections.abc import Callable

from ..core.ports import SessionStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"

# Everything a forced logout wipes from credential storage.
AUTH_STORAGE_KEYS: tuple[str, ...] = (
    "token",
    "auth_token",
    "access_token",
    "jwt",
    "user",
    "auth_user",
)

UnauthorizedListener = Callable[[str], None]


class SessionGate:
    def __init__(self, store: SessionStore | None = None) -> None:
        self._store = store
        self._token: str | None = None
        self._subscribers: list[UnauthorizedListener] = []

    # ---- token state ----

    @property
    def token(self) -> str | None:
        return self._token

    def is_authenticated(self) -> bool:
        return bool(self._token)

    def restore(self) -> bool:
        """Seed the in-memory token from persistent storage. Returns is_authenticated()."""
        if self._store is None:
            return self.is_authenticated()
        try:
            raw = self._store.get(TOKEN_KEY)
        except Exception:
            logger.exception("Session restore failed")
            raw = None
        self._token = raw.strip() if raw and raw.strip() else None
        logger.info("Session restored authenticated=%s", self.is_authenticated())
        return self.is_authenticated()

    def set_session(self, token: str) -> None:
        token = str(token).strip()
        if not token:
            raise ValueError("token must be non-empty")
        self._token = token
        if self._store is not None:
            self._store.set(TOKEN_KEY, token)
        logger.info("Session set")

    def clear_session(self) -> None:
        self._token = None
        if self._store is not None:
            self._store.remove(TOKEN_KEY)
        logger.info("Session cleared")

    # ---- unauthorized broadcast ----

    def subscribe(self, fn: UnauthorizedListener) -> Callable[[], None]:
        self._subscribers.append(fn)
        return lambda: self.unsubscribe(fn)

    def unsubscribe(self, fn: UnauthorizedListener) -> None:
        if fn in self._subscribers:
            self._subscribers.remove(fn)

    def report_unauthorized(self, reason: str = "") -> None:
        """
        Clear the token and broadcast `reason` to the subscribers present right now.

        Subscribers added while delivering are not called for this delivery.
        A failing subscriber is logged and does not stop the others.
        """
        self._token = None
        targets = tuple(self._subscribers)
        logger.warning("Unauthorized: %s (subscribers=%d)", reason or "-", len(targets))
        for fn in targets:
            try:
                fn(reason)
            except Exception:
                logger.exception("Unauthorized subscriber failed")
