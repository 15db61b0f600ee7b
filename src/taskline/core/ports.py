# src/taskline/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the sync core and the view controllers.

The core depends on Protocols instead of concrete implementations.
This keeps the HTTP library, credential storage and user-facing output swappable
and makes testing easier.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Mapping, Protocol


@dataclass(slots=True, frozen=True)
class HttpResponse:
    """What the transport hands back for any HTTP status (body is parsed JSON or None)."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpTransport(Protocol):
    """
    Transport-side port.

    Returns an HttpResponse for every status code.
    Raises TransportError (with response=None) when no response arrived at all:
    connection failure, timeout, TLS errors, etc.
    """

    def request(
            self,
            method: str,
            url: str,
            *,
            headers: Mapping[str, str] | None = None,
            params: Mapping[str, Any] | None = None,
            json: Any = None,
            data: Mapping[str, Any] | None = None,
            files: Mapping[str, Any] | None = None,
    ) -> Awaitable[HttpResponse]: ...


class SessionStore(Protocol):
    """Persistent credential storage (key/value strings)."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, *keys: str) -> None: ...


class Notifier(Protocol):
    """
    User-facing messages (what a mobile client shows as an alert).

    The console driver prints them; tests record them.
    """

    def alert(self, title: str, message: str) -> None: ...
