# src/taskline/api/errors.py

"""
Error taxonomy for everything that talks to the backend.

- PreconditionError: local validation failed, nothing was sent
- AuthorizationError: 401/403, already routed through the session gate
- ApplicationError: the server answered {"success": false, "message": ...}
- TransportError: no usable response (network, timeout, non-2xx, non-JSON body)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.ports import HttpResponse


class ApiError(Exception):
    """Base class for every error raised by the API layer."""


class PreconditionError(ApiError):
    pass


class AuthorizationError(ApiError):
    def __init__(self, status: int, reason: str = "") -> None:
        super().__init__(reason or f"HTTP {status}")
        self.status = status
        self.reason = reason


class ApplicationError(ApiError):
    def __init__(self, message: str = "", body: object = None) -> None:
        super().__init__(message)
        self.message = message
        self.body = body


class TransportError(ApiError):
    def __init__(self, message: str, response: HttpResponse | None = None) -> None:
        super().__init__(message)
        self.response = response

    @property
    def server_message(self) -> str:
        body = self.response.body if self.response is not None else None
        if isinstance(body, dict):
            msg = body.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        return ""


def user_message(exc: BaseException, fallback: str) -> str:
    """
    Pick the text to show a user for a failed call.

    Server-provided messages win; transport errors fall back to their diagnostic text;
    anything else gets the caller's localized fallback.
    """
    if isinstance(exc, ApplicationError):
        return exc.message.strip() or fallback
    if isinstance(exc, TransportError):
        return exc.server_message or str(exc).strip() or fallback
    if isinstance(exc, PreconditionError):
        return str(exc).strip() or fallback
    return fallback
