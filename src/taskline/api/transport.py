# src/taskline/api/transport.py

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..core.ports import HttpResponse
from .errors import TransportError

logger = logging.getLogger(__name__)


def make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    """
    Explicit per-request timeouts.

    A stalled request must always settle: the single-flight mutation guards are only
    released when the remote call returns or raises.
    """
    return httpx.Timeout(
        connect=connect_s,
        read=read_s,
        write=read_s,
        pool=connect_s,
    )


def _parse_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        logger.debug("Non-JSON body status=%s url=%s", resp.status_code, resp.request.url)
        return None


class HttpxTransport:
    """
    HttpTransport implemented with httpx.AsyncClient.

    One client is kept for the app lifetime (connection pooling); call aclose() on shutdown.
    `files` values are either raw bytes or (filename, content, mime) tuples, as httpx expects.
    """

    def __init__(
            self,
            *,
            timeout: httpx.Timeout | float = 15.0,
            transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def request(
            self,
            method: str,
            url: str,
            *,
            headers: Mapping[str, str] | None = None,
            params: Mapping[str, Any] | None = None,
            json: Any = None,
            data: Mapping[str, Any] | None = None,
            files: Mapping[str, Any] | None = None,
    ) -> HttpResponse:
        try:
            resp = await self._client.request(
                method,
                url,
                headers=dict(headers or {}),
                params=dict(params) if params else None,
                json=json,
                data=dict(data) if data else None,
                files=dict(files) if files else None,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {method} {url}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error: {e.__class__.__name__}: {e}") from e

        return HttpResponse(
            status=resp.status_code,
            headers=dict(resp.headers),
            body=_parse_body(resp),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
