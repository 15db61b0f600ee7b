# src/taskline/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (session store, gate, httpx transport, API client,
  lifecycle, notifier) into the AppShell.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..api.client import ApiClient
from ..api.transport import HttpxTransport, make_timeout
from ..config import get_settings
from ..core.lifecycle import AppLifecycle
from ..core.ports import HttpTransport, Notifier, SessionStore
from ..session.gate import SessionGate
from ..session.store import JsonSessionStore
from ..views.shell import AppShell

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleNotifier:
    """Notifier that prints alerts to stdout with a local timestamp."""

    def alert(self, title: str, message: str) -> None:
        print(f"[{_ts_local()}] [{title}] {message}", flush=True)


@dataclass(slots=True)
class App:
    settings: object
    store: SessionStore
    gate: SessionGate
    transport: HttpTransport
    api: ApiClient
    lifecycle: AppLifecycle
    notifier: Notifier
    shell: AppShell


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def create_app(
        *,
        settings=None,
        transport: HttpTransport | None = None,
        store: SessionStore | None = None,
        notifier: Notifier | None = None,
) -> App:
    """
    Build the object graph.

    Keeping every collaborator injectable makes the app easy to test and avoids hidden
    global state. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if store is None:
        _ensure_local_dirs(settings)
        store = JsonSessionStore(settings.session_path)

    if transport is None:
        transport = HttpxTransport(
            timeout=make_timeout(
                connect_s=float(settings.connect_timeout_seconds),
                read_s=float(settings.request_timeout_seconds),
            )
        )

    gate = SessionGate(store)
    gate.restore()
    env_token = getattr(settings, "token", None)
    if env_token:
        gate.set_session(env_token)

    api = ApiClient(transport, gate, settings.api_base_url)
    lifecycle = AppLifecycle()
    notifier = notifier or ConsoleNotifier()

    shell = AppShell(
        gate,
        api,
        notifier,
        store=store,
        settings=settings,
        lifecycle=lifecycle,
    )
    logger.info("App wired base_url=%s authenticated=%s", settings.api_base_url, gate.is_authenticated())
    return App(
        settings=settings,
        store=store,
        gate=gate,
        transport=transport,
        api=api,
        lifecycle=lifecycle,
        notifier=notifier,
        shell=shell,
    )


async def close_app(app: App) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        app.shell.teardown()
    except Exception:
        logger.exception("Shell teardown failed.")

    aclose = getattr(app.transport, "aclose", None)
    if aclose is not None:
        try:
            await aclose()
        except Exception:
            logger.debug("Transport close failed.", exc_info=True)
