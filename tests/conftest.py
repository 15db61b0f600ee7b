# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskline.api.client import ApiClient
from taskline.core.lifecycle import AppLifecycle
from taskline.session.gate import SessionGate
from taskline.session.store import MemorySessionStore

from .fakes import FakeNotifier, FakeTransport

BASE_URL = "https://backend.test"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the controllers and bootstrap.

    Poll intervals are long on purpose: tests drive fetches explicitly, so a timer
    never fires in the middle of an assertion.
    """
    return SimpleNamespace(
        app_name="taskline-test",
        log_level="DEBUG",
        api_base_url=BASE_URL,
        token=None,
        request_timeout_seconds=15.0,
        connect_timeout_seconds=5.0,
        task_poll_seconds=60.0,
        contact_poll_seconds=60.0,
        conversation_poll_seconds=60.0,
        conversation_limit=200,
        data_dir=tmp_path,
        session_path=tmp_path / "session.json",
    )


@pytest.fixture()
def store() -> MemorySessionStore:
    return MemorySessionStore({"token": "t0k3n", "user": "{}"})


@pytest.fixture()
def gate(store: MemorySessionStore) -> SessionGate:
    g = SessionGate(store)
    g.restore()
    return g


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def lifecycle() -> AppLifecycle:
    return AppLifecycle()


@pytest.fixture()
def api(transport: FakeTransport, gate: SessionGate) -> ApiClient:
    return ApiClient(transport, gate, BASE_URL)
