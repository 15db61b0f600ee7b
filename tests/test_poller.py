# tests/test_poller.py

from __future__ import annotations

import asyncio

import pytest

from taskline.api.errors import AuthorizationError, TransportError
from taskline.core.lifecycle import AppActivity, AppLifecycle
from taskline.sync.poller import BACKGROUND, MODAL, AdaptivePoller, PollerState

from .fakes import settle


class Source:
    """Controllable fetch: counts calls, optionally blocks, optionally fails."""

    def __init__(self) -> None:
        self.calls = 0
        self.hold: asyncio.Event | None = None
        self.error: Exception | None = None
        self.applied: list[int] = []
        self.errors: list[Exception] = []

    async def fetch(self) -> int:
        self.calls += 1
        n = self.calls
        if self.hold is not None:
            await self.hold.wait()
        if self.error is not None:
            raise self.error
        return n

    def make(self, interval: float = 60.0) -> AdaptivePoller[int]:
        return AdaptivePoller(
            "test",
            self.fetch,
            self.applied.append,
            interval=interval,
            on_error=self.errors.append,
        )


@pytest.mark.asyncio
async def test_start_runs_one_visible_fetch() -> None:
    src = Source()
    src.hold = asyncio.Event()
    poller = src.make()

    poller.start()
    await settle()
    assert poller.state is PollerState.RUNNING
    assert poller.loading is True
    assert poller.in_flight is True

    src.hold.set()
    await settle()
    assert src.applied == [1]
    assert poller.loading is False
    assert poller.in_flight is False
    poller.stop()


@pytest.mark.asyncio
async def test_timer_reschedules_after_each_tick() -> None:
    src = Source()
    poller = src.make(interval=0.01)
    poller.start()
    await asyncio.sleep(0.1)
    poller.stop()
    assert src.calls >= 3
    calls = src.calls
    await asyncio.sleep(0.05)
    assert src.calls == calls


@pytest.mark.asyncio
async def test_pause_then_resume_fetches_once_immediately() -> None:
    src = Source()
    poller = src.make()
    poller.start()
    await settle()
    assert src.calls == 1

    poller.pause(BACKGROUND)
    assert poller.state is PollerState.PAUSED
    await settle()
    assert src.calls == 1

    poller.resume(BACKGROUND)
    await settle()
    assert poller.state is PollerState.RUNNING
    assert src.calls == 2
    assert src.applied == [1, 2]
    poller.stop()


@pytest.mark.asyncio
async def test_resume_while_tick_in_flight_does_not_double_fetch() -> None:
    src = Source()
    src.hold = asyncio.Event()
    poller = src.make()
    poller.start()
    await settle()
    assert src.calls == 1

    poller.pause(BACKGROUND)
    poller.resume(BACKGROUND)
    await settle()
    assert src.calls == 1

    src.hold.set()
    await settle()
    assert src.calls == 1
    assert src.applied == [1]
    assert poller.state is PollerState.RUNNING
    poller.stop()


@pytest.mark.asyncio
async def test_pause_reasons_are_counted() -> None:
    src = Source()
    poller = src.make()
    poller.start()
    await settle()

    poller.pause(BACKGROUND)
    poller.pause(MODAL)
    poller.resume(BACKGROUND)
    await settle()
    assert poller.state is PollerState.PAUSED
    assert poller.pause_reasons == frozenset({MODAL})
    assert src.calls == 1

    poller.resume(MODAL)
    await settle()
    assert poller.state is PollerState.RUNNING
    assert src.calls == 2
    poller.stop()


@pytest.mark.asyncio
async def test_start_while_paused_waits_for_resume() -> None:
    src = Source()
    poller = src.make()
    poller.pause(BACKGROUND)
    poller.start()
    await settle()
    assert poller.state is PollerState.PAUSED
    assert src.calls == 0

    poller.resume(BACKGROUND)
    await settle()
    assert src.calls == 1
    poller.stop()


@pytest.mark.asyncio
async def test_stop_discards_in_flight_result() -> None:
    src = Source()
    src.hold = asyncio.Event()
    poller = src.make()
    poller.start()
    await settle()

    poller.stop()
    assert poller.loading is False
    src.hold.set()
    await settle()
    assert src.applied == []
    assert poller.state is PollerState.STOPPED


@pytest.mark.asyncio
async def test_restart_after_stop_ignores_stale_tick() -> None:
    src = Source()
    src.hold = asyncio.Event()
    poller = src.make()
    poller.start()
    await settle()
    poller.stop()

    poller.start()
    await settle()
    assert src.calls == 2
    src.hold.set()
    await settle()
    # only the current generation's result lands
    assert src.applied == [2]
    poller.stop()


@pytest.mark.asyncio
async def test_visible_error_reported_silent_error_swallowed() -> None:
    src = Source()
    src.error = TransportError("Network error")
    poller = src.make()

    poller.start()
    await settle()
    assert len(src.errors) == 1
    assert poller.state is PollerState.RUNNING

    # the first visible fetch failed, so the resume fetch is still visible
    poller.pause(BACKGROUND)
    poller.resume(BACKGROUND)
    await settle()
    assert len(src.errors) == 2

    src.error = None
    assert await poller.refresh(silent=False) is True
    assert src.applied == [3]

    src.error = TransportError("Network error")
    assert await poller.refresh(silent=True) is True
    assert len(src.errors) == 2
    assert poller.state is PollerState.RUNNING
    poller.stop()


@pytest.mark.asyncio
async def test_authorization_error_not_reported() -> None:
    src = Source()
    src.error = AuthorizationError(401)
    poller = src.make()
    poller.start()
    await settle()
    assert src.errors == []
    poller.stop()


@pytest.mark.asyncio
async def test_refresh_skipped_when_stopped_or_in_flight() -> None:
    src = Source()
    poller = src.make()
    assert await poller.refresh() is False
    assert src.calls == 0

    src.hold = asyncio.Event()
    poller.start()
    await settle()
    assert await poller.refresh() is False
    src.hold.set()
    await settle()
    assert src.calls == 1
    poller.stop()


@pytest.mark.asyncio
async def test_bind_follows_lifecycle() -> None:
    src = Source()
    life = AppLifecycle()
    poller = src.make()
    unbind = poller.bind(life)
    poller.start()
    await settle()
    assert src.calls == 1

    life.set_state(AppActivity.BACKGROUND)
    assert poller.state is PollerState.PAUSED
    life.set_state(AppActivity.ACTIVE)
    await settle()
    assert src.calls == 2

    unbind()
    life.set_state(AppActivity.BACKGROUND)
    assert poller.state is PollerState.RUNNING
    poller.stop()


@pytest.mark.asyncio
async def test_bind_while_backgrounded_starts_paused() -> None:
    src = Source()
    life = AppLifecycle(AppActivity.BACKGROUND)
    poller = src.make()
    poller.bind(life)
    poller.start()
    await settle()
    assert poller.state is PollerState.PAUSED
    assert src.calls == 0
    poller.stop()


@pytest.mark.asyncio
async def test_wait_settles_in_flight_tick() -> None:
    src = Source()
    poller = src.make()
    await poller.wait()  # nothing in flight

    poller.start()
    assert poller.in_flight is True
    await poller.wait()
    assert src.applied == [1]
    poller.stop()
