# src/taskline/sync/poller.py

from __future__ import annotations

"""
Adaptive poller.

One self-rescheduling timer per list view, driven as an explicit state machine:

    STOPPED --start()--> RUNNING   (one visible fetch now, then silent fetches every interval)
    RUNNING --pause()--> PAUSED    (pending timer cancelled)
    PAUSED  --resume()-> RUNNING   (one immediate fetch, then the interval again)
    any     --stop()---> STOPPED   (timer cancelled, in-flight result discarded)

Pause reasons are counted as a set ("background", "modal", ...): the poller stays PAUSED
while any reason is held.

Ticks never overlap: the next timer is armed only after the previous fetch settles.
In-flight requests are never cancelled; a generation counter makes late results from a
stopped poller fall on the floor instead of reaching unmounted view state.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Generic, TypeVar

from ..api.errors import AuthorizationError
from ..core.lifecycle import AppActivity, AppLifecycle

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKGROUND = "background"
MODAL = "modal"


class PollerState(StrEnum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class AdaptivePoller(Generic[T]):
    def __init__(
            self,
            name: str,
            fetch: Callable[[], Awaitable[T]],
            apply: Callable[[T], None],
            *,
            interval: float,
            on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self.name = name
        self.interval = max(0.01, float(interval))
        self._fetch = fetch
        self._apply = apply
        self._on_error = on_error

        self._state = PollerState.STOPPED
        self._reasons: set[str] = set()
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._inflight: asyncio.Task[None] | None = None
        self._inflight_generation = -1
        self._visible_done = False
        self._loading = False

    # ---- introspection ----

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def loading(self) -> bool:
        """True while a user-visible fetch is in flight."""
        return self._loading

    @property
    def pause_reasons(self) -> frozenset[str]:
        return frozenset(self._reasons)

    @property
    def in_flight(self) -> bool:
        # Only ticks of the current generation count; a stale one can never re-arm the timer.
        return (
            self._inflight is not None
            and not self._inflight.done()
            and self._inflight_generation == self._generation
        )

    # ---- transitions ----

    def start(self) -> None:
        if self._state is not PollerState.STOPPED:
            return
        self._generation += 1
        self._visible_done = False
        if self._reasons:
            self._state = PollerState.PAUSED
            logger.debug("Poller %s started paused (%s)", self.name, ",".join(sorted(self._reasons)))
            return
        self._state = PollerState.RUNNING
        logger.debug("Poller %s started", self.name)
        self._launch(silent=False)

    def pause(self, reason: str) -> None:
        self._reasons.add(reason)
        if self._state is not PollerState.RUNNING:
            return
        self._cancel_timer()
        self._state = PollerState.PAUSED
        logger.debug("Poller %s paused (%s)", self.name, reason)

    def resume(self, reason: str) -> None:
        self._reasons.discard(reason)
        if self._reasons or self._state is not PollerState.PAUSED:
            return
        self._state = PollerState.RUNNING
        logger.debug("Poller %s resumed (%s)", self.name, reason)
        if self.in_flight:
            # The tick already on the wire counts as the immediate fetch; it re-arms the timer.
            return
        self._launch(silent=self._visible_done)

    def stop(self) -> None:
        if self._state is PollerState.STOPPED:
            return
        self._cancel_timer()
        self._state = PollerState.STOPPED
        self._generation += 1
        self._loading = False
        logger.debug("Poller %s stopped", self.name)

    def bind(self, lifecycle: AppLifecycle) -> Callable[[], None]:
        """Pause while the app is in the background. Returns the unbind callable."""

        def _on_change(activity: AppActivity) -> None:
            if activity is AppActivity.BACKGROUND:
                self.pause(BACKGROUND)
            else:
                self.resume(BACKGROUND)

        if not lifecycle.is_active:
            self.pause(BACKGROUND)
        return lifecycle.subscribe(_on_change)

    async def refresh(self, *, silent: bool = False) -> bool:
        """
        Fetch now, outside the schedule. Returns False when skipped.

        Skipped when stopped or when a tick is already in flight (ticks never overlap).
        """
        if self._state is PollerState.STOPPED or self.in_flight:
            return False
        self._cancel_timer()
        task = self._launch(silent=silent)
        await asyncio.shield(task)
        return True

    async def wait(self) -> None:
        """Wait for the tick currently in flight, if any, to settle."""
        task = self._inflight
        if task is not None and not task.done():
            await asyncio.shield(task)

    # ---- internals ----

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _launch(self, *, silent: bool) -> asyncio.Task[None]:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._tick(self._generation, silent))
        self._inflight = task
        self._inflight_generation = self._generation
        return task

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        self._timer = loop.call_later(self.interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._state is PollerState.RUNNING and not self.in_flight:
            self._launch(silent=True)

    async def _tick(self, generation: int, silent: bool) -> None:
        visible = not silent
        if visible:
            self._loading = True
        try:
            try:
                result = await self._fetch()
            except Exception as e:
                self._fetch_failed(generation, silent, e)
            else:
                if generation != self._generation:
                    logger.debug("Poller %s: discarding result after stop", self.name)
                else:
                    try:
                        self._apply(result)
                    except Exception:
                        logger.exception("Poller %s: apply failed", self.name)
                    else:
                        if visible:
                            self._visible_done = True
        finally:
            current = generation == self._generation
            if visible and current:
                self._loading = False
            if self._inflight is asyncio.current_task():
                self._inflight = None
            if current and self._state is PollerState.RUNNING:
                self._arm()

    def _fetch_failed(self, generation: int, silent: bool, exc: Exception) -> None:
        if generation != self._generation:
            logger.debug("Poller %s: ignoring failure after stop: %r", self.name, exc)
            return
        if isinstance(exc, AuthorizationError):
            # Already broadcast by the API client; the shell handles the logout.
            logger.info("Poller %s: unauthorized", self.name)
            return
        if silent:
            logger.debug("Poller %s: silent tick failed: %r", self.name, exc)
            return
        logger.warning("Poller %s: fetch failed: %r", self.name, exc)
        if self._on_error is not None:
            try:
                self._on_error(exc)
            except Exception:
                logger.exception("Poller %s: error handler failed", self.name)
