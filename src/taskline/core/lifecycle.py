# src/taskline/core/lifecycle.py

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

logger = logging.getLogger(__name__)


class AppActivity(StrEnum):
    ACTIVE = "active"
    BACKGROUND = "background"


LifecycleListener = Callable[[AppActivity], None]


class AppLifecycle:
    """
    Foreground/background publisher for the host application.

    Pollers subscribe through AdaptivePoller.bind(); the host (or the console's /bg and /fg)
    calls set_state() on transitions. Repeated notifications of the same state are ignored.
    """

    def __init__(self, state: AppActivity = AppActivity.ACTIVE) -> None:
        self._state = state
        self._listeners: list[LifecycleListener] = []

    @property
    def state(self) -> AppActivity:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is AppActivity.ACTIVE

    def subscribe(self, fn: LifecycleListener) -> Callable[[], None]:
        self._listeners.append(fn)

        def _off() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return _off

    def set_state(self, state: AppActivity) -> None:
        if state is self._state:
            return
        logger.info("App lifecycle: %s -> %s", self._state.value, state.value)
        self._state = state
        for fn in tuple(self._listeners):
            try:
                fn(state)
            except Exception:
                logger.exception("Lifecycle listener failed state=%s", state.value)
