# src/taskline/sync/optimistic.py

from __future__ import annotations

"""
Optimistic mutations.

Protocol for one mutation:
1. single-flight check (a concurrent attempt is dropped, not queued),
2. snapshot the affected view state,
3. apply the local patch synchronously,
4. await the remote write,
5a. success -> forget the snapshot, reconcile from the server (trust the server, never
    merge the patch with the response),
5b. failure -> restore the snapshot (all affected views in one call) and report.
    Any other exception from the remote write also restores, then propagates.

Authorization failures are rolled back like any other failure but not reported here:
the session gate has already broadcast the forced logout.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeVar

from ..api.errors import ApiError, AuthorizationError, PreconditionError, user_message

logger = logging.getLogger(__name__)

S = TypeVar("S")

Reporter = Callable[[str], None]


class MutationOutcome(StrEnum):
    APPLIED = "applied"
    ROLLED_BACK = "rolled_back"
    DROPPED = "dropped"  # another mutation of the same kind was in flight
    REJECTED = "rejected"  # local precondition failed, nothing sent


@dataclass(slots=True, frozen=True)
class MutationResult:
    outcome: MutationOutcome
    message: str = ""
    body: Any = None

    @property
    def ok(self) -> bool:
        return self.outcome is MutationOutcome.APPLIED


class SingleFlight:
    """
    At most one holder at a time; a second caller is turned away instead of waiting.

    Single-threaded event loop: check-and-set has no await in between, so no lock is needed.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def try_acquire(self) -> bool:
        if self._busy:
            return False
        self._busy = True
        return True

    def release(self) -> None:
        self._busy = False


async def apply_optimistic(
        *,
        snapshot: Callable[[], S],
        patch: Callable[[], None],
        remote: Callable[[], Awaitable[Any]],
        restore: Callable[[S], None],
        reconcile: Callable[[], Awaitable[None]] | None = None,
        guard: SingleFlight | None = None,
        fallback_message: str = "The change could not be saved.",
        report: Reporter | None = None,
) -> MutationResult:
    if guard is not None and not guard.try_acquire():
        logger.debug("Mutation dropped: %s already in flight", guard.name)
        return MutationResult(MutationOutcome.DROPPED)

    try:
        saved = snapshot()
        patch()

        try:
            body = await remote()
        except ApiError as e:
            restore(saved)
            if isinstance(e, AuthorizationError):
                logger.info("Mutation rolled back after authorization failure")
                return MutationResult(MutationOutcome.ROLLED_BACK, message=str(e))
            msg = user_message(e, fallback_message)
            logger.info("Mutation rolled back: %s (%s)", msg, e.__class__.__name__)
            if report is not None:
                report(msg)
            return MutationResult(MutationOutcome.ROLLED_BACK, message=msg)
        except Exception:
            # Not a server answer; put the views back and let the caller see the bug.
            restore(saved)
            logger.exception("Mutation rolled back after unexpected error")
            raise

        if reconcile is not None:
            try:
                await reconcile()
            except AuthorizationError:
                logger.info("Reconcile stopped by authorization failure")
            except ApiError as e:
                # The write is confirmed; keep it and let the next poll converge.
                logger.warning("Reconcile after mutation failed: %s", e)
                if report is not None:
                    report(user_message(e, fallback_message))

        msg = ""
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            msg = body["message"]
        return MutationResult(MutationOutcome.APPLIED, message=msg, body=body)
    finally:
        if guard is not None:
            guard.release()


def validate_new_task(title: str | None, target_id: int | None) -> str:
    """
    Local preconditions for task creation. Returns the trimmed title.

    Raises PreconditionError before any network call is made.
    """
    clean = (title or "").strip()
    if not clean:
        raise PreconditionError("A task title is required.")
    if not target_id:
        raise PreconditionError("Select a target department.")
    return clean
