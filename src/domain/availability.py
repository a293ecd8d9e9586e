"""
Availability checker - Advisory username/email uniqueness checks.

AvailabilityChecker answers "is this value free right now?" against the
profile store. The answer is advisory only: another signup can take the
value between the check and submission, so SignupService repeats the check
authoritatively and the store's unique constraints remain the final guard.

AvailabilityWatcher debounces a stream of keystrokes into checks:

- each submit() restarts a quiet-period timer; a superseded timer is
  cancelled outright and no check is made for it
- each check carries a monotonically increasing sequence number, and its
  result is applied only if no newer input arrived meanwhile
- a check already in flight is never aborted; its late result is dropped
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .exceptions import ProfileNotFound, ProfileStoreError
from .ports import Availability, ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5

CHECKABLE_FIELDS = ("username", "email")


@dataclass
class AvailabilityChecker:
    """Point-lookup availability checks against the profile store."""

    store: ProfileStore

    def check(self, field: str, candidate: str) -> Availability:
        if field == "username":
            return self.check_username(candidate)
        if field == "email":
            return self.check_email(candidate)
        raise ValueError(f"Unsupported availability field: {field}")

    def check_username(self, candidate: str) -> Availability:
        return self._lookup(self.store.get_by_username, candidate)

    def check_email(self, candidate: str) -> Availability:
        return self._lookup(self.store.get_by_email, candidate.strip().lower())

    def _lookup(self, lookup: Callable[[str], Any], candidate: str) -> Availability:
        candidate = candidate.strip()
        if not candidate:
            return Availability.INDETERMINATE
        try:
            lookup(candidate)
        except ProfileNotFound:
            return Availability.AVAILABLE
        except ProfileStoreError as e:
            logger.warning("Availability check failed (%s): %s", e.code, e.message)
            return Availability.INDETERMINATE
        return Availability.TAKEN


ResultCallback = Callable[[str, Availability], Awaitable[None] | None]


class AvailabilityWatcher:
    """
    Debounced, stale-response-safe availability checks for one input field.

    Single-threaded: all methods must be called from the owning event loop.
    """

    def __init__(
        self,
        check: Callable[[str], Awaitable[Availability]],
        on_result: ResultCallback | None = None,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._check = check
        self._on_result = on_result
        self._delay = delay
        self._seq = 0
        self._timer: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()
        self.current: tuple[str, Availability] | None = None

    @property
    def latest_sequence(self) -> int:
        return self._seq

    def submit(self, value: str) -> None:
        """Register a new input value, superseding any earlier one."""
        self._seq += 1
        self._cancel_timer()

        if not value.strip():
            self.current = None
            return

        self._timer = asyncio.ensure_future(self._wait_then_check(value, self._seq))

    async def drain(self) -> None:
        """Wait until the pending timer and every in-flight check finish."""
        while self._timer is not None or self._in_flight:
            pending = list(self._in_flight)
            if self._timer is not None:
                pending.append(self._timer)
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        """Cancel the pending timer. In-flight checks finish and are dropped."""
        self._seq += 1
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _wait_then_check(self, value: str, seq: int) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            return
        # Past the quiet period: from here on the check is in flight and is
        # only ever discarded, never cancelled.
        self._timer = None
        task = asyncio.ensure_future(self._run_check(value, seq))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run_check(self, value: str, seq: int) -> None:
        try:
            result = await self._check(value)
        except Exception:
            logger.exception("Availability check raised for sequence %d", seq)
            result = Availability.INDETERMINATE

        if seq != self._seq:
            logger.debug("Discarding stale availability result (seq %d < %d)", seq, self._seq)
            return

        self.current = (value, result)
        if self._on_result is None:
            return
        try:
            outcome = self._on_result(value, result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            # The task is never awaited; a listener failure ends here.
            logger.exception("Availability result delivery failed for sequence %d", seq)
