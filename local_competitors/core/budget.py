"""External API call budgets.

Two independent caps protect the billed Places API:

* ``BudgetGuard`` is shared by every caller in the process and limits calls per
  channel over a sliding window. When a channel hits its limit the guard trips
  and refuses the channel until a full window has passed since the trip.
* ``InvocationBudget`` belongs to a single discovery run. It caps the calls that
  run may spend, optionally enforces a deadline or a cancel event, and draws
  every call it grants from the shared guard.

Check and record happen under one lock, so concurrent callers competing for the
last unit never overshoot: exactly one of them is granted the call.
"""

import logging
import threading
import time
from collections import deque
from functools import lru_cache
from typing import Callable, Deque, Dict, Mapping, Optional

from local_competitors.core.config import get_settings

logger = logging.getLogger(__name__)

PLACES_CHANNEL = "places-api"

DENIED_CANCELLED = "cancelled"
DENIED_DEADLINE = "deadline reached"
DENIED_INVOCATION_CAP = "per-invocation call cap reached"
DENIED_GLOBAL_BUDGET = "global budget exhausted"


class BudgetExceededError(RuntimeError):
    """Raised by ``BudgetGuard.spend`` when a channel has no budget left."""


class BudgetGuard:
    """Process-wide, thread-safe call budget per named channel."""

    def __init__(
        self,
        limits: Mapping[str, int],
        window_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limits = dict(limits)
        self._window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._calls: Dict[str, Deque[float]] = {}
        self._tripped: Dict[str, float] = {}

    def _prune(self, channel: str, now: float) -> Deque[float]:
        calls = self._calls.setdefault(channel, deque())
        cutoff = now - self._window
        while calls and calls[0] <= cutoff:
            calls.popleft()
        return calls

    def _allowed(self, channel: str, now: float) -> bool:
        limit = self._limits.get(channel)
        if limit is None:
            return True
        trip_time = self._tripped.get(channel)
        if trip_time is not None:
            if now - trip_time < self._window:
                return False
            del self._tripped[channel]
        return len(self._prune(channel, now)) < limit

    def can_spend(self, channel: str = PLACES_CHANNEL) -> bool:
        """Advisory check; use ``try_spend`` to actually claim a call."""
        with self._lock:
            return self._allowed(channel, self._clock())

    def try_spend(self, channel: str = PLACES_CHANNEL) -> bool:
        with self._lock:
            now = self._clock()
            if not self._allowed(channel, now):
                return False
            calls = self._prune(channel, now)
            calls.append(now)
            limit = self._limits.get(channel)
            if limit is not None and len(calls) >= limit:
                self._tripped[channel] = now
                logger.error(
                    "Budget tripped for %s: %d calls in %.0fs (limit %d); channel blocked for one window",
                    channel,
                    len(calls),
                    self._window,
                    limit,
                )
            return True

    def spend(self, channel: str = PLACES_CHANNEL) -> None:
        if not self.try_spend(channel):
            raise BudgetExceededError(
                f"{channel} budget exceeded: max {self._limits.get(channel)} calls per {self._window:.0f}s"
            )

    def usage(self, channel: str = PLACES_CHANNEL) -> Dict[str, object]:
        with self._lock:
            now = self._clock()
            calls = len(self._prune(channel, now))
            tripped = channel in self._tripped and now - self._tripped[channel] < self._window
            return {"calls": calls, "limit": self._limits.get(channel), "tripped": tripped}


@lru_cache(maxsize=1)
def get_budget_guard() -> BudgetGuard:
    """Return the guard shared by every discovery run in this process."""
    settings = get_settings()
    return BudgetGuard(
        {PLACES_CHANNEL: settings.places_budget_per_window},
        window_seconds=settings.budget_window_seconds,
    )


class InvocationBudget:
    """Call allowance of one discovery run, layered on top of a ``BudgetGuard``."""

    def __init__(
        self,
        guard: BudgetGuard,
        max_calls: int,
        channel: str = PLACES_CHANNEL,
        deadline_seconds: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._guard = guard
        self._channel = channel
        self.max_calls = max_calls
        self._cancel_event = cancel_event
        self._clock = clock
        self._deadline = clock() + deadline_seconds if deadline_seconds else None
        self._lock = threading.Lock()
        self.calls = 0
        self.denial_reason: Optional[str] = None

    @property
    def remaining(self) -> int:
        return max(0, self.max_calls - self.calls)

    def _stop_reason(self) -> Optional[str]:
        if self._cancel_event is not None and self._cancel_event.is_set():
            return DENIED_CANCELLED
        if self._deadline is not None and self._clock() >= self._deadline:
            return DENIED_DEADLINE
        if self.calls >= self.max_calls:
            return DENIED_INVOCATION_CAP
        return None

    @property
    def exhausted(self) -> bool:
        """True once the next ``acquire`` would be denied."""
        with self._lock:
            return self._stop_reason() is not None or not self._guard.can_spend(self._channel)

    def acquire(self) -> bool:
        with self._lock:
            reason = self._stop_reason()
            if reason is None and not self._guard.try_spend(self._channel):
                reason = DENIED_GLOBAL_BUDGET
            if reason is not None:
                if self.denial_reason != reason:
                    logger.warning("Places call denied (%s) after %d calls", reason, self.calls)
                self.denial_reason = reason
                return False
            self.calls += 1
            return True
