"""Process-wide coordination of outbound calls to the market-data provider.

Every subsystem that talks to the shared provider asks the RateGate before
each request. The gate enforces a minimum spacing between granted calls and
supports a cooperative "intensive operation" lock: while one caller holds it,
other callers are denied immediately (they should defer or use cached data),
except callers on the privileged allow-list, which always go through.

The internal asyncio.Lock is never held across a sleep.
"""

import asyncio
import time
from collections.abc import Callable, Iterable

from tracker.logging import get_logger

logger = get_logger(__name__)

#: Identity used by the analysis pipeline when requesting provider calls.
ANALYSIS_CALLER = "technical_analysis"


class RateGate:
    """Minimum-interval throttle with a cooperative priority lock.

    Args:
        min_interval: Seconds required between two granted calls.
        privileged_callers: Caller ids that bypass another caller's
            intensive lock. Defaults to the analysis subsystem.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        privileged_callers: Iterable[str] = (ANALYSIS_CALLER,),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval = min_interval
        self._privileged = frozenset(privileged_callers)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_call: float | None = None
        self._intensive_holder: str | None = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def intensive_holder(self) -> str | None:
        """Caller currently holding the intensive lock, if any."""
        return self._intensive_holder

    def _is_blocked(self, caller: str) -> bool:
        holder = self._intensive_holder
        return (
            holder is not None
            and caller != holder
            and caller not in self._privileged
        )

    def _remaining(self, now: float) -> float:
        if self._last_call is None:
            return 0.0
        return max(0.0, self._min_interval - (now - self._last_call))

    async def acquire(self, caller: str, operation: str) -> bool:
        """Wait for the next call slot and claim it.

        Returns False immediately when another caller holds the intensive
        lock (unless ``caller`` is privileged), and False when the waiting
        task is cancelled. In both cases the last-call timestamp is left
        unchanged.
        """
        while True:
            async with self._lock:
                if self._is_blocked(caller):
                    logger.info(
                        "rate_gate_deferred",
                        caller=caller,
                        operation=operation,
                        holder=self._intensive_holder,
                    )
                    return False

                now = self._clock()
                wait = self._remaining(now)
                if wait <= 0:
                    self._last_call = now
                    logger.debug(
                        "rate_gate_granted", caller=caller, operation=operation
                    )
                    return True

            logger.debug(
                "rate_gate_waiting",
                caller=caller,
                operation=operation,
                wait_seconds=round(wait, 3),
            )
            try:
                await asyncio.sleep(wait)
            except asyncio.CancelledError:
                logger.info(
                    "rate_gate_wait_cancelled", caller=caller, operation=operation
                )
                return False

    async def try_acquire(self, caller: str, operation: str) -> bool:
        """Report whether ``caller`` could be granted a call right now.

        Pure check: does not claim the slot.
        """
        async with self._lock:
            if self._is_blocked(caller):
                return False
            return self._remaining(self._clock()) <= 0

    async def time_until_next_slot(self) -> float:
        """Seconds until the next call could be granted (0 when free)."""
        async with self._lock:
            return self._remaining(self._clock())

    async def begin_intensive(self, caller: str) -> None:
        """Give ``caller`` exclusive priority until end_intensive."""
        async with self._lock:
            previous = self._intensive_holder
            self._intensive_holder = caller
        if previous is not None and previous != caller:
            logger.warning(
                "rate_gate_intensive_taken_over", caller=caller, previous=previous
            )
        logger.info("rate_gate_intensive_started", caller=caller)

    async def end_intensive(self, caller: str) -> None:
        """Release the intensive lock. No-op unless ``caller`` holds it."""
        async with self._lock:
            if self._intensive_holder != caller:
                return
            self._intensive_holder = None
        logger.info("rate_gate_intensive_completed", caller=caller)

    async def status(self) -> dict:
        """Snapshot of gate state for diagnostics."""
        async with self._lock:
            return {
                "min_interval_seconds": self._min_interval,
                "seconds_until_next_slot": round(self._remaining(self._clock()), 3),
                "intensive_holder": self._intensive_holder,
                "privileged_callers": sorted(self._privileged),
            }
