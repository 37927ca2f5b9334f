#!/usr/bin/env python3
# modbus_io/resilience.py
# Periodic ticker and fixed reconnect backoff, both cancellable

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


# ============================================
# Periodic Ticker
# ============================================
class PeriodicTicker:
    """
    Fixed-rate ticker bound to a cancellation event.

    ``wait()`` blocks until the next period boundary and returns True,
    or returns False as soon as the stop event is set. When a cycle
    overruns its slot the schedule restarts from now instead of firing a
    burst of catch-up ticks, so cycles never overlap or pile up.

    Usage:
        stop = threading.Event()
        ticker = PeriodicTicker(0.1, stop)

        while ticker.wait():
            run_cycle()
    """

    def __init__(
        self,
        period: float,
        stop_event: threading.Event,
        clock: Callable[[], float] = time.monotonic,
    ):
        if period <= 0:
            raise ValueError(f"Ticker period must be positive, got {period}")
        self.period = period
        self.stop_event = stop_event
        self.clock = clock
        self._next = None
        self.overruns = 0

    def reset(self):
        """Start a fresh schedule at the next wait()"""
        self._next = None

    def wait(self) -> bool:
        now = self.clock()
        if self._next is None:
            self._next = now + self.period
        elif now >= self._next:
            # Overrun: skip missed slots
            self.overruns += 1
            self._next = now + self.period

        remaining = self._next - now
        if self.stop_event.wait(remaining):
            return False
        self._next += self.period
        return True


# ============================================
# Fixed backoff
# ============================================
def backoff(stop_event: threading.Event, delay: float) -> bool:
    """
    Sleep ``delay`` seconds unless stopped first.

    Returns:
        True if the caller should retry, False if shutdown was requested
    """
    if delay > 0:
        logger.debug(f"Backing off {delay:.1f}s before reconnect")
    return not stop_event.wait(delay)
