#!/usr/bin/env python3
# modbus_io/diagnostics.py
# Device status, connection self-test and poll frequency monitoring

import logging
import threading
import time
from collections import deque
from datetime import datetime
from typing import Callable, Dict, List, Optional

from modbus_io.thread_safe_state import ThreadSafeState

logger = logging.getLogger(__name__)

OK = 0
WARN = 1
ERROR = 2

LEVEL_NAMES = {OK: "ok", WARN: "warn", ERROR: "error"}


class DiagnosticStatus:
    """
    Status accumulator filled in by the check functions below.

    Usage:
        status = DiagnosticStatus("Device Status")
        device_status(status, state)
        status.to_dict()
    """

    def __init__(self, name: str):
        self.name = name
        self.level = OK
        self.message = ""
        self.values: Dict[str, object] = {}

    def summary(self, level: int, message: str):
        self.level = level
        self.message = message

    def add(self, key: str, value):
        self.values[key] = value

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "level": LEVEL_NAMES[self.level],
            "message": self.message,
            "values": dict(self.values),
        }


# ============================================
# Checks
# ============================================
def device_status(status: DiagnosticStatus, state: ThreadSafeState):
    """Running / excessive delay summary plus counters"""
    diag = state.get_diagnostics()

    if not diag["running"]:
        status.summary(ERROR, "modbus_io is stopped")
    elif state.consume_slow_reason():
        status.summary(WARN, "Excessive delay")
    else:
        status.summary(OK, "modbus_io is running")

    status.add("Error count", diag["error_count"])
    status.add("Excessive delay", diag["slow_count"])


def connect_test(status: DiagnosticStatus, session):
    """Self-test: is the Modbus session established"""
    if session.connected:
        status.summary(OK, "Connected successfully.")
    else:
        status.summary(ERROR, "Not connected to the I/O board.")
    status.add("Address", f"{session.settings.address}:{session.settings.port}")


class FrequencyStatus:
    """
    Measures the poll rate over a sliding window of ticks.

    The desired rate is the configured poll frequency; the tolerance is
    applied on both sides.
    """

    def __init__(
        self,
        desired_freq: float,
        tolerance: float = 0.05,
        window_size: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.desired_freq = desired_freq
        self.tolerance = tolerance
        self.clock = clock
        self._ticks = deque(maxlen=window_size + 1)
        self._lock = threading.Lock()

    def tick(self):
        with self._lock:
            self._ticks.append(self.clock())

    def clear(self):
        with self._lock:
            self._ticks.clear()

    def frequency(self) -> Optional[float]:
        with self._lock:
            if len(self._ticks) < 2:
                return None
            elapsed = self._ticks[-1] - self._ticks[0]
            if elapsed <= 0:
                return None
            return (len(self._ticks) - 1) / elapsed

    def run(self, status: DiagnosticStatus):
        freq = self.frequency()
        low = self.desired_freq * (1 - self.tolerance)
        high = self.desired_freq * (1 + self.tolerance)

        if freq is None:
            status.summary(ERROR, "No events recorded.")
        elif freq < low:
            status.summary(WARN, "Frequency too low.")
        elif freq > high:
            status.summary(WARN, "Frequency too high.")
        else:
            status.summary(OK, "Desired frequency met")

        status.add("Actual frequency (Hz)", round(freq, 2) if freq else 0.0)
        status.add("Target frequency (Hz)", self.desired_freq)
        status.add("Tolerance (%)", self.tolerance * 100)


# ============================================
# Reporter
# ============================================
class DiagnosticsReporter:
    """Runs every check on demand and builds a report dict"""

    def __init__(self, state: ThreadSafeState, session, frequency: FrequencyStatus):
        self.state = state
        self.session = session
        self.frequency = frequency
        self._last_level: Optional[int] = None

    def collect(self) -> List[DiagnosticStatus]:
        statuses = []

        status = DiagnosticStatus("Connect Test")
        connect_test(status, self.session)
        statuses.append(status)

        status = DiagnosticStatus("Frequency Status")
        self.frequency.run(status)
        statuses.append(status)

        status = DiagnosticStatus("Device Status")
        device_status(status, self.state)
        statuses.append(status)

        return statuses

    def get_report(self) -> Dict:
        statuses = self.collect()
        level = max(s.level for s in statuses)

        if level != self._last_level and level != OK:
            worst = [s.name for s in statuses if s.level == level]
            logger.warning(f"Diagnostics {LEVEL_NAMES[level]}: {', '.join(worst)}")
        self._last_level = level

        return {
            "level": LEVEL_NAMES[level],
            "timestamp": datetime.now().isoformat(),
            "statuses": [s.to_dict() for s in statuses],
            "counters": self.state.get_diagnostics(),
        }
