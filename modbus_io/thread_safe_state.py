#!/usr/bin/env python3
# modbus_io/thread_safe_state.py
# Thread-safe I/O snapshot, register cache and diagnostics counters

import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Dict, List, Optional

from modbus_io.errors import CacheNotReady


class Direction(Enum):
    INPUTS = "inputs"
    OUTPUTS = "outputs"


class ThreadSafeState:
    """
    Shared state between the poll loop and command callers.

    Holds:
    - Decoded channel arrays (fixed length, never resized)
    - Last-known normalized register per direction
    - Diagnostics counters (error_count, slow_count, last slow reason)

    Every accessor takes the internal lock, so readers always see a
    complete snapshot and never a half-applied poll update.

    Usage:
        state = ThreadSafeState(digital_inputs=8, digital_outputs=8)

        state.update_registers(din=0x05, dout=0x00, inputs=[...], outputs=[...])
        snapshot = state.snapshot()

        with state.lock():
            value = state.get_register(Direction.OUTPUTS)
    """

    def __init__(self, digital_inputs: int = 8, digital_outputs: int = 8):
        self._lock = threading.RLock()

        self._di: List[bool] = [False] * digital_inputs
        self._do: List[bool] = [False] * digital_outputs

        # Normalized registers; None until the first successful read
        self._registers: Dict[Direction, Optional[int]] = {
            Direction.INPUTS: None,
            Direction.OUTPUTS: None,
        }
        self._last_update: Optional[float] = None

        # Diagnostics
        self._running = False
        self._error_count = 0
        self._slow_count = 0
        self._reconnect_count = 0
        self._cycle_count = 0
        self._was_slow = ""
        self._last_slow_reason = ""

    @contextmanager
    def lock(self):
        """Context manager for batch operations"""
        with self._lock:
            yield

    # ================================
    # Channel arrays / register cache
    # ================================
    @property
    def digital_inputs(self) -> int:
        return len(self._di)

    @property
    def digital_outputs(self) -> int:
        return len(self._do)

    def channel_count(self, direction: Direction) -> int:
        if direction is Direction.INPUTS:
            return len(self._di)
        return len(self._do)

    def update_registers(
        self, din: int, dout: int, inputs: List[bool], outputs: List[bool]
    ):
        """
        Store one complete poll result (atomic).

        Args:
            din: Normalized inputs register
            dout: Normalized outputs register
            inputs: Decoded inputs, same length as configured
            outputs: Decoded outputs, same length as configured
        """
        with self._lock:
            if len(inputs) != len(self._di) or len(outputs) != len(self._do):
                raise ValueError(
                    f"Channel arrays must keep their size "
                    f"(DI={len(self._di)}, DO={len(self._do)})"
                )
            self._registers[Direction.INPUTS] = din
            self._registers[Direction.OUTPUTS] = dout
            self._di = list(inputs)
            self._do = list(outputs)
            self._last_update = time.time()
            self._cycle_count += 1

    def get_register(self, direction: Direction) -> int:
        """
        Last-known normalized register for a direction.

        Raises:
            CacheNotReady: no successful read has happened yet
        """
        with self._lock:
            value = self._registers[direction]
            if value is None:
                raise CacheNotReady(
                    f"No {direction.value} register read yet, write rejected"
                )
            return value

    def get_di(self) -> List[bool]:
        with self._lock:
            return self._di.copy()

    def get_do(self) -> List[bool]:
        with self._lock:
            return self._do.copy()

    def snapshot(self) -> Dict:
        """Decoded I/O as published to subscribers"""
        with self._lock:
            return {
                "digital_inputs": self._di.copy(),
                "digital_outputs": self._do.copy(),
            }

    # ================================
    # Diagnostics counters
    # ================================
    def set_running(self, value: bool):
        with self._lock:
            self._running = bool(value)

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def record_error(self):
        with self._lock:
            self._error_count += 1

    def record_slow(self, reason: str):
        with self._lock:
            self._slow_count += 1
            self._was_slow = reason
            self._last_slow_reason = reason

    def record_reconnect(self):
        with self._lock:
            self._reconnect_count += 1

    def consume_slow_reason(self) -> str:
        """Return the pending slow reason and clear it (reported once)"""
        with self._lock:
            reason, self._was_slow = self._was_slow, ""
            return reason

    def get_diagnostics(self) -> Dict:
        """Pull-based diagnostics surface"""
        with self._lock:
            return {
                "running": self._running,
                "error_count": self._error_count,
                "slow_count": self._slow_count,
                "last_slow_reason": self._last_slow_reason,
                "reconnect_count": self._reconnect_count,
                "cycle_count": self._cycle_count,
                "last_update": self._last_update,
            }

    def __repr__(self):
        with self._lock:
            return (
                f"ThreadSafeState("
                f"DI={self._di}, "
                f"DO={self._do}, "
                f"running={self._running})"
            )
