#!/usr/bin/env python3
# modbus_io/polling.py
# Read / decode / publish cycle with latency monitoring

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from modbus_io import codec
from modbus_io.diagnostics import FrequencyStatus
from modbus_io.errors import IoError
from modbus_io.settings import DeviceSettings
from modbus_io.thread_safe_state import ThreadSafeState

logger = logging.getLogger(__name__)

SLOW_FULL_CYCLE = "full cycle slow"
SLOW_GATHERING = "gathering data slow"
SLOW_PUBLISHING = "publishing slow"


@dataclass
class CycleState:
    """Timing carried from one cycle to the next"""

    prev_start: Optional[float] = None
    prev_duration: Optional[float] = None


class PollingCycle:
    """
    One poll iteration per call to ``run_once()``.

    Reads the inputs and outputs registers, decodes them, refreshes the
    shared register cache and hands the snapshot to ``publish``. Each of
    the three phases (previous full cycle, gathering, publishing) that
    exceeds the nominal period counts as one slow event.

    A read failure is counted, logged and re-raised; nothing is published
    for that cycle.
    """

    def __init__(
        self,
        session,
        state: ThreadSafeState,
        settings: DeviceSettings,
        publish: Callable[[Dict], None],
        frequency: Optional[FrequencyStatus] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.state = state
        self.settings = settings
        self.publish = publish
        self.frequency = frequency
        self.clock = clock
        self.max_delay = settings.period
        self.cycle = CycleState()

    def reset(self):
        """Forget timing of the previous session"""
        self.cycle = CycleState()

    def run_once(self) -> Dict:
        start = self.clock()

        if self.cycle.prev_duration is not None and self.cycle.prev_duration > self.max_delay:
            self._slow(SLOW_FULL_CYCLE, "Full loop", self.cycle.prev_duration)

        snapshot = self._gather()

        gathered = self.clock()
        if gathered - start > self.max_delay:
            self._slow(SLOW_GATHERING, "Gathering data", gathered - start)

        try:
            self.publish(snapshot)
        except Exception as e:
            logger.error(f"Publish error: {e}")

        published = self.clock()
        if published - gathered > self.max_delay:
            self._slow(SLOW_PUBLISHING, "Publishing", published - gathered)

        self.cycle.prev_start = start
        self.cycle.prev_duration = published - start

        if self.frequency is not None:
            self.frequency.tick()

        return snapshot

    def _gather(self) -> Dict:
        settings = self.settings

        with self.session.lock():
            try:
                din_raw = self.session.read_registers(settings.digital_inputs_addr, 1)[0]
                dout_raw = self.session.read_registers(settings.digital_outputs_addr, 1)[0]
            except IoError as e:
                logger.warning(f"modbus_io error: {e}")
                self.state.record_error()
                raise

            din = codec.normalize(din_raw, settings.big_endian)
            dout = codec.normalize(dout_raw, settings.big_endian)
            inputs = codec.decode(din, settings.digital_inputs)
            outputs = codec.decode(dout, settings.digital_outputs)

            self.state.update_registers(din, dout, inputs, outputs)

        return {"digital_inputs": inputs, "digital_outputs": outputs}

    def _slow(self, reason: str, phase: str, elapsed: float):
        logger.warning(
            f"{phase} took {1000 * elapsed:.1f} ms. "
            f"Nominal is {1000 * self.max_delay:.1f} ms."
        )
        self.state.record_slow(reason)
