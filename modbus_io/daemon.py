#!/usr/bin/env python3
# modbus_io/daemon.py
# Supervisor: connect, poll at a fixed rate, reconnect on failure

import logging
import threading
from typing import Callable, Dict, Optional

from modbus_io.commands import CommandHandler
from modbus_io.diagnostics import DiagnosticsReporter, FrequencyStatus
from modbus_io.errors import ConnectError, IoError
from modbus_io.modbus_manager import ModbusManager
from modbus_io.polling import PollingCycle
from modbus_io.resilience import PeriodicTicker, backoff
from modbus_io.settings import DeviceSettings
from modbus_io.thread_safe_state import ThreadSafeState

logger = logging.getLogger(__name__)


def _discard(snapshot: Dict):
    pass


class ModbusIODaemon:
    """
    Owns the device session and the poll loop on one worker thread.

    Loop:
    1. connect(); on failure wait the fixed backoff and retry forever
    2. poll at the configured rate until a register I/O error or stop()
    3. on I/O error disconnect, back off, go to 1

    Commands from other threads go through ``self.commands`` and share
    the session lock with the poll cycle.

    Usage:
        daemon = ModbusIODaemon(settings, publish=bridge.publish_snapshot)
        daemon.start()
        ...
        daemon.commands.set_digital_output(3, True)
        daemon.stop()
    """

    def __init__(
        self,
        settings: DeviceSettings,
        publish: Optional[Callable[[Dict], None]] = None,
        session=None,
    ):
        self.settings = settings
        self.session = session if session is not None else ModbusManager(settings)
        self.state = ThreadSafeState(settings.digital_inputs, settings.digital_outputs)
        self.frequency = FrequencyStatus(settings.poll_frequency)
        self.cycle = PollingCycle(
            self.session,
            self.state,
            settings,
            publish or _discard,
            frequency=self.frequency,
        )
        self.commands = CommandHandler(self.session, self.state, settings)
        self.diagnostics = DiagnosticsReporter(self.state, self.session, self.frequency)

        self._stop = threading.Event()
        self.thread: Optional[threading.Thread] = None

        logger.info(
            f"Settings -> DO = {settings.digital_outputs} (register {settings.digital_outputs_addr}), "
            f"DI = {settings.digital_inputs} (register {settings.digital_inputs_addr})"
        )

    # ================================
    # Supervisor loop
    # ================================
    def run(self):
        """Run until stop() is called (blocking)"""
        ticker = PeriodicTicker(self.settings.period, self._stop)

        while not self._stop.is_set():
            try:
                self.session.connect()
            except ConnectError as e:
                logger.error(f"Connection error: {e}")
                if not backoff(self._stop, self.settings.reconnect_backoff):
                    break
                continue

            self.state.set_running(True)
            self.frequency.clear()
            self.cycle.reset()
            ticker.reset()

            try:
                self._poll(ticker)
            except IoError:
                logger.warning("I/O failure, reconnecting")
                self.session.disconnect()
                self.state.set_running(False)
                self.state.record_reconnect()
                if not backoff(self._stop, self.settings.reconnect_backoff):
                    break

        logger.info("Stopping, closing session")
        self.session.disconnect()
        self.state.set_running(False)

    def _poll(self, ticker: PeriodicTicker):
        while not self._stop.is_set():
            self.cycle.run_once()
            if not ticker.wait():
                return

    # ================================
    # Thread control
    # ================================
    def start(self):
        """Start the supervisor thread"""
        if self.thread and self.thread.is_alive():
            logger.warning("modbus_io daemon already running")
            return
        self._stop.clear()
        self.thread = threading.Thread(target=self.run, name="ModbusIODaemon", daemon=True)
        self.thread.start()
        logger.info("✅ modbus_io daemon running")

    def stop(self, timeout: Optional[float] = None):
        """Request shutdown and wait for the loop to exit"""
        self._stop.set()
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)
        logger.info("🛑 modbus_io daemon stopped")
