#!/usr/bin/env python3
# modbus_io/modbus_manager.py
# Modbus/TCP device session (connect, read, write)

import logging
import threading
from contextlib import contextmanager
from typing import Callable, List, Optional

from pymodbus.client import ModbusTcpClient
from pymodbus.exceptions import ModbusException

from modbus_io.errors import ConnectError, IoError
from modbus_io.settings import DeviceSettings

logger = logging.getLogger(__name__)


class ModbusManager:
    """
    One Modbus/TCP connection to the I/O board.

    States: Disconnected -> connect() -> Connected, and back on
    disconnect(). The session never reconnects on its own and never
    touches diagnostics; callers observe failures and decide.

    Every protocol exchange runs under a single re-entrant lock. Callers
    that need several exchanges to be atomic (poll cycle, read-modify-write
    commands) hold ``lock()`` around them.
    """

    def __init__(
        self,
        settings: DeviceSettings,
        client_factory: Callable[..., ModbusTcpClient] = ModbusTcpClient,
    ):
        self.settings = settings
        self.client_factory = client_factory
        self.client: Optional[ModbusTcpClient] = None
        self._connected = False
        self._lock = threading.RLock()

    @property
    def connected(self) -> bool:
        return self._connected

    @contextmanager
    def lock(self):
        """Hold the session for a batch of exchanges"""
        with self._lock:
            yield self

    # ================================
    # Lifecycle
    # ================================
    def connect(self, address: Optional[str] = None, port: Optional[int] = None):
        """
        Open the TCP connection, closing any previous one first.

        Raises:
            ConnectError: socket could not be opened
        """
        address = address or self.settings.address
        port = port or self.settings.port

        with self._lock:
            self.disconnect()

            logger.info(f"Connecting to {address}:{port}")
            try:
                client = self.client_factory(
                    host=address, port=port, timeout=self.settings.timeout
                )
                ok = client.connect()
            except (ModbusException, OSError) as e:
                logger.error(f"Connection error to {address}:{port}: {e}")
                raise ConnectError(f"Cannot connect to {address}:{port}: {e}") from e

            if not ok:
                client.close()
                logger.error(f"Connection error to {address}:{port}")
                raise ConnectError(f"Cannot connect to {address}:{port}")

            self.client = client
            self._connected = True
            logger.info(f"✅ Connected to Modbus I/O board at {address}:{port}")

    def disconnect(self):
        """Release the connection; safe when already disconnected"""
        with self._lock:
            if self.client is None:
                return
            logger.info("Closing modbus connection")
            try:
                self.client.close()
            except (ModbusException, OSError) as e:
                logger.warning(f"Error while closing connection: {e}")
            finally:
                self.client = None
                self._connected = False

    # ================================
    # Register access
    # ================================
    def read_registers(self, start_address: int, count: int) -> List[int]:
        """
        Read ``count`` holding registers starting at ``start_address``.

        Raises:
            IoError: not connected, transport failure or error response
        """
        with self._lock:
            client = self._require_client()
            try:
                response = client.read_holding_registers(
                    address=start_address, count=count, device_id=self.settings.unit_id
                )
            except (ModbusException, OSError) as e:
                raise IoError(
                    f"Read of {count} register(s) at {start_address} failed: {e}",
                    code=getattr(e, "errno", None) or 0,
                ) from e

            if response.isError():
                raise IoError(
                    f"Read of {count} register(s) at {start_address} rejected",
                    code=getattr(response, "exception_code", 0),
                )

            registers = list(response.registers)
            if len(registers) != count:
                raise IoError(
                    f"Expected {count} register(s) at {start_address}, "
                    f"got {len(registers)}"
                )
            return registers

    def write_register(self, address: int, value: int):
        """
        Write a single holding register.

        Raises:
            IoError: not connected, transport failure or error response
        """
        with self._lock:
            client = self._require_client()
            try:
                response = client.write_register(
                    address=address, value=value & 0xFFFF, device_id=self.settings.unit_id
                )
            except (ModbusException, OSError) as e:
                raise IoError(
                    f"Write of register {address} failed: {e}",
                    code=getattr(e, "errno", None) or 0,
                ) from e

            if response.isError():
                raise IoError(
                    f"Write of register {address} rejected",
                    code=getattr(response, "exception_code", 0),
                )

    def _require_client(self) -> ModbusTcpClient:
        if self.client is None or not self._connected:
            raise IoError("Not connected")
        return self.client

    def __repr__(self):
        return (
            f"ModbusManager({self.settings.address}:{self.settings.port}, "
            f"connected={self._connected})"
        )
