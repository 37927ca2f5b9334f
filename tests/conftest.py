# tests/conftest.py
"""Shared pytest fixtures for modbus_io tests.

The fake session below stands in for ModbusManager: an in-memory
register map with programmable connect/read/write failures. Everything
above the session (codec, cycle, commands, supervisor) runs for real.
"""

import threading
from contextlib import contextmanager

import pytest

from modbus_io import codec
from modbus_io.errors import ConnectError, IoError
from modbus_io.settings import DeviceSettings
from modbus_io.thread_safe_state import ThreadSafeState


class FakeSession:
    """In-memory Modbus session with the ModbusManager interface"""

    def __init__(self, settings, registers=None):
        self.settings = settings
        self.registers = dict(registers or {})
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.connect_failures = 0
        self.read_failures = 0
        self.write_failures = 0
        self.reads = []
        self.writes = []
        self._lock = threading.RLock()

    @contextmanager
    def lock(self):
        with self._lock:
            yield self

    def connect(self, address=None, port=None):
        self.connect_calls += 1
        if self.connect_failures:
            self.connect_failures -= 1
            raise ConnectError("Connection refused")
        self.connected = True

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    def read_registers(self, start_address, count):
        if not self.connected:
            raise IoError("Not connected")
        if self.read_failures:
            self.read_failures -= 1
            raise IoError("Connection timed out", code=110)
        self.reads.append((start_address, count))
        return [self.registers.get(start_address + i, 0) for i in range(count)]

    def write_register(self, address, value):
        if not self.connected:
            raise IoError("Not connected")
        if self.write_failures:
            self.write_failures -= 1
            raise IoError("Connection reset by peer", code=104)
        self.writes.append((address, value))
        self.registers[address] = value

    def set_channels(self, address, channels):
        """Load a register from channel states, in the board's byte order"""
        self.registers[address] = codec.normalize(
            codec.encode(channels), self.settings.big_endian
        )


# ----------------------------------------------------------------
# Settings / state fixtures
# ----------------------------------------------------------------
@pytest.fixture
def settings() -> DeviceSettings:
    """8 inputs at register 0, 8 outputs at register 100, little endian"""
    return DeviceSettings(
        address="192.168.1.100",
        port=502,
        digital_inputs=8,
        digital_outputs=8,
        digital_inputs_addr=0,
        digital_outputs_addr=100,
        big_endian=False,
        poll_frequency=10.0,
        reconnect_backoff=0.0,
    )


@pytest.fixture
def state(settings) -> ThreadSafeState:
    return ThreadSafeState(settings.digital_inputs, settings.digital_outputs)


@pytest.fixture
def make_session():
    """Factory for fake sessions: make_session(settings, {addr: value})"""

    def _make(settings, registers=None, connected=True):
        session = FakeSession(settings, registers)
        if connected:
            session.connect()
            session.connect_calls = 0
        return session

    return _make


@pytest.fixture
def session(settings, make_session) -> FakeSession:
    return make_session(settings)


class FakeClock:
    """Returns scripted timestamps, one per call"""

    def __init__(self, *values):
        self.values = list(values)

    def __call__(self):
        return self.values.pop(0)


@pytest.fixture
def fake_clock():
    return FakeClock
