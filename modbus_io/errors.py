#!/usr/bin/env python3
# modbus_io/errors.py
# Exception taxonomy for the Modbus I/O client


class ModbusIOError(Exception):
    """Base class for all modbus_io errors."""


class ConfigError(ModbusIOError):
    """Raised when configuration is invalid."""


# ================================
# Transport errors (absorbed by the supervisor)
# ================================
class ConnectError(ModbusIOError):
    """Raised when the TCP connection to the device cannot be opened."""


class IoError(ModbusIOError):
    """
    Raised when a register read/write fails over an established connection.

    Attributes:
        code: Transport or Modbus exception code (0 when unknown)
    """

    def __init__(self, message: str, code: int = 0):
        super().__init__(message)
        self.code = code

    def __str__(self):
        return f"{self.args[0]} (code: {self.code})"


# ================================
# Command errors (reported to the caller)
# ================================
class CommandError(ModbusIOError):
    """Base class for errors reported back to a write command caller."""


class OutOfRange(CommandError, ValueError):
    """Channel or bit index outside the valid range."""


class UnsupportedChannelCount(CommandError, ValueError):
    """All-channels command issued for a board width other than 8 or 16."""


class CacheNotReady(CommandError):
    """No successful register read yet, so a single-bit write has no base value."""


class CommandIoFailure(CommandError):
    """The register write failed at the transport level."""

    def __init__(self, message: str, code: int = 0):
        super().__init__(message)
        self.code = code
