#!/usr/bin/env python3
# modbus_io/settings.py
# Device and polling settings for one Modbus/TCP I/O board

from dataclasses import dataclass

from modbus_io.errors import ConfigError

MODBUS_DEFAULT_PORT = 502
MODBUS_DESIRED_FREQ = 10.0

MODBUS_DEFAULT_DIGITAL_INPUTS = 8
MODBUS_DEFAULT_DIGITAL_OUTPUTS = 8


@dataclass
class DeviceSettings:
    """Connection, register layout and timing for the I/O board"""

    address: str = "127.0.0.1"
    port: int = MODBUS_DEFAULT_PORT
    unit_id: int = 1
    digital_inputs: int = MODBUS_DEFAULT_DIGITAL_INPUTS
    digital_outputs: int = MODBUS_DEFAULT_DIGITAL_OUTPUTS
    digital_inputs_addr: int = 0
    digital_outputs_addr: int = 100
    big_endian: bool = False
    poll_frequency: float = MODBUS_DESIRED_FREQ
    reconnect_backoff: float = 1.0
    timeout: float = 1.0

    def __post_init__(self):
        for name in ("digital_inputs", "digital_outputs"):
            count = getattr(self, name)
            if not 0 <= count <= 16:
                raise ConfigError(f"{name} must be in [0, 16], got {count}")
        if self.poll_frequency <= 0:
            raise ConfigError(
                f"poll_frequency must be positive, got {self.poll_frequency}"
            )
        if self.reconnect_backoff < 0:
            raise ConfigError("reconnect_backoff must not be negative")

    @property
    def period(self) -> float:
        """Nominal cycle period in seconds"""
        return 1.0 / self.poll_frequency
