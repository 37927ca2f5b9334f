#!/usr/bin/env python3
# modbus_io/commands.py
# Write commands: set one channel (or all) by read-modify-write

import logging

from modbus_io import codec
from modbus_io.errors import CommandError, CommandIoFailure, IoError, OutOfRange
from modbus_io.settings import DeviceSettings
from modbus_io.thread_safe_state import Direction, ThreadSafeState

logger = logging.getLogger(__name__)


def parse_value(raw) -> bool:
    """Channel value from a JSON command: true/false or 0/1 only"""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    raise ValueError(f"value must be true/false or 0/1, got {raw!r}")


class CommandHandler:
    """
    Sets digital channels on the board.

    Channel numbers are 1-based; 0 (or below) addresses every channel at
    once. Single-channel writes start from the cached register of the
    last poll so the device is not re-read, and all bits other than the
    addressed one are written back unchanged.

    The inputs variant exists for simulated boards and test rigs.
    """

    def __init__(self, session, state: ThreadSafeState, settings: DeviceSettings):
        self.session = session
        self.state = state
        self.settings = settings

    # ================================
    # Boolean service API
    # ================================
    def set_digital_output(self, output: int, value: bool) -> bool:
        return self._acknowledge(Direction.OUTPUTS, output, value)

    def set_digital_input(self, input_: int, value: bool) -> bool:
        return self._acknowledge(Direction.INPUTS, input_, value)

    def _acknowledge(self, direction: Direction, channel: int, value: bool) -> bool:
        try:
            self.set_channel(direction, channel, value)
        except CommandError as e:
            logger.error(f"write_digital_{direction.value[:-1]} failed: {e}")
            return False
        return True

    # ================================
    # Read-modify-write
    # ================================
    def set_channel(self, direction: Direction, channel: int, value: bool) -> int:
        """
        Set one channel (1-based) or all channels (0) of a register.

        Returns:
            The normalized register value that was written

        Raises:
            OutOfRange: channel > configured count
            UnsupportedChannelCount: all-channels on a board that is not 8/16 wide
            CacheNotReady: single channel before the first successful poll
            CommandIoFailure: the register write failed
        """
        count = self.state.channel_count(direction)
        address = self._address(direction)
        name = direction.value.upper()

        with self.session.lock():
            if channel <= 0:
                register_value = codec.all_channels_mask(count, value)
                logger.info(
                    f"ALL {name} {'ENABLED' if value else 'DISABLED'} (channel = {channel})"
                )
            else:
                idx = channel - 1
                if idx >= count:
                    raise OutOfRange(
                        f"{name[:-1]} NUMBER {channel} OUT OF RANGE [1 -> {count}]"
                    )
                cached = self.state.get_register(direction)
                register_value = codec.set_bit(cached, idx, value)
                logger.info(f"write request: {name[:-1]}={channel}, VALUE={int(bool(value))}")

            wire_value = codec.normalize(register_value, self.settings.big_endian)
            try:
                self.session.write_register(address, wire_value)
            except IoError as e:
                logger.warning(f"modbus_io error: {e}")
                self.state.record_error()
                raise CommandIoFailure(str(e), code=e.code) from e

        return register_value

    def _address(self, direction: Direction) -> int:
        if direction is Direction.INPUTS:
            return self.settings.digital_inputs_addr
        return self.settings.digital_outputs_addr
