#!/usr/bin/env python3
# modbus_io/codec.py
# Register <-> channel bit mapping

"""
Pure bit-mapping helpers for 16-bit digital I/O registers.

Channel i lives in bit i of the *normalized* register value, where
normalization swaps the two bytes when the device is big endian.
"""

from typing import List, Sequence

from modbus_io.errors import OutOfRange, UnsupportedChannelCount

REGISTER_BITS = 16
REGISTER_MASK = 0xFFFF

# Board widths that support the "all channels" command
ALL_CHANNEL_MASKS = {
    8: 0x00FF,
    16: 0xFFFF,
}


def normalize(raw: int, big_endian: bool) -> int:
    """Swap register bytes when the device byte order differs from ours"""
    raw &= REGISTER_MASK
    if not big_endian:
        return raw
    return ((raw & 0x00FF) << 8) | (raw >> 8)


def decode(normalized: int, count: int) -> List[bool]:
    """
    Expand a normalized register into ``count`` channel booleans.

    Bits at index >= count are dropped. ``count`` is not checked against
    the register width; bits past bit 15 simply read as False.
    """
    return [bool((normalized >> i) & 1) for i in range(count)]


def encode(channels: Sequence[bool]) -> int:
    """Pack channel booleans into a register value (channel 0 = bit 0)"""
    value = 0
    for i, on in enumerate(channels[:REGISTER_BITS]):
        if on:
            value |= 1 << i
    return value


def set_bit(current: int, bit_index: int, value: bool) -> int:
    """
    Return ``current`` with one bit set or cleared.

    Every other bit, including reserved bits past the configured channel
    count, is preserved.

    Raises:
        OutOfRange: bit_index is not in [0, 16)
    """
    if not 0 <= bit_index < REGISTER_BITS:
        raise OutOfRange(
            f"Bit index {bit_index} out of range [0 -> {REGISTER_BITS - 1}]"
        )

    shift_bit = 1 << bit_index
    if value:
        return (current | shift_bit) & REGISTER_MASK
    return current & ~shift_bit & REGISTER_MASK


def all_channels_mask(count: int, value: bool) -> int:
    """
    Register value that switches every channel of an 8 or 16 wide board.

    Raises:
        UnsupportedChannelCount: count is neither 8 nor 16
    """
    if count not in ALL_CHANNEL_MASKS:
        raise UnsupportedChannelCount(
            f"All-channels command not supported for {count} channels "
            f"(supported: {sorted(ALL_CHANNEL_MASKS)})"
        )
    return ALL_CHANNEL_MASKS[count] if value else 0x0000
