# tests/unit/test_commands.py
"""Unit tests for the digital output / input write commands."""

from dataclasses import replace

import pytest

from modbus_io.commands import CommandHandler, parse_value
from modbus_io.errors import (
    CacheNotReady,
    CommandIoFailure,
    OutOfRange,
    UnsupportedChannelCount,
)
from modbus_io.polling import PollingCycle
from modbus_io.thread_safe_state import Direction, ThreadSafeState


def _prime(session, state, settings):
    """Run one poll so the register cache holds the device values"""
    PollingCycle(session, state, settings, lambda snapshot: None).run_once()


@pytest.fixture
def handler(settings, state, make_session):
    session = make_session(settings, {0: 0b00000000, 100: 0b00000001})
    _prime(session, state, settings)
    return CommandHandler(session, state, settings)


# ================================================================
# SINGLE CHANNEL
# ================================================================
class TestSingleChannel:
    def test_set_channel_three(self, handler):
        assert handler.set_digital_output(3, True) is True
        assert handler.session.writes == [(100, 0x05)]

    def test_unchanged_bit_writes_same_value(self, settings, state, make_session):
        session = make_session(settings)
        session.set_channels(100, [True, False, True])
        _prime(session, state, settings)
        handler = CommandHandler(session, state, settings)

        handler.set_digital_output(1, True)

        assert session.writes == [(100, 0x0005)]

    def test_clear_channel(self, handler):
        handler.set_digital_output(1, False)
        assert handler.session.writes == [(100, 0x00)]

    def test_reserved_bits_preserved(self, settings, state, make_session):
        session = make_session(settings, {100: 0xA500})
        _prime(session, state, settings)
        handler = CommandHandler(session, state, settings)

        handler.set_digital_output(2, True)

        assert session.writes == [(100, 0xA502)]

    def test_write_leaves_cache_to_next_poll(self, handler, state):
        handler.set_digital_output(2, True)
        handler.set_digital_output(4, True)

        assert handler.session.writes == [(100, 0b0011), (100, 0b1001)]
        assert state.get_register(Direction.OUTPUTS) == 0b0001

        _prime(handler.session, state, handler.settings)
        handler.set_digital_output(2, True)

        assert handler.session.writes[-1] == (100, 0b1011)

    def test_big_endian_write_is_swapped(self, settings, make_session):
        settings = replace(settings, big_endian=True)
        state = ThreadSafeState(8, 8)
        session = make_session(settings, {100: 0x0100})
        _prime(session, state, settings)
        handler = CommandHandler(session, state, settings)

        handler.set_digital_output(2, True)

        assert session.writes == [(100, 0x0300)]

    def test_write_digital_input(self, handler):
        assert handler.set_digital_input(8, True) is True
        assert handler.session.writes == [(0, 0x80)]


# ================================================================
# ALL CHANNELS
# ================================================================
class TestAllChannels:
    def test_all_on_ignores_cache(self, handler):
        handler.set_digital_output(0, True)
        assert handler.session.writes == [(100, 0x00FF)]

    def test_all_off(self, handler):
        handler.set_digital_output(0, False)
        assert handler.session.writes == [(100, 0x0000)]

    def test_all_on_before_first_read(self, settings, state, make_session):
        session = make_session(settings)
        handler = CommandHandler(session, state, settings)

        assert handler.set_digital_output(0, True) is True
        assert session.writes == [(100, 0x00FF)]

    def test_all_on_sixteen_big_endian(self, settings, make_session):
        settings = replace(settings, digital_outputs=16, big_endian=True)
        state = ThreadSafeState(8, 16)
        session = make_session(settings)
        handler = CommandHandler(session, state, settings)

        handler.set_digital_output(0, True)

        assert session.writes == [(100, 0xFFFF)]

    def test_unsupported_width(self, settings, make_session):
        settings = replace(settings, digital_outputs=12)
        state = ThreadSafeState(8, 12)
        session = make_session(settings)
        handler = CommandHandler(session, state, settings)

        with pytest.raises(UnsupportedChannelCount):
            handler.set_channel(Direction.OUTPUTS, 0, True)
        assert handler.set_digital_output(0, False) is False
        assert session.writes == []


# ================================================================
# REJECTED COMMANDS
# ================================================================
class TestRejected:
    def test_out_of_range(self, handler, state):
        with pytest.raises(OutOfRange):
            handler.set_channel(Direction.OUTPUTS, 9, True)

        assert handler.set_digital_output(9, True) is False
        assert handler.session.writes == []
        assert state.get_register(Direction.OUTPUTS) == 0b00000001

    def test_single_channel_before_first_read(self, settings, state, make_session):
        session = make_session(settings)
        handler = CommandHandler(session, state, settings)

        with pytest.raises(CacheNotReady):
            handler.set_channel(Direction.OUTPUTS, 1, True)
        assert session.writes == []

    def test_all_channels_write_does_not_fill_cache(self, settings, state, make_session):
        session = make_session(settings)
        handler = CommandHandler(session, state, settings)

        assert handler.set_digital_output(0, False) is True
        with pytest.raises(CacheNotReady):
            handler.set_channel(Direction.OUTPUTS, 1, True)
        assert handler.set_digital_input(2, True) is False
        assert session.writes == [(100, 0x0000)]

    def test_write_failure(self, handler, state):
        handler.session.write_failures = 1

        with pytest.raises(CommandIoFailure) as exc:
            handler.set_channel(Direction.OUTPUTS, 3, True)

        assert exc.value.code == 104
        assert state.get_diagnostics()["error_count"] == 1
        assert state.get_register(Direction.OUTPUTS) == 0b00000001

    def test_write_failure_not_retried(self, handler):
        handler.session.write_failures = 1

        assert handler.set_digital_output(3, True) is False
        assert handler.session.writes == []


# ================================================================
# COMMAND VALUES
# ================================================================
class TestParseValue:
    @pytest.mark.parametrize("raw,expected", [(True, True), (False, False), (1, True), (0, False)])
    def test_accepted(self, raw, expected):
        assert parse_value(raw) is expected

    @pytest.mark.parametrize("raw", ["false", "true", 2, -1, 1.0, None, []])
    def test_rejected(self, raw):
        with pytest.raises(ValueError):
            parse_value(raw)
