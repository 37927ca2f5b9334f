# tests/unit/test_daemon.py
"""Unit tests for the supervisor loop (connect, poll, reconnect)."""

import time
from dataclasses import replace
from unittest.mock import Mock

import pytest

from modbus_io import daemon as daemon_module
from modbus_io.daemon import ModbusIODaemon


@pytest.fixture
def backoff_calls(monkeypatch):
    """Record backoff waits without sleeping"""
    calls = Mock(return_value=True)
    monkeypatch.setattr(daemon_module, "backoff", calls)
    return calls


def _stop_after(daemon, snapshots=1):
    """Publish callback that stops the daemon after N snapshots"""
    seen = []

    def publish(snapshot):
        seen.append(snapshot)
        if len(seen) >= snapshots:
            daemon.stop()

    return publish, seen


class TestSupervisor:
    def test_connect_poll_and_stop(self, settings, make_session, backoff_calls):
        session = make_session(settings, {100: 0x01}, connected=False)
        daemon = ModbusIODaemon(settings, session=session)
        daemon.cycle.publish, seen = _stop_after(daemon)

        daemon.run()

        assert session.connect_calls == 1
        assert seen[0]["digital_outputs"][0] is True
        assert session.connected is False
        assert daemon.state.running is False
        backoff_calls.assert_not_called()

    def test_connect_retried_forever_with_fixed_backoff(
        self, settings, make_session, backoff_calls
    ):
        session = make_session(settings, connected=False)
        session.connect_failures = 3
        daemon = ModbusIODaemon(settings, session=session)
        daemon.cycle.publish, _ = _stop_after(daemon)

        daemon.run()

        assert session.connect_calls == 4
        assert backoff_calls.call_count == 3
        for call in backoff_calls.call_args_list:
            assert call.args[1] == settings.reconnect_backoff
        assert daemon.state.get_diagnostics()["error_count"] == 0

    def test_two_read_failures_two_reconnects(self, settings, make_session, backoff_calls):
        session = make_session(settings, connected=False)
        session.read_failures = 2
        daemon = ModbusIODaemon(settings, session=session)
        daemon.cycle.publish, seen = _stop_after(daemon)

        daemon.run()

        diag = daemon.state.get_diagnostics()
        assert session.connect_calls == 3
        assert diag["reconnect_count"] == 2
        assert diag["error_count"] == 2
        assert backoff_calls.call_count == 2
        assert len(seen) == 1

    def test_full_reconnect_after_io_failure(self, settings, make_session, backoff_calls):
        session = make_session(settings, connected=False)
        session.read_failures = 1
        daemon = ModbusIODaemon(settings, session=session)
        daemon.cycle.publish, _ = _stop_after(daemon)

        daemon.run()

        # one disconnect after the failure, one on shutdown
        assert session.disconnect_calls == 2

    def test_stop_during_backoff(self, settings, make_session, backoff_calls):
        session = make_session(settings, connected=False)
        session.connect_failures = 1
        backoff_calls.return_value = False
        daemon = ModbusIODaemon(settings, session=session)

        daemon.run()

        assert session.connect_calls == 1
        assert daemon.state.running is False


class TestThread:
    def test_start_and_stop(self, settings, make_session):
        settings = replace(settings, poll_frequency=100.0)
        session = make_session(settings, {0: 0x0F}, connected=False)
        daemon = ModbusIODaemon(settings, session=session)

        daemon.start()
        deadline = time.monotonic() + 5
        while daemon.state.get_diagnostics()["cycle_count"] < 3:
            assert time.monotonic() < deadline, "daemon did not poll"
            time.sleep(0.01)

        assert daemon.state.running is True
        daemon.stop(timeout=5)

        assert not daemon.thread.is_alive()
        assert session.connected is False
        assert daemon.state.snapshot()["digital_inputs"][:4] == [True] * 4

    def test_command_while_polling(self, settings, make_session):
        settings = replace(settings, poll_frequency=100.0)
        session = make_session(settings, {100: 0x00}, connected=False)
        daemon = ModbusIODaemon(settings, session=session)

        daemon.start()
        deadline = time.monotonic() + 5
        while daemon.state.get_diagnostics()["cycle_count"] < 1:
            assert time.monotonic() < deadline, "daemon did not poll"
            time.sleep(0.01)

        assert daemon.commands.set_digital_output(5, True) is True
        daemon.stop(timeout=5)

        assert session.registers[100] == 0x10
