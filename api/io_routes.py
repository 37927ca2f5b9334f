# api/io_routes.py
# Digital I/O snapshot and write command endpoints

import time

from flask import Blueprint, current_app, jsonify, request

from modbus_io.commands import parse_value
from modbus_io.errors import CacheNotReady, CommandError, CommandIoFailure
from modbus_io.thread_safe_state import Direction

io_api = Blueprint('io_api', __name__)


def _daemon():
    return current_app.config['MODBUS_IO_DAEMON']


@io_api.get('/api/io')
def get_io():
    """Get last decoded I/O snapshot"""
    daemon = _daemon()
    snapshot = daemon.state.snapshot()
    snapshot['timestamp'] = time.time()
    return jsonify(snapshot)


@io_api.post('/api/io/do/<int:output>')
def write_digital_output(output):
    """Set one digital output (1-based) or all of them (0)"""
    return _write(Direction.OUTPUTS, output)


@io_api.post('/api/io/di/<int:output>')
def write_digital_input(output):
    """Set one digital input on a simulated board (test rigs only)"""
    return _write(Direction.INPUTS, output)


def _write(direction, channel):
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict) or 'value' not in data:
        return jsonify({"success": False, "error": "Missing required field: value"}), 400

    try:
        value = parse_value(data['value'])
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        register = _daemon().commands.set_channel(direction, channel, value)
    except CommandIoFailure as e:
        return jsonify({"success": False, "error": str(e)}), 502
    except CacheNotReady as e:
        return jsonify({"success": False, "error": str(e)}), 503
    except CommandError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    return jsonify({
        "success": True,
        "output": channel,
        "register": register
    })
