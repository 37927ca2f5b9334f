#!/usr/bin/env python3
# api/health_routes.py
# Health check endpoints for monitoring and alerting

import time
from datetime import datetime

import psutil
from flask import Blueprint, current_app, jsonify

health_api = Blueprint('health_api', __name__)

# Track when server started
SERVER_START_TIME = time.time()


# ============================================
# Basic Health Check
# ============================================
@health_api.route('/api/health', methods=['GET'])
def health_check():
    """
    Pull-based diagnostics counters.
    Returns 200 while the poll loop has a session, 503 otherwise.

    Response format:
    {
        "running": true,
        "error_count": 0,
        "slow_count": 0,
        "last_slow_reason": "",
        "timestamp": "ISO8601",
        "uptime": 12345
    }
    """
    daemon = current_app.config['MODBUS_IO_DAEMON']
    diag = daemon.state.get_diagnostics()

    response = {
        "running": diag["running"],
        "error_count": diag["error_count"],
        "slow_count": diag["slow_count"],
        "last_slow_reason": diag["last_slow_reason"],
        "timestamp": datetime.now().isoformat(),
        "uptime": int(time.time() - SERVER_START_TIME)
    }

    status_code = 200 if diag["running"] else 503
    return jsonify(response), status_code


# ============================================
# Detailed Health Check
# ============================================
@health_api.route('/api/health/detailed', methods=['GET'])
def health_check_detailed():
    """
    Detailed diagnostics (connect test, frequency, device status),
    MQTT bridge status and host metrics.
    """
    daemon = current_app.config['MODBUS_IO_DAEMON']
    bridge = current_app.config.get('MQTT_BRIDGE')

    report = daemon.diagnostics.get_report()
    memory = psutil.virtual_memory()

    report["uptime"] = int(time.time() - SERVER_START_TIME)
    report["mqtt"] = bridge.get_status() if bridge else None
    report["system"] = {
        "cpu_percent": round(psutil.cpu_percent(interval=None), 1),
        "memory_percent": round(memory.percent, 1),
    }

    status_code = 200 if report["level"] != "error" else 503
    return jsonify(report), status_code


# ============================================
# Liveness Probe
# ============================================
@health_api.route('/api/health/live', methods=['GET'])
def liveness_probe():
    """
    Liveness probe. Returns 200 while the HTTP process is up,
    even if the I/O board is unreachable.
    """
    return jsonify({
        "status": "alive",
        "timestamp": datetime.now().isoformat()
    }), 200
