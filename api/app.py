#!/usr/bin/env python3
# api/app.py - Flask API + MQTT bridge around the Modbus I/O daemon

import logging

from flask import Flask, jsonify

from api.health_routes import health_api
from api.io_routes import io_api
from config import Config
from modbus_io.daemon import ModbusIODaemon
from modbus_io.mqtt_bridge import MQTTBridge

logger = logging.getLogger(__name__)


def create_app(daemon, bridge=None):
    """
    Build the Flask app around a (possibly not yet started) daemon.

    Args:
        daemon: ModbusIODaemon serving snapshots and commands
        bridge: Optional MQTTBridge, reported in detailed health
    """
    app = Flask(__name__)
    app.config['MODBUS_IO_DAEMON'] = daemon
    app.config['MQTT_BRIDGE'] = bridge

    app.register_blueprint(io_api)
    app.register_blueprint(health_api)

    @app.get("/api/status")
    def status():
        mqtt_status = "connected" if (bridge and bridge.mqtt_connected) else "disconnected"
        return jsonify({
            "status": "ok",
            "message": "modbus_io API online",
            "device": f"{daemon.settings.address}:{daemon.settings.port}",
            "mqtt": mqtt_status
        })

    return app


def main():
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    Config.print_config()

    settings = Config.device_settings()

    bridge = MQTTBridge(Config.MQTT_CONFIG, topic_prefix=Config.MQTT_CONFIG['topic_prefix'])
    daemon = ModbusIODaemon(settings, publish=bridge.publish_snapshot)
    bridge.commands = daemon.commands

    if bridge.start():
        logger.info("✅ MQTT bridge started")
    else:
        logger.warning("⚠️ Running without MQTT (HTTP only)")

    daemon.start()

    app = create_app(daemon, bridge)
    try:
        app.run(
            host=Config.FLASK_HOST,
            port=Config.FLASK_PORT,
            debug=Config.FLASK_DEBUG,
            use_reloader=False
        )
    finally:
        daemon.stop(timeout=5)
        bridge.stop()


if __name__ == '__main__':
    main()
