#!/usr/bin/env python3
# modbus_io/mqtt_bridge.py
# MQTT transport: publish I/O snapshots, serve write commands

import json
import logging
import threading
import time
from datetime import datetime
from typing import Dict, Optional

import paho.mqtt.client as mqtt

from modbus_io.commands import CommandHandler, parse_value

logger = logging.getLogger(__name__)

TOPIC_SNAPSHOT = "input_output"
TOPIC_WRITE_OUTPUT = "write_digital_output"
TOPIC_WRITE_INPUT = "write_digital_input"


class MQTTBridge:
    """
    Publishes decoded I/O and accepts write commands over MQTT.

    Topics (under ``topic_prefix``):
    - input_output                   <- snapshot every poll cycle
    - write_digital_output           -> {"output": 3, "value": true}
    - write_digital_input            -> same payload, simulation boards only
    - <command topic>/response       <- {"success": true}
    """

    def __init__(
        self,
        mqtt_config: Dict,
        commands: Optional[CommandHandler] = None,
        topic_prefix: str = "modbus_io",
        client_factory=mqtt.Client,
    ):
        self.mqtt_config = mqtt_config
        self.commands = commands
        self.topic_prefix = topic_prefix.rstrip("/")
        self.client_factory = client_factory
        self.mqtt_client = None
        self.mqtt_connected = False
        self.published = 0
        self._lock = threading.RLock()

    def topic(self, name: str) -> str:
        return f"{self.topic_prefix}/{name}"

    # ================================
    # MQTT Connection
    # ================================
    def start(self) -> bool:
        """Connect to the broker and start the network loop"""
        if not self.mqtt_config.get("enabled", True):
            logger.warning("MQTT disabled in configuration")
            return False

        client_id = f"{self.mqtt_config.get('client_id', 'modbus-io')}-bridge"
        self.mqtt_client = self.client_factory(
            mqtt.CallbackAPIVersion.VERSION2, client_id=client_id
        )
        self.mqtt_client.on_connect = self._on_mqtt_connect
        self.mqtt_client.on_disconnect = self._on_mqtt_disconnect
        self.mqtt_client.on_message = self._on_mqtt_message

        username = self.mqtt_config.get("username", "")
        password = self.mqtt_config.get("password", "")
        if username and password:
            self.mqtt_client.username_pw_set(username, password)
            logger.info(f"🔐 Using MQTT authentication (user: {username})")

        if self.mqtt_config.get("use_tls", False):
            self.mqtt_client.tls_set()
            logger.info("🔒 MQTT TLS/SSL enabled")

        broker = self.mqtt_config.get("broker", "localhost")
        port = self.mqtt_config.get("port", 1883)
        keepalive = self.mqtt_config.get("keepalive", 60)

        logger.info(f"🔌 Connecting to MQTT broker {broker}:{port}...")
        try:
            self.mqtt_client.connect(broker, port, keepalive)
        except OSError as e:
            logger.error(f"MQTT initialization failed: {e}")
            self.mqtt_client = None
            return False

        self.mqtt_client.loop_start()
        return True

    def stop(self):
        if self.mqtt_client:
            self.mqtt_client.loop_stop()
            self.mqtt_client.disconnect()
            self.mqtt_client = None
        self.mqtt_connected = False
        logger.info("MQTT bridge stopped")

    def _on_mqtt_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"MQTT connection failed ({reason_code})")
            self.mqtt_connected = False
            return

        self.mqtt_connected = True
        logger.info("✅ Connected to MQTT broker")

        qos = self.mqtt_config.get("qos", 1)
        for name in (TOPIC_WRITE_OUTPUT, TOPIC_WRITE_INPUT):
            client.subscribe(self.topic(name), qos=qos)
            logger.info(f"📡 Subscribed to {self.topic(name)}")

    def _on_mqtt_disconnect(self, client, userdata, flags, reason_code, properties):
        self.mqtt_connected = False
        if reason_code.is_failure:
            logger.warning(f"MQTT disconnected unexpectedly ({reason_code})")

    # ================================
    # Snapshots
    # ================================
    def publish_snapshot(self, snapshot: Dict):
        """Publish callback for the poll cycle"""
        if not self.mqtt_client or not self.mqtt_connected:
            return

        payload = dict(snapshot)
        payload["timestamp"] = datetime.now().isoformat()
        self.mqtt_client.publish(
            self.topic(TOPIC_SNAPSHOT),
            json.dumps(payload),
            qos=0,
            retain=False,
        )
        with self._lock:
            self.published += 1

    # ================================
    # Commands
    # ================================
    def _on_mqtt_message(self, client, userdata, msg):
        response = self.handle_command(msg.topic, msg.payload)
        client.publish(
            f"{msg.topic}/response",
            json.dumps(response),
            qos=self.mqtt_config.get("qos", 1),
        )

    def handle_command(self, topic: str, payload: bytes) -> Dict:
        """
        Dispatch one command message.

        Returns:
            {"success": bool}
        """
        try:
            request = json.loads(payload)
            channel = int(request["output"])
            value = parse_value(request["value"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Invalid command on {topic}: {e}")
            return {"success": False}

        if self.commands is None:
            logger.warning(f"No command handler for {topic}")
            return {"success": False}

        start = time.monotonic()
        if topic == self.topic(TOPIC_WRITE_OUTPUT):
            ok = self.commands.set_digital_output(channel, value)
        elif topic == self.topic(TOPIC_WRITE_INPUT):
            ok = self.commands.set_digital_input(channel, value)
        else:
            logger.warning(f"Unknown command topic: {topic}")
            return {"success": False}

        logger.debug(f"{topic} handled in {1000 * (time.monotonic() - start):.1f} ms")
        return {"success": ok}

    def get_status(self) -> Dict:
        with self._lock:
            return {
                "mqtt_connected": self.mqtt_connected,
                "snapshots_published": self.published,
                "topic_prefix": self.topic_prefix,
            }
