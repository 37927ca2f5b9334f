#!/usr/bin/env python3
# config.py - Centralized Configuration Management
# Place in project root directory

import os
from pathlib import Path

from dotenv import load_dotenv

from modbus_io.settings import DeviceSettings

# Load .env file
env_path = Path(__file__).parent / '.env'
if not env_path.exists():
    env_path = Path(os.getenv('MODBUS_IO_ENV_FILE', '/etc/modbus_io/.env'))

load_dotenv(dotenv_path=env_path)


def _env_bool(name, default):
    return os.getenv(name, str(default)).lower() in ('1', 'true', 'yes')


class Config:
    """Centralized configuration from environment / .env"""

    # ============================================
    # Server Configuration
    # ============================================
    FLASK_HOST = os.getenv('FLASK_HOST', '0.0.0.0')
    FLASK_PORT = int(os.getenv('FLASK_PORT', '5000'))
    FLASK_DEBUG = _env_bool('FLASK_DEBUG', False)

    # ============================================
    # Modbus I/O Board
    # ============================================
    MODBUS_IO = {
        'address': os.getenv('MODBUS_IO_ADDRESS', '127.0.0.1'),
        'port': int(os.getenv('MODBUS_IO_PORT', '502')),
        'unit_id': int(os.getenv('MODBUS_IO_UNIT_ID', '1')),
        'digital_inputs': int(os.getenv('MODBUS_IO_DIGITAL_INPUTS', '8')),
        'digital_outputs': int(os.getenv('MODBUS_IO_DIGITAL_OUTPUTS', '8')),
        'digital_inputs_addr': int(os.getenv('MODBUS_IO_DIGITAL_INPUTS_ADDR', '0')),
        'digital_outputs_addr': int(os.getenv('MODBUS_IO_DIGITAL_OUTPUTS_ADDR', '100')),
        'big_endian': _env_bool('MODBUS_IO_BIG_ENDIAN', False),
        'poll_frequency': float(os.getenv('MODBUS_IO_POLL_FREQUENCY', '10.0')),
        'reconnect_backoff': float(os.getenv('MODBUS_IO_RECONNECT_BACKOFF', '1.0')),
        'timeout': float(os.getenv('MODBUS_IO_TIMEOUT', '1.0')),
    }

    # ============================================
    # MQTT Configuration
    # ============================================
    MQTT_CONFIG = {
        'broker': os.getenv('MQTT_BROKER', 'localhost'),
        'port': int(os.getenv('MQTT_PORT', '1883')),
        'username': os.getenv('MQTT_USERNAME', ''),
        'password': os.getenv('MQTT_PASSWORD', ''),
        'client_id': os.getenv('MQTT_CLIENT_ID', 'modbus-io'),
        'use_tls': _env_bool('MQTT_USE_TLS', False),
        'keepalive': int(os.getenv('MQTT_KEEPALIVE', '60')),
        'qos': int(os.getenv('MQTT_QOS', '1')),
        'enabled': _env_bool('MQTT_ENABLED', True),
        'topic_prefix': os.getenv('MQTT_TOPIC_PREFIX', 'modbus_io'),
    }

    # ============================================
    # Logging
    # ============================================
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    @classmethod
    def device_settings(cls):
        """Build validated device settings (raises ConfigError)"""
        return DeviceSettings(**cls.MODBUS_IO)

    # ============================================
    # Display Configuration
    # ============================================
    @classmethod
    def print_config(cls):
        """Print configuration summary"""
        io = cls.MODBUS_IO
        print("=" * 60)
        print("modbus_io Configuration Summary")
        print("=" * 60)
        print(f"I/O Board:        {io['address']}:{io['port']} (unit {io['unit_id']})")
        print(f"Inputs:           {io['digital_inputs']} @ register {io['digital_inputs_addr']}")
        print(f"Outputs:          {io['digital_outputs']} @ register {io['digital_outputs_addr']}")
        print(f"Big Endian:       {io['big_endian']}")
        print(f"Poll Frequency:   {io['poll_frequency']} Hz")
        print(f"Flask Host:       {cls.FLASK_HOST}:{cls.FLASK_PORT}")
        print(f"MQTT Broker:      {cls.MQTT_CONFIG['broker']}:{cls.MQTT_CONFIG['port']}")
        print(f"MQTT Enabled:     {cls.MQTT_CONFIG['enabled']}")
        print("=" * 60)
