"""WebSocket gateway streaming the latest MQTT message per topic to browser clients."""

__version__ = "0.1.0"
