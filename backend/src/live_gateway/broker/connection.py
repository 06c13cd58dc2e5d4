"""
Broker connections.

``PahoConnection`` wraps a paho-mqtt client whose network loop runs in its
own thread (``loop_start``). Every callback registered here is therefore
invoked from that thread; callers hop back onto their event loop themselves.
"""
import logging
import threading
from typing import Callable, List, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.client import CallbackAPIVersion

from ..utilities import BrokerTransientError, UserInputError, validate_topic

log = logging.getLogger(__name__)

MessageCallback = Callable[[str, bytes], None]


class BrokerConnection:
    """Interface the ingest adapter relies on."""

    @property
    def connected(self) -> bool:
        raise NotImplementedError

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def add_connect_listener(self, callback: Callable[[], None]) -> None:
        raise NotImplementedError

    def subscribe(self, topic: str, on_message: MessageCallback) -> None:
        raise NotImplementedError

    def unsubscribe(self, topic: str) -> None:
        raise NotImplementedError

    def publish(self, topic: str, payload, retain: bool = False) -> None:
        raise NotImplementedError


class PahoConnection(BrokerConnection):

    def __init__(self, host: str, port: int = 1883, client_id: str = "",
                 username: Optional[str] = None, password: Optional[str] = None,
                 keepalive: int = 60):
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self._connected = threading.Event()
        self._listeners: List[Callable[[], None]] = []

        self.client = mqtt.Client(CallbackAPIVersion.VERSION2, client_id=client_id,
                                  protocol=mqtt.MQTTv311)
        if username:
            self.client.username_pw_set(username, password)
        self.client.reconnect_delay_set(min_delay=1, max_delay=30)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def start(self) -> None:
        log.info("Connecting to MQTT broker at %s:%d", self.host, self.port)
        # connect_async + loop_start keeps retrying in the background if the broker is down
        self.client.connect_async(self.host, self.port, self.keepalive)
        self.client.loop_start()

    def stop(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
        self._connected.clear()

    def add_connect_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    # ---------- paho callbacks (network thread) ----------
    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            log.error("MQTT broker refused connection: %s", reason_code)
            return
        self._connected.set()
        log.info("Connected to MQTT broker %s:%d", self.host, self.port)
        for cb in list(self._listeners):
            cb()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        self._connected.clear()
        log.error("MQTT broker connection lost: %s", reason_code)

    # ---------- operations ----------
    def subscribe(self, topic: str, on_message: MessageCallback) -> None:
        # reject bad filters before they can be parked as pending
        validate_topic(topic)
        self.client.message_callback_add(topic, lambda c, u, msg: on_message(msg.topic, msg.payload))
        if not self.connected:
            raise BrokerTransientError("broker not connected", topic)
        try:
            rc, _mid = self.client.subscribe(topic, qos=0)
        except ValueError as exc:
            self.client.message_callback_remove(topic)
            raise UserInputError(f"Invalid topic filter: {topic!r} ({exc})")
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise BrokerTransientError(f"subscribe failed: {mqtt.error_string(rc)}", topic)

    def unsubscribe(self, topic: str) -> None:
        self.client.message_callback_remove(topic)
        if not self.connected:
            raise BrokerTransientError("broker not connected", topic)
        try:
            rc, _mid = self.client.unsubscribe(topic)
        except ValueError as exc:
            raise UserInputError(f"Invalid topic filter: {topic!r} ({exc})")
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise BrokerTransientError(f"unsubscribe failed: {mqtt.error_string(rc)}", topic)

    def publish(self, topic: str, payload, retain: bool = False) -> None:
        if not self.connected:
            raise BrokerTransientError("broker not connected", topic)
        info = self.client.publish(topic, payload, qos=0, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise BrokerTransientError(f"publish failed: {mqtt.error_string(info.rc)}", topic)
