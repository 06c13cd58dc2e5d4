import asyncio
import time

import pytest

from live_gateway.broker import BrokerConnection
from live_gateway.store import SubscribedTopicStore
from live_gateway.runtime import Gateway
from live_gateway.utilities import BrokerTransientError, UserInputError


class FakeConnection(BrokerConnection):
    """In-memory broker connection. deliver() plays the role of the network thread."""

    def __init__(self, connected: bool = True):
        self._connected = connected
        self.callbacks = {}
        self.calls = []
        self.published = []
        self.listeners = []
        self.fail_topics = set()
        # filters the client library refuses outright
        self.reject_topics = set()
        self.started = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def active(self):
        return set(self.callbacks)

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def add_connect_listener(self, callback):
        self.listeners.append(callback)

    def subscribe(self, topic, on_message):
        self.calls.append(("subscribe", topic))
        if topic in self.reject_topics:
            raise UserInputError(f"Invalid topic filter: {topic!r}")
        if not self._connected or topic in self.fail_topics:
            raise BrokerTransientError("broker not connected", topic)
        self.callbacks[topic] = on_message

    def unsubscribe(self, topic):
        self.calls.append(("unsubscribe", topic))
        if not self._connected:
            raise BrokerTransientError("broker not connected", topic)
        self.callbacks.pop(topic, None)

    def publish(self, topic, payload, retain=False):
        if not self._connected:
            raise BrokerTransientError("broker not connected", topic)
        self.published.append((topic, payload, retain))

    def deliver(self, topic, payload):
        self.callbacks[topic](topic, payload)

    def go_down(self):
        self._connected = False
        # a clean session forgets every subscription
        self.callbacks.clear()

    def come_up(self):
        self._connected = True
        for cb in self.listeners:
            cb()

    def count(self, action, topic):
        return self.calls.count((action, topic))


def run(coro):
    return asyncio.run(coro)


def wait_until(predicate, timeout: float = 2.0, step: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step)
    return predicate()


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def gateway(conn) -> Gateway:
    return Gateway(connection=conn, store=SubscribedTopicStore(), interval=0.01,
                   queue_size=50, strict=True)
