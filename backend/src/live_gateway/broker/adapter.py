import asyncio
import logging
from functools import partial
from typing import Dict, List, Optional, Set

from ..models.cache import TopicCache
from ..utilities import BrokerTransientError, UserInputError, decode_payload, encode_payload
from .connection import BrokerConnection

log = logging.getLogger(__name__)

SUBSCRIBE = "subscribe"
UNSUBSCRIBE = "unsubscribe"


class BrokerIngestAdapter:
    '''
    Keeps broker-level subscriptions in line with what the registry asks
    for and writes arriving payloads into the cache.

    Broker callbacks arrive on the connection's network thread; they are
    handed to the event loop with call_soon_threadsafe so the cache only
    ever has one writer.
    '''

    def __init__(self, connection: BrokerConnection, cache: TopicCache,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.connection = connection
        self.cache = cache
        self._loop = loop
        # topics the broker should currently be subscribed to
        self._subscribed: Set[str] = set()
        # topic -> action still owed to the broker
        self._pending: Dict[str, str] = {}
        self.messages_in = 0
        self.connection.add_connect_listener(self._on_connect_threadsafe)

    def start(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self.connection.start()

    def stop(self):
        self.connection.stop()

    @property
    def connected(self) -> bool:
        return self.connection.connected

    @property
    def pending(self) -> Dict[str, str]:
        return dict(self._pending)

    @property
    def subscribed(self) -> List[str]:
        return sorted(self._subscribed)

    # ---------- registry-facing ----------
    def subscribe(self, topic: str) -> None:
        """Raises UserInputError when the broker client rejects the topic filter."""
        self._subscribed.add(topic)
        self._pending.pop(topic, None)
        self._try(SUBSCRIBE, topic)

    def unsubscribe(self, topic: str) -> None:
        self._subscribed.discard(topic)
        self._pending.pop(topic, None)
        self.cache.discard(topic)
        self._try_isolated(UNSUBSCRIBE, topic)

    def publish(self, topic: str, message, retain: bool = False) -> None:
        """Raises BrokerTransientError when the broker is unreachable."""
        self.connection.publish(topic, encode_payload(message), retain=retain)

    def resync(self) -> None:
        """Replay owed actions and re-establish every wanted subscription after a (re)connect."""
        pending, self._pending = self._pending, {}
        for topic, action in pending.items():
            if action == UNSUBSCRIBE:
                self._try_isolated(UNSUBSCRIBE, topic)
        for topic in sorted(self._subscribed):
            self._try_isolated(SUBSCRIBE, topic)
        if self._pending:
            log.warning("%d broker action(s) still pending after resync", len(self._pending))

    # ---------- internals ----------
    def _try(self, action: str, topic: str) -> bool:
        try:
            if action == SUBSCRIBE:
                self.connection.subscribe(topic, partial(self._on_message, topic))
            else:
                self.connection.unsubscribe(topic)
        except BrokerTransientError as exc:
            log.warning("Broker %s for %s deferred: %s", action, topic, exc)
            self._pending[topic] = action
            return False
        except UserInputError:
            # never valid, so never retried
            self._subscribed.discard(topic)
            self._pending.pop(topic, None)
            raise
        log.info("Broker %s: %s", action, topic)
        return True

    def _try_isolated(self, action: str, topic: str) -> bool:
        try:
            return self._try(action, topic)
        except UserInputError as exc:
            log.error("Broker %s for %s rejected; dropping it: %s", action, topic, exc)
            return False

    def _on_connect_threadsafe(self):
        self._call_in_loop(self.resync)

    def _on_message(self, topic: str, _message_topic: str, payload):
        self._call_in_loop(self._ingest, topic, payload)

    def _call_in_loop(self, fn, *args):
        loop = self._loop
        if loop is None or loop.is_closed():
            log.debug("No event loop bound; dropping broker callback")
            return
        try:
            loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # loop shutting down
            pass

    def _ingest(self, topic: str, payload):
        if topic not in self._subscribed:
            # late delivery after unsubscribe
            return
        self.messages_in += 1
        self.cache.put(topic, decode_payload(payload))
