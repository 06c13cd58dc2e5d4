import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

from .broker import BrokerConnection, BrokerIngestAdapter, PahoConnection
from .models import ClientSession, SubscriptionRegistry, TopicCache
from .store import SubscribedTopicStore
from .utilities import constants, validate_topic

log = logging.getLogger(__name__)


class Gateway:
    '''
    Process-wide shared state: cache, adapter, registry, persisted topics
    and the live client sessions. Built once and handed to the app.
    '''

    def __init__(self, connection: Optional[BrokerConnection] = None,
                 store: Optional[SubscribedTopicStore] = None,
                 interval: Optional[float] = None,
                 queue_size: Optional[int] = None,
                 stale_after: Optional[float] = None,
                 strict: Optional[bool] = None):
        if connection is None:
            connection = PahoConnection(
                constants.MQTT_HOST, constants.MQTT_PORT,
                client_id=constants.MQTT_CLIENT_ID,
                username=constants.MQTT_USERNAME,
                password=constants.MQTT_PASSWORD,
                keepalive=constants.MQTT_KEEPALIVE,
            )
        self.store = store if store is not None else SubscribedTopicStore(constants.TOPIC_STORE_PATH)
        self.interval = interval if interval is not None else constants.DELIVERY_INTERVAL_MS / 1000.0
        self.queue_size = queue_size if queue_size is not None else constants.SESSION_QUEUE_SIZE
        self.stale_after = stale_after if stale_after is not None else constants.STALE_AFTER_SECONDS
        strict = constants.GATEWAY_DEBUG if strict is None else strict

        self.cache = TopicCache()
        self.adapter = BrokerIngestAdapter(connection, self.cache)
        self.registry = SubscriptionRegistry(self.adapter, strict=strict)
        self.sessions: Dict[str, ClientSession] = {}
        self.started_at: Optional[datetime] = None

    # ---------- lifecycle ----------
    def start(self):
        """Must be called from inside the running event loop."""
        self.started_at = datetime.now(timezone.utc)
        self.adapter.start()
        topics = [item["topic"] for item in self.store.list_all()]
        self.registry.seed(topics)

    async def stop(self):
        for session in list(self.sessions.values()):
            await session.aclose()
        self.adapter.stop()
        log.info("Gateway stopped")

    # ---------- sessions ----------
    def open_session(self, send, client_id: Optional[str] = None) -> ClientSession:
        client_id = client_id or uuid.uuid4().hex
        session = ClientSession(
            client_id, send, self.cache, self.registry,
            interval=self.interval, queue_size=self.queue_size,
            stale_after=self.stale_after, on_close=self._forget,
        )
        self.sessions[client_id] = session
        return session.start()

    def _forget(self, session: ClientSession):
        self.sessions.pop(session.client_id, None)

    # ---------- persisted topics ----------
    def persist_topic(self, topic: str) -> bool:
        """Raises UserInputError for a topic filter the broker would reject."""
        validate_topic(topic)
        if not self.store.add(topic):
            return False
        self.registry.seed([topic])
        return True

    def forget_topic(self, topic: str) -> bool:
        if not self.store.remove(topic):
            return False
        self.registry.release_sticky(topic)
        return True

    # ---------- stats ----------
    def health(self) -> dict:
        uptime = 0
        if self.started_at is not None:
            uptime = int((datetime.now(timezone.utc) - self.started_at).total_seconds())
        return {
            "uptime_sec": uptime,
            "broker_connected": self.adapter.connected,
            "sessions": len(self.sessions),
            "topics": len(self.registry.topics()),
        }

    def stats(self) -> dict:
        now = time.time()
        out = {}
        for topic, ref in self.registry.snapshot().items():
            cached = self.cache.get(topic)
            out[topic] = {
                **ref,
                "cached": cached is not None,
                "age_sec": round(cached.age(now), 3) if cached else None,
                "pending": self.adapter.pending.get(topic),
            }
        return {"topics": out, "messages_in": self.adapter.messages_in}
