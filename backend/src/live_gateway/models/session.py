import asyncio
import enum
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from ..utilities import (
    UserInputError,
    make_error,
    make_live_message,
    make_no_data,
    validate_topic,
)
from .cache import TopicCache
from .registry import SubscriptionRegistry

log = logging.getLogger(__name__)

Sender = Callable[[dict], Awaitable[None]]


class LoopState(enum.Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


class DeliveryLoop:
    '''
    Periodic timer for one (client, topic) pair.

    Each tick reads the cache and pushes either a liveMessage or a noData
    frame into the owning session's outbound queue. cancel() is the only
    way to stop it and STOPPED is terminal.
    '''

    def __init__(self, session: "ClientSession", topic: str, interval: float):
        self.session = session
        self.topic = topic
        self.interval = interval
        self.state = LoopState.ACTIVE
        self.ticks = 0
        self._task: Optional[asyncio.Task] = asyncio.create_task(self._run())

    @property
    def active(self) -> bool:
        return self.state is LoopState.ACTIVE

    async def _run(self):
        try:
            while self.active:
                await asyncio.sleep(self.interval)
                if not self.active:
                    break
                self.tick()
        except asyncio.CancelledError:
            pass

    def tick(self):
        cached = self.session.cache.get(self.topic)
        self.ticks += 1
        if cached is None:
            self.session.emit(make_no_data(self.topic))
            return
        stale_after = self.session.stale_after
        stale = stale_after > 0 and cached.age() > stale_after
        self.session.emit(make_live_message(self.topic, cached.payload, cached.received_at, stale))

    def cancel(self):
        if not self.active:
            return
        self.state = LoopState.STOPPED
        if self._task is not None:
            self._task.cancel()
            self._task = None


class ClientSession:
    '''
    One live client connection.

    Owns its delivery loops and a bounded outbound queue that a single
    sender task drains to the socket. A producer (tick) never waits on a
    slow client: when the queue is full the oldest frame is dropped.
    '''

    def __init__(self, client_id: str, send: Sender, cache: TopicCache,
                 registry: SubscriptionRegistry, interval: float = 0.1,
                 queue_size: int = 50, stale_after: float = 0.0,
                 on_close: Optional[Callable[["ClientSession"], None]] = None):
        self.client_id = client_id
        self.cache = cache
        self.registry = registry
        self.interval = interval
        self.stale_after = stale_after
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.loops: Dict[str, DeliveryLoop] = {}
        self.closed = False
        self.dropped = 0
        self._send = send
        self._on_close = on_close
        self.sender_task: Optional[asyncio.Task] = None

    def start(self):
        self.sender_task = asyncio.create_task(self._sender_loop())
        return self

    async def _sender_loop(self):
        try:
            while not self.closed:
                item = await self.queue.get()
                try:
                    await self._send(item)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    # broken pipe / closed socket -> stop everything this client owns
                    log.info("Send to %s failed (%s); closing session", self.client_id, exc)
                    break
        except asyncio.CancelledError:
            pass
        finally:
            if not self.closed:
                self.close()

    def emit(self, frame: dict):
        if self.closed:
            return
        if self.queue.full():
            try:
                self.queue.get_nowait()
                self.dropped += 1
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(frame)

    # ---------- client actions ----------
    def subscribe(self, topic) -> bool:
        try:
            topic = validate_topic(topic)
        except UserInputError as exc:
            self.emit(make_error(str(exc)))
            return False
        if self.closed:
            return False
        if topic in self.loops:
            # one loop per (client, topic); never a second reference
            log.debug("%s already subscribed to %s", self.client_id, topic)
            return False
        try:
            self.registry.add_subscriber(topic)
        except UserInputError as exc:
            # rejected by the broker client; registry already rolled back
            self.emit(make_error(str(exc), topic))
            return False
        self.loops[topic] = DeliveryLoop(self, topic, self.interval)
        log.info("%s subscribed to %s", self.client_id, topic)
        return True

    def unsubscribe(self, topic: Optional[str] = None) -> List[str]:
        """Stop delivery for topic, or for every topic when none is given."""
        if topic:
            targets = [topic] if topic in self.loops else []
        else:
            targets = list(self.loops)
        for t in targets:
            self._stop_loop(t)
            log.info("%s unsubscribed from %s", self.client_id, t)
        return targets

    def close(self):
        """Cancel every owned loop and release each topic exactly once."""
        if self.closed:
            return
        self.closed = True
        for t in list(self.loops):
            self._stop_loop(t)
        task = self.sender_task
        if task is not None and task is not _current_task():
            task.cancel()
        if self._on_close is not None:
            self._on_close(self)
        log.info("Session %s closed", self.client_id)

    async def aclose(self):
        self.close()
        task = self.sender_task
        if task is not None and task is not _current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ---------- helpers ----------
    def _stop_loop(self, topic: str):
        loop = self.loops.pop(topic, None)
        if loop is None:
            return
        loop.cancel()
        self.registry.remove_subscriber(topic)

    @property
    def topics(self) -> List[str]:
        return list(self.loops)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
