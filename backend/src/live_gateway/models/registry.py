import logging
from typing import Dict, Iterable, List, Set

from ..utilities import InvariantViolation, UserInputError

log = logging.getLogger(__name__)


class SubscriptionRegistry:
    '''
    Reference counts client interest per topic so the broker sees at most
    one subscription per topic.

    Every method is synchronous: on the event loop a read-modify-write of a
    count can never interleave with another one.
    '''

    def __init__(self, adapter, strict: bool = False):
        self.adapter = adapter
        # strict: raise on underflow instead of clamping (debug builds)
        self.strict = strict
        self._counts: Dict[str, int] = {}
        # topics subscribed at startup, exempt from counting until a client touches them
        self._sticky: Set[str] = set()

    def seed(self, topics: Iterable[str]) -> List[str]:
        """Subscribe persisted topics once at startup. Returns the topics that were seeded."""
        seeded = []
        for topic in topics:
            if not topic or topic in self._sticky or topic in self._counts:
                continue
            try:
                self.adapter.subscribe(topic)
            except UserInputError as exc:
                log.error("Skipping persisted topic %s: %s", topic, exc)
                continue
            except Exception:
                # one bad topic must not abort the rest
                log.exception("Startup subscription failed for %s", topic)
                continue
            self._sticky.add(topic)
            seeded.append(topic)
        log.info("Seeded %d persisted topic(s)", len(seeded))
        return seeded

    def add_subscriber(self, topic: str) -> None:
        count = self._counts.get(topic, 0)
        self._counts[topic] = count + 1
        if count > 0:
            return
        if topic in self._sticky:
            # broker is already subscribed; from now on normal counting applies
            self._sticky.discard(topic)
            log.debug("Sticky topic %s taken over by a client", topic)
            return
        try:
            self.adapter.subscribe(topic)
        except Exception:
            # the broker never took the subscription; undo the 0->1 step
            del self._counts[topic]
            raise

    def remove_subscriber(self, topic: str) -> None:
        count = self._counts.get(topic, 0)
        if count <= 0:
            msg = f"reference count underflow for topic {topic!r}"
            if self.strict:
                raise InvariantViolation(msg)
            log.error("%s; clamping to zero", msg)
            return
        if count > 1:
            self._counts[topic] = count - 1
            return
        del self._counts[topic]
        self.adapter.unsubscribe(topic)

    def release_sticky(self, topic: str) -> bool:
        """Drop a startup subscription nobody is using. Returns True if the broker was unsubscribed."""
        if topic not in self._sticky:
            return False
        self._sticky.discard(topic)
        if self._counts.get(topic, 0) == 0:
            self.adapter.unsubscribe(topic)
            return True
        return False

    def count(self, topic: str) -> int:
        return self._counts.get(topic, 0)

    def is_sticky(self, topic: str) -> bool:
        return topic in self._sticky

    def is_broker_active(self, topic: str) -> bool:
        return self._counts.get(topic, 0) > 0 or topic in self._sticky

    def topics(self) -> List[str]:
        return sorted(set(self._counts) | self._sticky)

    def snapshot(self) -> Dict[str, dict]:
        return {t: {"subscribers": self.count(t), "sticky": self.is_sticky(t)} for t in self.topics()}
