import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class CachedMessage:
    topic: str
    payload: Any
    received_at: float

    def age(self, now: Optional[float] = None) -> float:
        return (time.time() if now is None else now) - self.received_at


class TopicCache:
    '''Latest payload per topic. Last write wins, no history is kept.'''

    def __init__(self):
        self._entries: Dict[str, CachedMessage] = {}

    # written only from the event loop (see BrokerIngestAdapter)
    def put(self, topic: str, payload: Any, received_at: Optional[float] = None) -> None:
        ts = time.time() if received_at is None else received_at
        self._entries[topic] = CachedMessage(topic, payload, ts)

    def get(self, topic: str) -> Optional[CachedMessage]:
        return self._entries.get(topic)

    def discard(self, topic: str) -> None:
        self._entries.pop(topic, None)

    def topics(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, topic: str) -> bool:
        return topic in self._entries

    def __len__(self) -> int:
        return len(self._entries)
