import json
import logging
import os
from typing import List, Optional

log = logging.getLogger(__name__)


class SubscribedTopicStore:
    '''
    Persisted list of topics the gateway subscribes to at startup.

    Backed by a small JSON file: {"topics": [{"topic": "..."}, ...]}.
    With no path the list lives in memory only.
    '''

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._topics: List[str] = self._load()

    def _load(self) -> List[str]:
        if not self.path or not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            log.error("Could not read topic store %s: %s", self.path, exc)
            return []
        topics = []
        for item in data.get("topics", []):
            topic = item.get("topic") if isinstance(item, dict) else None
            if topic and topic not in topics:
                topics.append(topic)
        return topics

    def _save(self):
        if not self.path:
            return
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump({"topics": [{"topic": t} for t in self._topics]}, fh, indent=2)
        os.replace(tmp, self.path)

    def list_all(self) -> List[dict]:
        return [{"topic": t} for t in self._topics]

    def add(self, topic: str) -> bool:
        if topic in self._topics:
            return False
        self._topics.append(topic)
        self._save()
        return True

    def remove(self, topic: str) -> bool:
        if topic not in self._topics:
            return False
        self._topics.remove(topic)
        self._save()
        return True

    def __contains__(self, topic: str) -> bool:
        return topic in self._topics

    def __len__(self) -> int:
        return len(self._topics)
