import base64
import json
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import UserInputError

NO_DATA_MESSAGE = "No live message available"
TOPIC_REQUIRED_MESSAGE = "Topic is required"
MAX_TOPIC_BYTES = 65535

def iso_from_epoch(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).isoformat()

# Server -> client frames are built as dicts: {"event": name, "data": {...}}
def make_frame(event: str, data: dict):
    return {"event": event, "data": data}

def make_live_message(topic: str, message: Any, received_at: float, stale: bool = False):
    return make_frame("liveMessage", {
        "success": True,
        "message": message,
        "topic": topic,
        "receivedAt": iso_from_epoch(received_at),
        "stale": stale,
    })

def make_no_data(topic: str):
    return make_frame("noData", {"success": False, "message": NO_DATA_MESSAGE, "topic": topic})

def make_error(message: str, topic: Optional[str] = None):
    data = {"success": False, "message": message}
    if topic is not None:
        data["topic"] = topic
    return make_frame("error", data)

def decode_payload(raw) -> Any:
    """
    Turn a raw broker payload into something JSON-serialisable.

    JSON text is parsed, other UTF-8 text is kept as a string and
    anything else is base64 encoded.
    """
    if isinstance(raw, str):
        text = raw
    else:
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(bytes(raw)).decode("ascii")
    try:
        return json.loads(text)
    except ValueError:
        return text

def encode_payload(message: Any) -> str:
    if isinstance(message, str):
        return message
    return json.dumps(message, separators=(",", ":"))

def validate_topic(topic) -> str:
    """Check a client supplied topic filter the way the broker client would. Raises UserInputError."""
    if not isinstance(topic, str) or not topic.strip():
        raise UserInputError(TOPIC_REQUIRED_MESSAGE)
    if "\x00" in topic or len(topic.encode("utf-8")) > MAX_TOPIC_BYTES:
        raise UserInputError(f"Invalid topic: {topic!r}")
    levels = topic.split("/")
    for i, level in enumerate(levels):
        if "#" in level and (level != "#" or i != len(levels) - 1):
            raise UserInputError(f"Invalid topic filter: {topic!r} ('#' must be the last level)")
        if "+" in level and level != "+":
            raise UserInputError(f"Invalid topic filter: {topic!r} ('+' must occupy a whole level)")
    return topic
