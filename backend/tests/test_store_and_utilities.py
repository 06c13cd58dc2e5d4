import json

import pytest

from live_gateway.store import SubscribedTopicStore
from live_gateway.utilities import (
    UserInputError,
    decode_payload,
    make_live_message,
    make_no_data,
    validate_topic,
)


def test_store_round_trips_through_file(tmp_path):
    path = str(tmp_path / "topics.json")
    store = SubscribedTopicStore(path)
    assert store.add("a") is True
    assert store.add("a") is False
    assert store.add("b") is True
    assert store.remove("a") is True
    assert store.remove("a") is False

    reloaded = SubscribedTopicStore(path)
    assert reloaded.list_all() == [{"topic": "b"}]
    assert "b" in reloaded


def test_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "topics.json"
    path.write_text("{not json")
    assert SubscribedTopicStore(str(path)).list_all() == []


def test_store_skips_malformed_entries(tmp_path):
    path = tmp_path / "topics.json"
    path.write_text(json.dumps({"topics": [{"topic": "a"}, {}, "b", {"topic": "a"}]}))
    assert SubscribedTopicStore(str(path)).list_all() == [{"topic": "a"}]


def test_decode_payload():
    assert decode_payload(b'{"temp": 21}') == {"temp": 21}
    assert decode_payload(b"on") == "on"
    assert decode_payload(b"\xff\xfe") == "//4="


def test_frames():
    assert make_no_data("t") == {
        "event": "noData",
        "data": {"success": False, "message": "No live message available", "topic": "t"},
    }
    live = make_live_message("t", {"v": 1}, 0.0)
    assert live["event"] == "liveMessage"
    assert live["data"]["receivedAt"].startswith("1970-01-01T00:00:00")
    assert live["data"]["stale"] is False


@pytest.mark.parametrize("topic", ["sensor/1", "sensors/#", "#", "+/temp", "a/+/b/#", "/leading"])
def test_validate_topic_accepts_filters(topic):
    assert validate_topic(topic) == topic


@pytest.mark.parametrize("topic", ["", "  ", None, 5, "a/#/b", "a#", "a/b+", "+a/b", "bad\x00topic"])
def test_validate_topic_rejects_filters(topic):
    with pytest.raises(UserInputError):
        validate_topic(topic)
