"""End-to-end tests for the /ws endpoint through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import wait_until
from live_gateway.main import create_app


@pytest.fixture
def client(gateway):
    with TestClient(create_app(gateway)) as c:
        yield c


def _receive_until(ws, event, limit=100):
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame
    raise AssertionError(f"no {event} frame received")


def test_subscribe_receives_no_data_then_live_message(client, gateway, conn):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "subscribeToTopic", "data": "sensor/1"})
        first = ws.receive_json()
        assert first["event"] == "noData"
        assert first["data"]["message"] == "No live message available"

        conn.deliver("sensor/1", b'{"temp": 21}')
        live = _receive_until(ws, "liveMessage")
        assert live["data"]["success"] is True
        assert live["data"]["message"] == {"temp": 21}
        assert live["data"]["topic"] == "sensor/1"

    assert wait_until(lambda: gateway.registry.count("sensor/1") == 0)
    assert wait_until(lambda: "sensor/1" not in conn.active)
    assert wait_until(lambda: gateway.sessions == {})


def test_empty_topic_yields_error(client, gateway, conn):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "subscribeToTopic", "data": ""})
        frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"success": False, "message": "Topic is required"}}
        assert gateway.registry.topics() == []
        assert conn.calls == []


def test_topic_field_is_accepted(client, gateway):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "subscribeToTopic", "topic": "sensor/2"})
        assert ws.receive_json()["event"] == "noData"
        assert gateway.registry.count("sensor/2") == 1


def test_unsubscribe_releases_topic(client, gateway, conn):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "subscribeToTopic", "data": "sensor/1"})
        ws.receive_json()
        ws.send_json({"event": "unsubscribeFromTopic"})
        assert wait_until(lambda: gateway.registry.count("sensor/1") == 0)
        assert "sensor/1" not in conn.active


def test_bad_frames_report_errors_and_keep_connection(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["data"]["message"] == "invalid json"
        ws.send_json({"data": "x"})
        assert ws.receive_json()["event"] == "error"
        ws.send_json({"event": "shout"})
        assert ws.receive_json()["data"]["message"] == "unknown event: shout"

        ws.send_json({"event": "subscribeToTopic", "data": "still/alive"})
        assert ws.receive_json()["event"] == "noData"


def test_explicit_disconnect_closes_socket(client, gateway, conn):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "subscribeToTopic", "data": "A"})
        ws.send_json({"event": "subscribeToTopic", "data": "B"})
        ws.send_json({"event": "disconnect"})
        with pytest.raises(WebSocketDisconnect):
            for _ in range(100):
                ws.receive_json()

    assert wait_until(lambda: gateway.sessions == {})
    assert gateway.registry.topics() == []
    assert conn.active == set()


def test_health_reports_sessions(client, gateway):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "subscribeToTopic", "data": "sensor/1"})
        ws.receive_json()
        body = client.get("/health").json()
        assert body["sessions"] == 1
        assert body["topics"] == 1
        assert body["broker_connected"] is True


def test_malformed_filter_yields_error_and_keeps_connection(client, gateway, conn):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "subscribeToTopic", "data": "a/#/b"})
        frame = ws.receive_json()
        assert frame["event"] == "error"
        assert "Invalid topic filter" in frame["data"]["message"]
        assert gateway.registry.count("a/#/b") == 0
        assert conn.calls == []

        ws.send_json({"event": "subscribeToTopic", "data": "sensor/1"})
        assert ws.receive_json()["event"] == "noData"

    assert wait_until(lambda: gateway.registry.topics() == [])
