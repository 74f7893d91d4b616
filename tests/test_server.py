import pytest
from fastapi.testclient import TestClient

from conftest import flush
from fanout import Subject
from fanout.config import Settings
from server import create_app


@pytest.fixture
def subject():
    s = Subject("api", history_size=5)
    yield s
    s.close()


@pytest.fixture
def client(subject):
    app = create_app(subject=subject, settings=Settings(heartbeat_interval_sec=0))
    return TestClient(app)


def test_health_ok(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    data = r.json()
    assert data["topics"] == 0
    assert data["subscribers"] == 0
    assert "uptime_sec" in data


def test_publish_and_stats(client, subject, make_observer):
    a = make_observer("a")
    subject.subscribe(a, "events")

    r = client.post("/api/v1/publish", json={"topic": "events", "payload": {"n": 1}})
    assert r.status_code == 202
    body = r.json()
    assert body["status"] == "accepted"
    assert body["topic"] == "events"
    flush(a)
    assert a.messages[0].payload == {"n": 1}
    assert a.messages[0].message_id == body["message_id"]

    stats = client.get("/api/v1/stats").json()
    assert stats["topics"] == {"events": {"messages": 1, "subscribers": 1}}
    assert stats["metrics"]["counters"]["published"] == 1

    topics = client.get("/api/v1/topics").json()
    assert topics == {"topics": [{"name": "events", "subscribers": 1}]}


def test_publish_requires_topic(client):
    r = client.post("/api/v1/publish", json={"topic": "  ", "payload": 1})
    assert r.status_code == 400


def test_ws_subscribe_receives_events(client):
    with client.websocket_connect("/api/v1/ws?client_id=c1") as ws:
        ws.send_json({"type": "subscribe", "topic": "x", "request_id": "r1"})
        ack = ws.receive_json()
        assert ack["type"] == "ack"
        assert ack["request_id"] == "r1"
        assert ack["topics"] == ["x"]

        client.post("/api/v1/publish", json={"topic": "x", "payload": 42})
        event = ws.receive_json()
        assert event["type"] == "event"
        assert event["topic"] == "x"
        assert event["message"]["payload"] == 42


def test_ws_duplicate_subscribe_and_unknown_unsubscribe(client):
    with client.websocket_connect("/api/v1/ws") as ws:
        ws.send_json({"type": "subscribe", "topic": "x"})
        assert ws.receive_json()["type"] == "ack"

        ws.send_json({"type": "subscribe", "topic": "x", "request_id": "dup"})
        err = ws.receive_json()
        assert err["type"] == "error"
        assert err["error"]["code"] == "ALREADY_REGISTERED"

        ws.send_json({"type": "unsubscribe", "topic": "y"})
        err = ws.receive_json()
        assert err["error"]["code"] == "NOT_FOUND"

        ws.send_json({"type": "unsubscribe"})
        assert ws.receive_json()["type"] == "ack"


def test_ws_publish_replay_and_ping(client, subject):
    subject.publish("news", "old-1")
    subject.publish("news", "old-2")
    subject.publish("news", "old-3")
    with client.websocket_connect("/api/v1/ws") as ws:
        ws.send_json({"type": "ping", "request_id": "p"})
        pong = ws.receive_json()
        assert pong["type"] == "pong"
        assert pong["request_id"] == "p"

        ws.send_json({"type": "subscribe", "topic": "news", "last_n": 2})
        assert ws.receive_json()["type"] == "ack"
        replay = [ws.receive_json(), ws.receive_json()]
        assert [e["message"]["payload"] for e in replay] == ["old-2", "old-3"]

        ws.send_json({"type": "publish", "topic": "news", "payload": "fresh", "request_id": "pub"})
        got = [ws.receive_json(), ws.receive_json()]
        assert sorted(m["type"] for m in got) == ["ack", "event"]
        event = next(m for m in got if m["type"] == "event")
        assert event["message"]["payload"] == "fresh"


def test_ws_bad_messages(client):
    with client.websocket_connect("/api/v1/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["error"]["code"] == "BAD_REQUEST"

        ws.send_json({"type": "publish"})
        assert ws.receive_json()["error"]["code"] == "BAD_REQUEST"

        ws.send_json({"type": "subscribe", "topics": []})
        assert ws.receive_json()["error"]["code"] == "BAD_REQUEST"

        ws.send_json({"type": "nope"})
        assert ws.receive_json()["error"]["code"] == "BAD_REQUEST"


def test_ws_disconnect_unsubscribes(client, subject):
    with client.websocket_connect("/api/v1/ws?client_id=leaver") as ws:
        ws.send_json({"type": "subscribe", "all": True})
        assert ws.receive_json()["topics"] == ["*"]
    client.get("/api/v1/health")

    assert subject.registry.subscriber_count() == 0


def test_ws_replay_for_all_and_bad_last_n(client, subject):
    subject.publish("a", "a-1")
    subject.publish("b", "b-1")
    subject.publish("a", "a-2")

    with client.websocket_connect("/api/v1/ws") as ws:
        ws.send_json({"type": "subscribe", "all": True, "last_n": -1, "request_id": "neg"})
        error = ws.receive_json()
        assert error["error"]["code"] == "BAD_REQUEST"
        assert subject.registry.subscriber_count() == 0

        ws.send_json({"type": "subscribe", "all": True, "last_n": 1})
        assert ws.receive_json()["type"] == "ack"
        replay = [ws.receive_json(), ws.receive_json()]
        assert [e["message"]["payload"] for e in replay] == ["b-1", "a-2"]


def test_ws_replay_precedes_live_events(client, subject):
    for i in range(3):
        subject.publish("news", i)

    with client.websocket_connect("/api/v1/ws") as ws:
        ws.send_json({"type": "subscribe", "topic": "news", "last_n": 3})
        assert ws.receive_json()["type"] == "ack"
        subject.publish("news", 3)
        payloads = [ws.receive_json()["message"]["payload"] for _ in range(4)]

    assert payloads == [0, 1, 2, 3]


def test_topics_are_trimmed_on_http_and_ws(client, subject):
    with client.websocket_connect("/api/v1/ws") as ws:
        ws.send_json({"type": "subscribe", "topic": " x "})
        assert ws.receive_json()["topics"] == ["x"]

        ws.send_json({"type": "publish", "topic": " x ", "payload": "from-ws", "request_id": "w"})
        got = [ws.receive_json(), ws.receive_json()]
        ack = next(m for m in got if m["type"] == "ack")
        event = next(m for m in got if m["type"] == "event")
        assert ack["topic"] == "x"
        assert event["message"]["topic"] == "x"

        response = client.post("/api/v1/publish", json={"topic": "  x", "payload": "from-http"})
        assert response.json()["topic"] == "x"
        assert ws.receive_json()["message"]["payload"] == "from-http"

    assert subject.topics() == ["x"]
