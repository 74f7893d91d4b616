"""Protocol message shapes for HTTP and WebSocket (health, stats, publish, events)."""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fanout.message import Message


# ---- Health ----

@dataclass
class HealthResponse:
    """Response for GET /health."""
    uptime_sec: float
    topics: int
    subscribers: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uptime_sec": int(self.uptime_sec),
            "topics": self.topics,
            "subscribers": self.subscribers,
        }


# ---- Publish ----

@dataclass
class PublishResponse:
    """Response for POST /publish (202 Accepted: delivery is asynchronous)."""
    topic: str
    message_id: str
    status: str = "accepted"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def topics_list_response(topics: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Response for GET /topics."""
    return {"topics": topics}


def stats_response(
    topics_stats: Dict[str, Dict[str, int]],
    metrics: Dict[str, Dict[str, int]],
) -> Dict[str, Any]:
    """Response for GET /stats."""
    return {"topics": topics_stats, "metrics": metrics}


# ---- WebSocket: Server → Client ----

# Error codes (use with ws_error)
ERROR_BAD_REQUEST = "BAD_REQUEST"
ERROR_ALREADY_REGISTERED = "ALREADY_REGISTERED"
ERROR_NOT_FOUND = "NOT_FOUND"
ERROR_INTERNAL = "INTERNAL"


def ws_ts() -> str:
    """Current UTC timestamp in ISO 8601 (e.g. 2025-08-25T10:00:00Z)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ws_ack(request_id: Optional[str], ts: str, **fields: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "ack", "status": "ok", "ts": ts}
    if request_id is not None:
        out["request_id"] = request_id
    out.update({k: v for k, v in fields.items() if v is not None})
    return out


def ws_event(message: Message, ts: str) -> Dict[str, Any]:
    body = message.to_dict()
    return {
        "type": "event",
        "topic": message.topic,
        "message": {"id": body["message_id"], "payload": body["payload"]},
        "ts": ts,
    }


def ws_error(request_id: Optional[str], code: str, message: str, ts: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "type": "error",
        "error": {"code": code, "message": message},
        "ts": ts,
    }
    if request_id is not None:
        out["request_id"] = request_id
    return out


def ws_pong(request_id: str, ts: str) -> Dict[str, Any]:
    return {"type": "pong", "request_id": request_id, "ts": ts}


def ws_info(msg: str, ts: str, topic: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "info", "msg": msg, "ts": ts}
    if topic is not None:
        out["topic"] = topic
    return out
