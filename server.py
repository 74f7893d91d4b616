"""HTTP server: health, topics, stats, publish. WebSocket: ping, subscribe, unsubscribe, publish."""

from dotenv import load_dotenv
load_dotenv()

import asyncio
import json
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fanout.client_observer import ClientObserver
from fanout.config import Settings, get_settings
from fanout.errors import AlreadyRegistered, NotFound
from fanout.observability import get_logger
from fanout.protocol import (
    HealthResponse,
    PublishResponse,
    topics_list_response,
    stats_response,
    ws_ack,
    ws_error,
    ws_event,
    ws_info,
    ws_pong,
    ws_ts,
    ERROR_ALREADY_REGISTERED,
    ERROR_BAD_REQUEST,
    ERROR_INTERNAL,
    ERROR_NOT_FOUND,
)
from fanout.subject import Subject
from fanout.topic import ALL, TopicFilter

logger = get_logger("fanout.server")


async def _heartbeat_loop(app: FastAPI) -> None:
    """Periodically send info heartbeat (msg: ping) to all connected WebSocket clients."""
    interval = app.state.settings.heartbeat_interval_sec
    if interval <= 0:
        return
    while True:
        await asyncio.sleep(interval)
        payload = ws_info("ping", ws_ts())
        dead = []
        for ws in list(app.state.connections):
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            app.state.connections.discard(ws)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.start_time = time.time()
    heartbeat = asyncio.create_task(_heartbeat_loop(app))
    yield
    heartbeat.cancel()
    try:
        await heartbeat
    except asyncio.CancelledError:
        pass
    app.state.subject.close()


# ---- Request bodies ----

class PublishBody(BaseModel):
    topic: str
    payload: Any = None


router = APIRouter(prefix="/api/v1")


def _subject(request: Request) -> Subject:
    return request.app.state.subject


# ---- Health ----

@router.get("/health")
def health(request: Request) -> JSONResponse:
    """GET /health → { uptime_sec, topics, subscribers }."""
    subject = _subject(request)
    body = HealthResponse(
        uptime_sec=time.time() - request.app.state.start_time,
        topics=len(subject.topics()),
        subscribers=subject.registry.subscriber_count(),
    ).to_dict()
    return JSONResponse(content=body, status_code=200)


# ---- Stats ----

@router.get("/stats")
def stats(request: Request) -> JSONResponse:
    """GET /stats → { topics: { name: { messages, subscribers } }, metrics: {...} }."""
    subject = _subject(request)
    body = stats_response(subject.stats(), subject.metrics.snapshot())
    return JSONResponse(content=body, status_code=200)


# ---- Topics ----

@router.get("/topics")
def list_topics(request: Request) -> JSONResponse:
    """GET /topics → { topics: [ { name, subscribers } ] }."""
    body = topics_list_response([
        {"name": name, "subscribers": s["subscribers"]}
        for name, s in _subject(request).stats().items()
    ])
    return JSONResponse(content=body, status_code=200)


def _topic_name(value: Any) -> Optional[str]:
    """Trimmed topic name shared by HTTP and WS, or None if blank or not a string."""
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


# ---- Publish ----

@router.post("/publish")
def publish(body: PublishBody, request: Request) -> JSONResponse:
    """POST /publish { topic, payload } → 202 { status: accepted, topic, message_id }."""
    topic = _topic_name(body.topic)
    if topic is None:
        return JSONResponse(content={"error": "topic is required"}, status_code=400)
    message = _subject(request).publish(topic, body.payload, source="http")
    return JSONResponse(
        content=PublishResponse(topic=topic, message_id=message.message_id).to_dict(),
        status_code=202,
    )


# ---- WebSocket (ping, subscribe, unsubscribe, publish) ----

def _ws_filter(msg: dict, default: Any) -> Optional[TopicFilter]:
    """Topic filter from a WS message: all=true, topics=[...], or topic=... ."""
    if msg.get("all"):
        return TopicFilter.all()
    if msg.get("topics") is not None:
        return TopicFilter.coerce(_trimmed(msg["topics"]))
    if msg.get("topic") is not None:
        return TopicFilter.coerce(_trimmed(msg["topic"]))
    return TopicFilter.coerce(default) if default is not None else None


def _trimmed(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return [v.strip() if isinstance(v, str) else v for v in value]
    return value


def _filter_names(topic_filter: TopicFilter) -> list:
    return ["*"] if topic_filter.is_all else sorted(topic_filter.topics)


@router.websocket("/ws")
async def websocket_handler(websocket: WebSocket) -> None:
    """
    WebSocket endpoint. Messages: ping, subscribe, unsubscribe, publish.
    Server replies: pong, ack, event, error, info.
    """
    await websocket.accept()
    app = websocket.app
    subject: Subject = app.state.subject
    client_id = websocket.query_params.get("client_id") or f"ws_{uuid.uuid4().hex[:8]}"
    observer = ClientObserver(
        client_id,
        websocket.send_json,
        asyncio.get_running_loop(),
        send_timeout=app.state.settings.send_timeout_sec,
        mailbox_size=app.state.settings.mailbox_size,
    ).start()
    app.state.connections.add(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json(ws_error(None, ERROR_BAD_REQUEST, "Invalid JSON", ws_ts()))
                continue
            if not isinstance(msg, dict):
                await websocket.send_json(ws_error(None, ERROR_BAD_REQUEST, "Expected a JSON object", ws_ts()))
                continue
            msg_type = msg.get("type")
            request_id = msg.get("request_id")

            if msg_type == "ping":
                await websocket.send_json(ws_pong(msg.get("request_id", ""), ws_ts()))
                continue

            if msg_type == "subscribe":
                last_n = msg.get("last_n", 0)
                if isinstance(last_n, bool) or not isinstance(last_n, int) or last_n < 0:
                    await websocket.send_json(ws_error(
                        request_id, ERROR_BAD_REQUEST,
                        "last_n must be a non-negative integer",
                        ws_ts(),
                    ))
                    continue
                async with observer.send_lock:
                    try:
                        topic_filter = _ws_filter(msg, ALL)
                        replay = subject.subscribe_with_replay(observer, topic_filter, last_n)
                    except (TypeError, ValueError) as e:
                        await websocket.send_json(ws_error(request_id, ERROR_BAD_REQUEST, str(e), ws_ts()))
                        continue
                    except AlreadyRegistered as e:
                        await websocket.send_json(ws_error(request_id, ERROR_ALREADY_REGISTERED, str(e), ws_ts()))
                        continue
                    await websocket.send_json(ws_ack(
                        request_id, ws_ts(),
                        client_id=client_id,
                        topics=_filter_names(topic_filter),
                    ))
                    for message in replay:
                        await websocket.send_json(ws_event(message, ws_ts()))
                continue

            if msg_type == "unsubscribe":
                try:
                    topic_filter = _ws_filter(msg, None)
                    subject.unsubscribe(observer, topic_filter)
                except (TypeError, ValueError) as e:
                    await websocket.send_json(ws_error(request_id, ERROR_BAD_REQUEST, str(e), ws_ts()))
                    continue
                except NotFound as e:
                    await websocket.send_json(ws_error(request_id, ERROR_NOT_FOUND, str(e), ws_ts()))
                    continue
                await websocket.send_json(ws_ack(
                    request_id, ws_ts(),
                    client_id=client_id,
                    topics=_filter_names(topic_filter) if topic_filter is not None else None,
                ))
                continue

            if msg_type == "publish":
                topic_name = _topic_name(msg.get("topic"))
                if topic_name is None:
                    await websocket.send_json(ws_error(
                        request_id, ERROR_BAD_REQUEST,
                        "publish requires topic",
                        ws_ts(),
                    ))
                    continue
                message = subject.publish(topic_name, msg.get("payload"), source="ws", client_id=client_id)
                await websocket.send_json(ws_ack(
                    request_id, ws_ts(),
                    topic=topic_name,
                    message_id=message.message_id,
                ))
                continue

            await websocket.send_json(ws_error(
                request_id, ERROR_BAD_REQUEST,
                f"Unknown type: {msg_type!r}",
                ws_ts(),
            ))
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception("ws_handler_failed", extra={"client_id": client_id})
        try:
            await websocket.send_json(ws_error(
                None, ERROR_INTERNAL,
                f"Unexpected server error: {e!s}",
                ws_ts(),
            ))
        except Exception:
            logger.debug("ws_error_not_sent", extra={"client_id": client_id})
    finally:
        try:
            subject.unsubscribe(observer)
        except NotFound:
            pass
        observer.stop(wait=False)
        app.state.connections.discard(websocket)


def create_app(subject: Optional[Subject] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around an explicitly owned Subject."""
    settings = get_settings(settings)
    app = FastAPI(title="Fan-out API", lifespan=lifespan)
    app.state.settings = settings
    app.state.subject = subject if subject is not None else Subject("server", history_size=settings.history_size)
    app.state.connections = set()
    app.state.start_time = time.time()
    app.include_router(router)
    return app


app = create_app()
