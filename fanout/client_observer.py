"""Client observer for socket/WS connections: worker thread hands events to the connection's event loop."""

import asyncio
import concurrent.futures
from typing import Any, Awaitable, Callable, Dict, Optional

from fanout.config import get_settings
from fanout.message import Message
from fanout.observer import Observer
from fanout.protocol import ws_event, ws_ts

SendCallback = Callable[[Dict[str, Any]], Awaitable[None]]


class ClientObserver(Observer):
    """Observer whose notifications are sent as JSON events over an async connection.

    ``handle_notification`` runs on the observer's worker thread; it schedules
    the send on the connection's loop and waits for it, so events leave in
    mailbox order and a slow client only stalls its own worker. Live events
    wait on ``send_lock``, so a connection handler holding it can send a
    replay without live events slipping in between.
    """

    def __init__(
        self,
        client_id: str,
        send: SendCallback,
        loop: asyncio.AbstractEventLoop,
        send_timeout: Optional[float] = None,
        mailbox_size: Optional[int] = None,
    ) -> None:
        super().__init__(client_id, mailbox_size)
        self._send = send
        self._loop = loop
        self._send_timeout = send_timeout if send_timeout is not None else get_settings().send_timeout_sec
        self.send_lock = asyncio.Lock()

    async def _send_event(self, message: Message) -> None:
        async with self.send_lock:
            await self._send(ws_event(message, ws_ts()))

    def handle_notification(self, topic: str, message: Message) -> None:
        future = asyncio.run_coroutine_threadsafe(self._send_event(message), self._loop)
        try:
            future.result(self._send_timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise
        self._logger.info(
            "message_sent",
            extra={
                "topic": topic,
                "message_id": message.message_id,
                "client_id": self.observer_id,
            },
        )
