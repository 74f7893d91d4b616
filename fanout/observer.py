"""Abstract Observer: a mailbox plus a worker thread that handles notifications."""

import queue
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from fanout.config import get_settings
from fanout.errors import DeliveryFailure
from fanout.observability import get_logger

if TYPE_CHECKING:
    from fanout.message import Message
    from fanout.topic import TopicFilter

# Sentinel to unblock the worker when stopping
_STOP = object()


class Observer(ABC):
    """Independent unit of execution that receives delivered messages.

    ``deliver`` only enqueues into this observer's mailbox; the worker thread
    started by ``start`` drains it in FIFO order and calls
    ``handle_notification``. A bounded mailbox drops its oldest message when
    full. Messages delivered before ``start`` wait in the mailbox.
    """

    def __init__(self, observer_id: str, mailbox_size: Optional[int] = None) -> None:
        self._observer_id = observer_id
        self._logger = get_logger(f"fanout.observer.{observer_id}")
        if mailbox_size is None:
            mailbox_size = get_settings().mailbox_size
        self._mailbox: queue.Queue = queue.Queue(maxsize=max(0, mailbox_size))
        self._idle = threading.Condition()
        self._pending = 0
        self._received = 0
        self._dropped = 0
        self._closed = False
        self._worker: Optional[threading.Thread] = None

    @property
    def observer_id(self) -> str:
        return self._observer_id

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive() and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Messages delivered but not yet handled."""
        with self._idle:
            return self._pending

    @property
    def received(self) -> int:
        """Messages handled so far (including ones whose handler raised)."""
        with self._idle:
            return self._received

    @property
    def dropped(self) -> int:
        """Messages evicted from a full mailbox."""
        with self._idle:
            return self._dropped

    @abstractmethod
    def handle_notification(self, topic: str, message: "Message") -> None:
        """React to one delivered message. Runs on this observer's worker thread."""

    def deliver(self, message: "Message") -> None:
        """Enqueue a message without blocking. Raises DeliveryFailure once stopped.

        On a full mailbox the oldest queued message is dropped to make room.
        The closed check and the enqueue happen under one lock, so nothing
        lands behind the stop sentinel.
        """
        with self._idle:
            if self._closed:
                raise DeliveryFailure(self._observer_id, "observer is stopped")
            self._pending += 1
            try:
                self._mailbox.put(message, block=False)
            except queue.Full:
                dropped = self._evict_oldest()
                try:
                    self._mailbox.put(message, block=False)
                except queue.Full:
                    self._done(handled=False)
                    raise DeliveryFailure(self._observer_id, "mailbox full")
                self._logger.warning(
                    "mailbox_full_dropped_oldest",
                    extra={
                        "topic": message.topic,
                        "dropped_message_id": getattr(dropped, "message_id", None),
                        "observer_id": self._observer_id,
                    },
                )

    def _evict_oldest(self) -> Optional["Message"]:
        # Caller holds self._idle.
        try:
            dropped = self._mailbox.get(block=False)
        except queue.Empty:
            return None
        self._done(handled=False, dropped=True)
        return dropped

    def start(self) -> "Observer":
        """Start the worker thread (idempotent)."""
        if self._worker is not None and self._worker.is_alive():
            return self
        if self._closed:
            raise RuntimeError(f"observer {self._observer_id!r} was stopped and cannot restart")
        self._worker = threading.Thread(
            target=self._run,
            name=f"observer-{self._observer_id}",
            daemon=True,
        )
        self._worker.start()
        return self

    def stop(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Refuse further deliveries, let the worker finish queued messages, then exit.

        Never blocks on the mailbox: a full mailbox gives up its oldest message
        to make room for the stop sentinel. An observer that was never started
        settles its queued messages as unhandled.
        """
        with self._idle:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            if worker is None or not worker.is_alive():
                while self._evict_oldest() is not None:
                    pass
                return
            try:
                self._mailbox.put(_STOP, block=False)
            except queue.Full:
                dropped = self._evict_oldest()
                self._mailbox.put(_STOP, block=False)
                self._logger.warning(
                    "mailbox_full_dropped_oldest",
                    extra={
                        "dropped_message_id": getattr(dropped, "message_id", None),
                        "observer_id": self._observer_id,
                    },
                )
        if wait and worker is not threading.current_thread():
            worker.join(timeout)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every delivered message has been handled. False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def _done(self, handled: bool, dropped: bool = False) -> None:
        with self._idle:
            self._pending -= 1
            if handled:
                self._received += 1
            if dropped:
                self._dropped += 1
            self._idle.notify_all()

    def _run(self) -> None:
        while True:
            message = self._mailbox.get()
            if message is _STOP:
                break
            try:
                self.handle_notification(message.topic, message)
            except Exception as e:
                self._logger.exception(
                    "handler_failed",
                    extra={
                        "observer_id": self._observer_id,
                        "message_id": message.message_id,
                        "error": str(e),
                    },
                )
            finally:
                self._done(handled=True)

    def on_subscribe(self, subject_name: str, topic_filter: "TopicFilter") -> None:
        """Called when this observer is registered with a subject (for observability)."""
        self._logger.info(
            "subscribed",
            extra={
                "subject": subject_name,
                "filter": repr(topic_filter),
                "observer_id": self._observer_id,
            },
        )

    def on_unsubscribe(self, subject_name: str, buckets: object) -> None:
        """Called when this observer is removed from a subject (for observability)."""
        self._logger.info(
            "unsubscribed",
            extra={
                "subject": subject_name,
                "topics": repr(buckets),
                "observer_id": self._observer_id,
            },
        )

    def __enter__(self) -> "Observer":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self._observer_id!r})"
