"""Concrete Observer implementations with observability hooks."""

import threading
from typing import Callable, List, Optional

from fanout.message import Message
from fanout.observer import Observer


class DefaultObserver(Observer):
    """Observer that logs and keeps every message it handles (override handle_notification)."""

    def __init__(self, observer_id: str, mailbox_size: Optional[int] = None) -> None:
        super().__init__(observer_id, mailbox_size)
        self._messages: List[Message] = []
        self._messages_lock = threading.Lock()

    @property
    def messages(self) -> List[Message]:
        """Copy of handled messages, in handling order."""
        with self._messages_lock:
            return list(self._messages)

    def handle_notification(self, topic: str, message: Message) -> None:
        """Log delivery and payload type; subclasses can override for custom handling."""
        with self._messages_lock:
            self._messages.append(message)
        self._logger.info(
            "message_received",
            extra={
                "topic": topic,
                "message_id": message.message_id,
                "payload_type": type(message.payload).__name__,
            },
        )


class CallbackObserver(Observer):
    """Observer that hands each message to a plain function."""

    def __init__(
        self,
        observer_id: str,
        callback: Callable[[str, Message], None],
        mailbox_size: Optional[int] = None,
    ) -> None:
        super().__init__(observer_id, mailbox_size)
        self._callback = callback

    def handle_notification(self, topic: str, message: Message) -> None:
        self._callback(topic, message)
