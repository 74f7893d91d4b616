"""Publisher: an external caller that publishes through a Subject."""

from typing import TYPE_CHECKING, Any

from fanout.observability import get_logger

if TYPE_CHECKING:
    from fanout.message import Message
    from fanout.subject import Subject


class Publisher:
    """Stamps its id into message metadata and publishes via the subject it was given."""

    def __init__(self, publisher_id: str, subject: "Subject") -> None:
        self._publisher_id = publisher_id
        self._subject = subject
        self._logger = get_logger(f"fanout.publisher.{publisher_id}")

    @property
    def publisher_id(self) -> str:
        return self._publisher_id

    @property
    def subject(self) -> "Subject":
        return self._subject

    def publish(self, topic: str, payload: Any, **metadata: Any) -> "Message":
        """Publish a message on topic and return it (delivery happens asynchronously)."""
        metadata.setdefault("publisher_id", self._publisher_id)
        message = self._subject.publish(topic, payload, **metadata)
        self.on_publish(message)
        return message

    def on_publish(self, message: "Message") -> None:
        """Called after a message is published (for observability)."""
        self._logger.info(
            "published",
            extra={
                "topic": message.topic,
                "message_id": message.message_id,
                "publisher_id": self._publisher_id,
                "subject": self._subject.name,
            },
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self._publisher_id!r})"
