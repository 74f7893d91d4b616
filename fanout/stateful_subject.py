"""Subject variant that keeps the last value per topic and publishes old/new pairs."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fanout.message import Message
from fanout.subject import Subject
from fanout.topic import validate_topic


class StateChange(BaseModel):
    """Payload published by StatefulSubject.update."""

    model_config = ConfigDict(frozen=True)

    topic: str
    old: Optional[float] = None
    new: float
    sequence: int = Field(ge=1)

    @field_validator("topic")
    @classmethod
    def _topic_not_empty(cls, v: str) -> str:
        return validate_topic(v)

    @property
    def delta(self) -> Optional[float]:
        if self.old is None:
            return None
        return self.new - self.old

    @property
    def percent_change(self) -> Optional[float]:
        """Relative change in percent; None for a first value or a zero old value."""
        if self.old is None or self.old == 0:
            return None
        return round((self.new - self.old) / self.old * 100, 2)


class StatefulSubject(Subject):
    """Subject holding auxiliary keyed state (last-known value per topic).

    ``update`` reads the old value, stores the new one and publishes under the
    subject lock, so concurrent updates never lose a write and every observer
    sees pairs that chain in update order.
    """

    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__(name, **kwargs)
        self._values: Dict[str, float] = {}
        self._sequences: Dict[str, int] = {}

    def update(self, topic: str, value: float, **metadata: Any) -> Message:
        validate_topic(topic)
        with self._lock:
            sequence = self._sequences.get(topic, 0) + 1
            change = StateChange(
                topic=topic,
                old=self._values.get(topic),
                new=value,
                sequence=sequence,
            )
            message = Message(topic=topic, payload=change, metadata=metadata)
            self._values[topic] = change.new
            self._sequences[topic] = sequence
            self._dispatch(message)
        return message

    def value(self, topic: str) -> Optional[float]:
        with self._lock:
            return self._values.get(topic)

    def values(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._values)

    def close(self) -> None:
        with self._lock:
            super().close()
            self._values.clear()
            self._sequences.clear()
